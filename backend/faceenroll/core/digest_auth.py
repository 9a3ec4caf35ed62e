"""HTTP Digest helpers. MD5 unless the challenge names SHA-256."""

import hashlib
import re
import secrets
from dataclasses import dataclass
from typing import Dict, Optional

NONCE_COUNT = "00000001"

_HASHES = {
    "MD5": hashlib.md5,
    "SHA-256": hashlib.sha256,
}

# token=("quoted-string"|token), comma separated
_DIRECTIVE_RE = re.compile(
    r'([A-Za-z0-9_-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,"]+))'
)
_SEPARATOR_RE = re.compile(r"[\s,]*")
_SCHEME_RE = re.compile(r"\bDigest\b", re.IGNORECASE)


class DigestChallengeError(ValueError):
    """The WWW-Authenticate header holds no usable Digest challenge."""


@dataclass(frozen=True)
class DigestChallenge:
    realm: str
    nonce: str
    qop: Optional[str] = None
    opaque: Optional[str] = None
    algorithm: Optional[str] = None

    @property
    def hash_name(self) -> str:
        return (self.algorithm or "MD5").upper()


def parse_directives(params: str) -> Dict[str, str]:
    directives: Dict[str, str] = {}
    pos = _SEPARATOR_RE.match(params).end()
    while pos < len(params):
        match = _DIRECTIVE_RE.match(params, pos)
        if match is None:
            # start of the next scheme, e.g. `Basic realm="..."`
            break
        name, quoted, token = match.groups()
        if quoted is not None:
            value = re.sub(r"\\(.)", r"\1", quoted)
        else:
            value = token
        directives[name.lower()] = value
        pos = _SEPARATOR_RE.match(params, match.end()).end()
    return directives


def _pick_qop(offered: Optional[str]) -> Optional[str]:
    if not offered:
        return None
    options = [q.strip().lower() for q in offered.split(",") if q.strip()]
    if "auth" in options:
        return "auth"
    # auth-int would need the entity body hashed into HA2
    raise DigestChallengeError(f"Unsupported qop offered by device: {offered}")


def parse_challenge(header: Optional[str]) -> DigestChallenge:
    if not header:
        raise DigestChallengeError("Device sent no WWW-Authenticate header")

    scheme = _SCHEME_RE.search(header)
    if scheme is None:
        raise DigestChallengeError("Device does not support Digest authentication")

    directives = parse_directives(header[scheme.end():])
    realm = directives.get("realm")
    nonce = directives.get("nonce")
    if realm is None or not nonce:
        raise DigestChallengeError("Malformed Digest challenge: realm or nonce missing")

    challenge = DigestChallenge(
        realm=realm,
        nonce=nonce,
        qop=_pick_qop(directives.get("qop")),
        opaque=directives.get("opaque"),
        algorithm=directives.get("algorithm"),
    )
    if challenge.hash_name not in _HASHES:
        raise DigestChallengeError(f"Unsupported digest algorithm: {challenge.algorithm}")
    return challenge


def generate_cnonce() -> str:
    return secrets.token_bytes(16).hex()


def _hash(hash_name: str, data: str) -> str:
    return _HASHES[hash_name](data.encode("utf-8")).hexdigest()


def compute_response(
    username: str,
    password: str,
    method: str,
    uri: str,
    challenge: DigestChallenge,
    cnonce: str,
    nc: str = NONCE_COUNT,
) -> str:
    h = challenge.hash_name
    ha1 = _hash(h, f"{username}:{challenge.realm}:{password}")
    ha2 = _hash(h, f"{method.upper()}:{uri}")

    if challenge.qop is None:
        return _hash(h, f"{ha1}:{challenge.nonce}:{ha2}")
    return _hash(h, f"{ha1}:{challenge.nonce}:{nc}:{cnonce}:{challenge.qop}:{ha2}")


def _quote(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


def build_authorization(
    username: str,
    password: str,
    method: str,
    uri: str,
    challenge: DigestChallenge,
    cnonce: Optional[str] = None,
) -> str:
    """
    Build the Authorization header value answering one challenge.

    cnonce is generated when not given; pass one explicitly to get a
    reproducible header.
    """
    if cnonce is None:
        cnonce = generate_cnonce()

    response = compute_response(username, password, method, uri, challenge, cnonce)

    parts = [
        f'username="{_quote(username)}"',
        f'realm="{_quote(challenge.realm)}"',
        f'nonce="{_quote(challenge.nonce)}"',
        f'uri="{_quote(uri)}"',
    ]
    if challenge.algorithm:
        parts.append(f"algorithm={challenge.algorithm}")
    if challenge.qop is not None:
        parts.append(f"qop={challenge.qop}")
        parts.append(f"nc={NONCE_COUNT}")
        parts.append(f'cnonce="{cnonce}"')
    parts.append(f'response="{response}"')
    if challenge.opaque is not None:
        parts.append(f'opaque="{_quote(challenge.opaque)}"')

    return "Digest " + ", ".join(parts)
