"""Pytest configuration and fixtures for the face enrollment backend tests."""

import os

import httpx
import pytest

JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00" + b"\x00" * 64
PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64

DEVICE_USER = "admin"
DEVICE_PASSWORD = "Passw0rd!"
DEVICE_REALM = "DS-K1T341"
DEVICE_NONCE = "4e5468694e7a42694e7a4d364e54686b"


def pytest_configure(config):
    """Set up test environment before the app modules are imported."""
    os.environ.setdefault("DATABASE_URL", "sqlite://")
    os.environ.setdefault("LOG_LEVEL", "DEBUG")
    os.environ.pop("DEVICE_HOST", None)


class FakeDevice:
    """
    MockTransport handler that answers like an ISAPI device.

    Unauthenticated requests get a Digest challenge; authenticated ones are
    checked against the real digest computation. Every request is recorded.
    """

    def __init__(
        self,
        status: int = 200,
        body=None,
        challenge: str | None = None,
        password: str = DEVICE_PASSWORD,
        require_auth: bool = True,
        error: Exception | None = None,
        text: str | None = None,
        extra_challenge: str | None = None,
    ):
        self.status = status
        self.body = body if body is not None else {"statusCode": 1, "statusString": "OK"}
        self.text = text
        self.challenge = challenge if challenge is not None else (
            f'Digest qop="auth", realm="{DEVICE_REALM}", nonce="{DEVICE_NONCE}", stale="FALSE"'
        )
        self.extra_challenge = extra_challenge
        self.password = password
        self.require_auth = require_auth
        self.error = error
        self.requests: list[httpx.Request] = []

    def _authorized(self, request: httpx.Request) -> bool:
        from faceenroll.core.digest_auth import DigestChallenge, compute_response, parse_directives

        header = request.headers.get("Authorization", "")
        if not header.startswith("Digest "):
            return False
        fields = parse_directives(header[len("Digest "):])
        if fields.get("uri") != request.url.raw_path.decode("ascii"):
            return False
        expected = compute_response(
            DEVICE_USER,
            self.password,
            request.method,
            fields["uri"],
            DigestChallenge(realm=DEVICE_REALM, nonce=DEVICE_NONCE, qop="auth"),
            fields["cnonce"],
            fields["nc"],
        )
        return fields.get("username") == DEVICE_USER and fields.get("response") == expected

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error

        if self.require_auth and not self._authorized(request):
            headers = [("WWW-Authenticate", self.challenge)] if self.challenge else []
            if self.extra_challenge:
                headers.append(("WWW-Authenticate", self.extra_challenge))
            return httpx.Response(401, headers=headers)

        if self.text is not None:
            return httpx.Response(self.status, text=self.text)
        return httpx.Response(self.status, json=self.body)

    def client(self, **overrides):
        from faceenroll.core.device_client import DeviceClient, DeviceConfig

        config = DeviceConfig(
            host="192.168.1.64",
            username=DEVICE_USER,
            password=DEVICE_PASSWORD,
            **overrides,
        )
        return DeviceClient(config, transport=httpx.MockTransport(self))


@pytest.fixture
def fake_device():
    return FakeDevice()


@pytest.fixture
def unreachable_device():
    return FakeDevice(error=httpx.ConnectError("[Errno 111] Connection refused"))


@pytest.fixture
def engine():
    from sqlalchemy import create_engine
    from sqlalchemy.pool import StaticPool

    from faceenroll.db.base import Base
    from faceenroll.db.models.face import Face  # noqa: F401
    from faceenroll.db.models.subject import Subject  # noqa: F401
    from faceenroll.db.models.subject_face import SubjectFace  # noqa: F401

    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    from sqlalchemy.orm import sessionmaker

    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_subject(db):
    """Create a subject with a number of active and inactive faces."""
    from faceenroll.db.models.face import Face
    from faceenroll.db.models.subject import Subject
    from faceenroll.db.models.subject_face import SubjectFace

    def _make(first_name="Ana", last_name="Martínez", subject_id=None, active=0, inactive=0):
        subject = Subject(id=subject_id, first_name=first_name, last_name=last_name)
        db.add(subject)
        db.flush()
        for is_active in [True] * active + [False] * inactive:
            face = Face(template_data=JPEG_BYTES, is_active=is_active)
            db.add(face)
            db.flush()
            db.add(SubjectFace(subject_id=subject.id, face_id=face.id))
        db.commit()
        return subject

    return _make


@pytest.fixture
def make_client(session_factory):
    """Build a TestClient with the test store and a chosen device."""
    from fastapi.testclient import TestClient

    from faceenroll.core.device_client import get_device_client
    from faceenroll.db.session import get_db
    from faceenroll.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    def _make(device=None):
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_device_client] = lambda: device
        return TestClient(app)

    yield _make
    app.dependency_overrides.clear()
