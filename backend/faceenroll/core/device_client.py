"""Client for the face-library ISAPI of a single access-control device."""

import base64
import enum
import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx

from faceenroll.core.config import Settings, settings
from faceenroll.core.digest_auth import (
    DigestChallengeError,
    build_authorization,
    parse_challenge,
)
from faceenroll.core.errors import DeviceConfigError

logger = logging.getLogger(__name__)

DEVICE_INFO_PATH = "/ISAPI/System/deviceInfo"
FACE_LIBRARY_PATH = "/ISAPI/Intelligent/FDLib"
FACE_LIBRARY_SET_PATH = "/ISAPI/Intelligent/FDLib/FDSet"
CAPABILITIES_PATH = "/ISAPI/Intelligent/FDLib/capabilities"

# vendor status object: statusCode 1 means OK
_VENDOR_OK = 1


class DeviceErrorKind(str, enum.Enum):
    AUTH_UNSUPPORTED = "auth_unsupported"
    AUTH_FAILED = "auth_failed"
    UNREACHABLE = "unreachable"
    REJECTED = "rejected"


@dataclass
class DeviceConfig:
    host: str
    username: str = ""
    password: str = ""
    use_https: bool = False
    timeout: float = 30.0
    verify_tls: bool = True
    face_library_id: str = "1"
    face_library_type: str = "blackFD"

    @property
    def base_url(self) -> str:
        scheme = "https" if self.use_https else "http"
        return f"{scheme}://{self.host}"

    @classmethod
    def from_settings(cls, s: Settings) -> "DeviceConfig":
        return cls(
            host=s.DEVICE_HOST,
            username=s.DEVICE_USERNAME,
            password=s.DEVICE_PASSWORD,
            use_https=s.DEVICE_USE_HTTPS,
            timeout=s.DEVICE_TIMEOUT,
            verify_tls=s.DEVICE_VERIFY_TLS,
            face_library_id=s.DEVICE_FACE_LIBRARY_ID,
        )


@dataclass
class DeviceResult:
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[DeviceErrorKind] = None
    status_code: Optional[int] = None
    message: Optional[str] = None

    @classmethod
    def failure(cls, kind: DeviceErrorKind, error: str, status_code: Optional[int] = None,
                data: Any = None) -> "DeviceResult":
        return cls(success=False, error=error, error_kind=kind, status_code=status_code, data=data)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "data": self.data,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "status_code": self.status_code,
            "message": self.message,
        }


def _response_data(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        # ISAPI answers XML on most GET endpoints
        return response.text


def _vendor_error(data: Any) -> Optional[str]:
    if not isinstance(data, dict):
        return None
    status = data.get("statusCode")
    if status is None or status == _VENDOR_OK:
        return None
    detail = data.get("errorMsg") or data.get("subStatusCode") or data.get("statusString")
    return f"statusCode={status}" + (f" ({detail})" if detail else "")


class DeviceClient:
    def __init__(self, config: DeviceConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        if not config.host:
            raise DeviceConfigError("Device host is not configured")
        try:
            httpx.URL(config.base_url)
        except httpx.InvalidURL as e:
            raise DeviceConfigError(f"Invalid device host {config.host!r}: {e}") from e
        self.config = config
        self._transport = transport

    def _http_client(self) -> httpx.AsyncClient:
        # verify applies to this client only, never process-wide
        return httpx.AsyncClient(
            base_url=self.config.base_url,
            timeout=self.config.timeout,
            verify=self.config.verify_tls,
            transport=self._transport,
        )

    def _unreachable(self, exc: httpx.HTTPError) -> DeviceResult:
        host = self.config.host
        if isinstance(exc, httpx.TimeoutException):
            error = f"Connection timeout to device at {host}"
        elif isinstance(exc, httpx.ConnectError):
            text = str(exc)
            if "CERTIFICATE" in text.upper() or "SSL" in text.upper():
                error = f"TLS handshake with device at {host} failed: {text}"
            else:
                error = f"Cannot connect to device at {host}"
        else:
            error = f"Transport error talking to device at {host}: {exc}"
        logger.warning(error)
        return DeviceResult.failure(DeviceErrorKind.UNREACHABLE, error)

    async def request(
        self,
        method: str,
        path: str,
        json: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> DeviceResult:
        method = method.upper()
        headers = dict(headers or {})

        try:
            async with self._http_client() as client:
                response = await client.request(method, path, json=json, headers=headers)

                if response.status_code == 401:
                    try:
                        challenge = parse_challenge(response.headers.get("WWW-Authenticate"))
                    except DigestChallengeError as e:
                        logger.warning(f"{method} {path}: {e}")
                        return DeviceResult.failure(
                            DeviceErrorKind.AUTH_UNSUPPORTED, str(e), status_code=401
                        )

                    headers["Authorization"] = build_authorization(
                        self.config.username,
                        self.config.password,
                        method,
                        path,
                        challenge,
                    )
                    response = await client.request(method, path, json=json, headers=headers)

                    if response.status_code == 401:
                        error = f"Device at {self.config.host} rejected the credentials"
                        logger.warning(f"{method} {path}: {error}")
                        return DeviceResult.failure(
                            DeviceErrorKind.AUTH_FAILED, error, status_code=401
                        )
        except httpx.HTTPError as e:
            return self._unreachable(e)

        data = _response_data(response)

        if not response.is_success:
            error = f"Device rejected {method} {path} with HTTP {response.status_code}"
            logger.warning(error)
            return DeviceResult.failure(
                DeviceErrorKind.REJECTED, error, status_code=response.status_code, data=data
            )

        vendor_error = _vendor_error(data)
        if vendor_error:
            error = f"Device rejected {method} {path}: {vendor_error}"
            logger.warning(error)
            return DeviceResult.failure(
                DeviceErrorKind.REJECTED, error, status_code=response.status_code, data=data
            )

        return DeviceResult(success=True, data=data, status_code=response.status_code)

    # ==================================================
    # Operations
    # ==================================================
    async def test_connection(self) -> DeviceResult:
        return await self.request("GET", DEVICE_INFO_PATH)

    async def get_capabilities(self) -> DeviceResult:
        return await self.request("GET", CAPABILITIES_PATH)

    async def get_face_library(self) -> DeviceResult:
        return await self.request("GET", FACE_LIBRARY_PATH)

    def build_face_payload(
        self,
        subject_id: int,
        image_bytes: bytes,
        name: str = "",
        content_type: str = "image/jpeg",
    ) -> Dict[str, str]:
        image_b64 = base64.b64encode(image_bytes).decode("ascii")
        return {
            "faceLibType": self.config.face_library_type,
            "FDID": self.config.face_library_id,
            "FPID": str(subject_id),
            "name": name or f"Person_{subject_id}",
            "bornTime": date.today().isoformat(),
            "sex": "unknown",
            "faceURL": f"data:{content_type};base64,{image_b64}",
        }

    async def enroll_face(
        self,
        subject_id: int,
        image_bytes: bytes,
        name: str = "",
        content_type: str = "image/jpeg",
    ) -> DeviceResult:
        payload = self.build_face_payload(subject_id, image_bytes, name, content_type)
        result = await self.request(
            "POST",
            FACE_LIBRARY_SET_PATH,
            json=payload,
            headers={"Accept": "application/json"},
        )
        if result.success:
            result.message = "Face enrolled successfully to device"
        return result

    async def delete_face(self, subject_id: int) -> DeviceResult:
        query = urlencode({"FDID": self.config.face_library_id, "FPID": str(subject_id)})
        result = await self.request("DELETE", f"{FACE_LIBRARY_SET_PATH}?{query}")
        if result.success:
            result.message = "Face deleted successfully from device"
        return result


def get_device_client() -> Optional[DeviceClient]:
    """FastAPI dependency: the configured device, or None when no host is set."""
    if not settings.DEVICE_HOST:
        return None
    return DeviceClient(DeviceConfig.from_settings(settings))
