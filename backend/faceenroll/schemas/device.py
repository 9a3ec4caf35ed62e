from typing import Any, Optional

from pydantic import BaseModel


class DeviceResultResponse(BaseModel):
    success: bool
    data: Any = None
    error: Optional[str] = None
    error_kind: Optional[str] = None
    status_code: Optional[int] = None
    message: Optional[str] = None


class DeviceHealth(BaseModel):
    configured: bool
    connected: bool
    device: str


class HealthResponse(BaseModel):
    status: str
    database: str
    device: DeviceHealth
