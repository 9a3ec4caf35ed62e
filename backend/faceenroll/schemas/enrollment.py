from typing import List, Optional

from pydantic import BaseModel, Field


class DeviceMirrorStatus(BaseModel):
    attempted: bool
    success: bool
    message: str
    error: Optional[str] = None
    error_kind: Optional[str] = None


class EnrollResponse(BaseModel):
    success: bool = Field(..., description="True once the face is committed to the database")
    status: str = Field(..., description="'enrolled' or 'enrolled_with_warning'")
    message: str
    face_id: int
    deactivated_faces: int
    device: DeviceMirrorStatus
    warnings: List[str] = Field(default_factory=list)
