from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SubjectCreateRequest(BaseModel):
    first_name: str = Field(..., min_length=1, max_length=255)
    last_name: str = Field("", max_length=255)


class SubjectSummary(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: Optional[datetime] = None
    active_faces: int = 0
    total_faces: int = 0


class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_items: int
    has_next: bool
    has_prev: bool


class SubjectListResponse(BaseModel):
    subjects: List[SubjectSummary]
    pagination: Pagination


class FaceRecord(BaseModel):
    id: int
    is_active: bool
    created_at: Optional[datetime] = None
    has_image: bool


class SubjectDetailResponse(BaseModel):
    id: int
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    created_at: Optional[datetime] = None
    faces: List[FaceRecord]
