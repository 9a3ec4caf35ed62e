"""
Enrollment workflow: validate, persist, then mirror to the device.

Concurrent enrollments for the same subject are not serialized here.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional

from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from faceenroll.core.device_client import DeviceClient, DeviceErrorKind
from faceenroll.core.errors import (
    PersistenceError,
    SubjectNotFoundError,
    UnsupportedImageError,
)
from faceenroll.db.models.face import Face
from faceenroll.db.models.subject import Subject
from faceenroll.db.models.subject_face import SubjectFace

logger = logging.getLogger(__name__)

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png")

_SIGNATURES = {
    "image/jpeg": (b"\xff\xd8\xff",),
    "image/png": (b"\x89PNG\r\n\x1a\n",),
}


@dataclass
class EnrollmentRequest:
    subject_id: int
    image_bytes: bytes
    content_type: str = "image/jpeg"
    display_name: str = ""


@dataclass
class MirrorOutcome:
    attempted: bool
    success: bool
    message: str
    error: Optional[str] = None
    error_kind: Optional[DeviceErrorKind] = None


@dataclass
class EnrollmentOutcome:
    face_id: int
    deactivated_faces: int
    device: MirrorOutcome
    success: bool = True
    message: str = "Face enrolled successfully to database"
    warnings: list = field(default_factory=list)

    @property
    def fully_mirrored(self) -> bool:
        return self.device.success


def validate_image(image_bytes: bytes, content_type: Optional[str], max_bytes: int) -> str:
    """Return the normalized content type, or raise UnsupportedImageError."""
    if not image_bytes:
        raise UnsupportedImageError("No image file provided")

    content_type = (content_type or "").split(";")[0].strip().lower()
    if content_type == "image/jpg":
        content_type = "image/jpeg"
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise UnsupportedImageError("Only .jpg and .png files are allowed")

    if len(image_bytes) > max_bytes:
        raise UnsupportedImageError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB."
        )

    if not image_bytes.startswith(_SIGNATURES[content_type]):
        raise UnsupportedImageError(f"File content is not a valid {content_type} image")

    return content_type


class EnrollmentService:
    def __init__(self, db: Session, device: Optional[DeviceClient], max_image_bytes: int):
        self.db = db
        self.device = device
        self.max_image_bytes = max_image_bytes

    # ==================================================
    # Step 1: validate
    # ==================================================
    def _load_subject(self, subject_id: int) -> Subject:
        subject = self.db.query(Subject).filter(Subject.id == subject_id).first()
        if subject is None:
            raise SubjectNotFoundError(subject_id)
        return subject

    # ==================================================
    # Step 2: persist (single transaction)
    # ==================================================
    def _persist(self, subject_id: int, image_bytes: bytes) -> tuple[int, int]:
        try:
            active_faces = (
                self.db.query(Face)
                .join(SubjectFace, SubjectFace.face_id == Face.id)
                .filter(SubjectFace.subject_id == subject_id, Face.is_active.is_(True))
                .all()
            )
            for face in active_faces:
                face.is_active = False

            new_face = Face(template_data=image_bytes, is_active=True)
            self.db.add(new_face)
            self.db.flush()
            face_id = new_face.id

            self.db.add(SubjectFace(subject_id=subject_id, face_id=face_id))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Persisting face for subject {subject_id} failed: {e}")
            raise PersistenceError(f"Failed to store face for subject {subject_id}") from e

        # committed: nothing below may turn this into a failure
        logger.info(
            f"Stored face {face_id} for subject {subject_id}, "
            f"deactivated {len(active_faces)} previous face(s)"
        )
        return face_id, len(active_faces)

    # ==================================================
    # Step 3: mirror (best-effort)
    # ==================================================
    async def _mirror(self, request: EnrollmentRequest) -> MirrorOutcome:
        if self.device is None:
            return MirrorOutcome(
                attempted=False,
                success=False,
                message="Device not configured; enrollment not mirrored",
            )

        try:
            result = await self.device.enroll_face(
                request.subject_id,
                request.image_bytes,
                request.display_name,
                request.content_type,
            )
        except Exception as e:
            # the store write is already committed; report, don't raise
            logger.error(f"Device service error for subject {request.subject_id}: {e}", exc_info=True)
            return MirrorOutcome(
                attempted=True,
                success=False,
                message="Device enrollment failed",
                error=str(e),
            )

        if not result.success:
            logger.warning(f"Device enrollment failed for subject {request.subject_id}: {result.error}")
            return MirrorOutcome(
                attempted=True,
                success=False,
                message=result.error or "Device enrollment failed",
                error=result.error,
                error_kind=result.error_kind,
            )

        return MirrorOutcome(
            attempted=True,
            success=True,
            message=result.message or "Face enrolled successfully to device",
        )

    async def enroll(self, request: EnrollmentRequest) -> EnrollmentOutcome:
        request.content_type = validate_image(
            request.image_bytes, request.content_type, self.max_image_bytes
        )

        subject = await run_in_threadpool(self._load_subject, request.subject_id)
        if not request.display_name:
            request.display_name = subject.display_name

        face_id, deactivated = await run_in_threadpool(
            self._persist, request.subject_id, request.image_bytes
        )

        mirror = await self._mirror(request)

        outcome = EnrollmentOutcome(
            face_id=face_id,
            deactivated_faces=deactivated,
            device=mirror,
        )
        if not mirror.success:
            outcome.warnings.append(
                f"Enrolled in database but not on device: {mirror.message}"
            )
        return outcome
