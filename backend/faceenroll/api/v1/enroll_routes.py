from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.orm import Session

from faceenroll.core.config import settings
from faceenroll.core.device_client import DeviceClient, get_device_client
from faceenroll.core.enrollment import EnrollmentRequest, EnrollmentService
from faceenroll.core.errors import (
    PersistenceError,
    SubjectNotFoundError,
    UnsupportedImageError,
)
from faceenroll.db.session import get_db
from faceenroll.schemas.enrollment import DeviceMirrorStatus, EnrollResponse

router = APIRouter(prefix="/api/enroll", tags=["Enrollment"])


@router.post("/{subject_id}", response_model=EnrollResponse)
async def enroll_face(
    subject_id: int,
    image: Optional[UploadFile] = File(None),
    db: Session = Depends(get_db),
    device: Optional[DeviceClient] = Depends(get_device_client),
):
    if image is None:
        raise HTTPException(status_code=400, detail="No image file provided")

    # read one byte past the limit so oversize uploads are detected without buffering them whole
    image_bytes = await image.read(settings.MAX_IMAGE_BYTES + 1)

    service = EnrollmentService(db, device, settings.MAX_IMAGE_BYTES)
    request = EnrollmentRequest(
        subject_id=subject_id,
        image_bytes=image_bytes,
        content_type=image.content_type or "",
    )

    try:
        outcome = await service.enroll(request)
    except UnsupportedImageError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SubjectNotFoundError:
        raise HTTPException(status_code=404, detail="Subject not found")
    except PersistenceError:
        raise HTTPException(status_code=500, detail="Failed to enroll face")

    mirror = outcome.device
    return EnrollResponse(
        success=outcome.success,
        status="enrolled" if outcome.fully_mirrored else "enrolled_with_warning",
        message=outcome.message,
        face_id=outcome.face_id,
        deactivated_faces=outcome.deactivated_faces,
        device=DeviceMirrorStatus(
            attempted=mirror.attempted,
            success=mirror.success,
            message=mirror.message,
            error=mirror.error,
            error_kind=mirror.error_kind.value if mirror.error_kind else None,
        ),
        warnings=outcome.warnings,
    )
