from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from faceenroll.core.device_client import DeviceClient, get_device_client
from faceenroll.schemas.device import DeviceResultResponse

router = APIRouter(prefix="/api/device", tags=["Device"])


def require_device(device: Optional[DeviceClient] = Depends(get_device_client)) -> DeviceClient:
    if device is None:
        raise HTTPException(status_code=503, detail="Device not configured")
    return device


@router.get("/status", response_model=DeviceResultResponse)
async def device_status(device: DeviceClient = Depends(require_device)):
    result = await device.test_connection()
    return result.to_dict()


@router.get("/capabilities", response_model=DeviceResultResponse)
async def device_capabilities(device: DeviceClient = Depends(require_device)):
    result = await device.get_capabilities()
    return result.to_dict()


@router.get("/database", response_model=DeviceResultResponse)
async def device_face_library(device: DeviceClient = Depends(require_device)):
    result = await device.get_face_library()
    return result.to_dict()


@router.delete("/faces/{subject_id}", response_model=DeviceResultResponse)
async def delete_device_face(subject_id: int, device: DeviceClient = Depends(require_device)):
    result = await device.delete_face(subject_id)
    return result.to_dict()
