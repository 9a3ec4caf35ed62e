import logging
import sys
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from faceenroll.api.v1.device_routes import router as device_router
from faceenroll.api.v1.enroll_routes import router as enroll_router
from faceenroll.api.v1.subject_routes import router as subject_router
from faceenroll.core.config import settings
from faceenroll.core.device_client import DeviceClient, get_device_client
from faceenroll.core.errors import DeviceConfigError
from faceenroll.db.session import get_db, ping
from faceenroll.schemas.device import DeviceHealth, HealthResponse

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Database provider: {settings.DATABASE_URL.split(':')[0]}")
    logger.info(f"Device: {settings.DEVICE_HOST or 'not configured'}")
    if settings.DEVICE_USE_HTTPS and not settings.DEVICE_VERIFY_TLS:
        logger.warning("TLS certificate verification is disabled for the device")
    yield
    logger.info("Shutting down Face Enrollment API")


app = FastAPI(
    title="Face Enrollment Backend",
    description="Subject search, face enrollment and device face-library mirroring",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(subject_router)   # /api/subjects/...
app.include_router(enroll_router)    # /api/enroll/...
app.include_router(device_router)    # /api/device/...


@app.get("/")
def root():
    return {"status": "Backend running"}


@app.get("/api/health", response_model=HealthResponse)
async def health(
    db: Session = Depends(get_db),
    device: Optional[DeviceClient] = Depends(get_device_client),
):
    device_health = DeviceHealth(
        configured=device is not None and bool(device.config.username),
        connected=False,
        device=device.config.host if device is not None else "not configured",
    )

    try:
        await run_in_threadpool(ping, db)
    except SQLAlchemyError as e:
        logger.error(f"Health check: database unreachable: {e}")
        body = HealthResponse(status="unhealthy", database="disconnected", device=device_health)
        return JSONResponse(status_code=503, content=body.model_dump())

    if device is not None:
        result = await device.test_connection()
        device_health.connected = result.success

    return HealthResponse(status="healthy", database="connected", device=device_health)


@app.exception_handler(DeviceConfigError)
async def device_config_exception_handler(request: Request, exc: DeviceConfigError):
    logger.error(f"Device misconfigured: {exc}")
    return JSONResponse(status_code=503, content={"detail": str(exc)})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("faceenroll.main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
