import structlog
from fastapi import APIRouter, Depends, File, UploadFile

from shared.config import settings
from shared.errors import InvalidInput
from shared.security import get_current_user

from .schemas import AssetResponse
from .storage import get_asset_store

logger = structlog.get_logger(__name__)

router = APIRouter()
public_router = APIRouter()  # For any public endpoints (e.g. health check)


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "asset", "status": "running"}


@router.post("/", response_model=AssetResponse, status_code=201)
async def upload_image(
    file: UploadFile = File(...),
    user_id: str = Depends(get_current_user),
    assets=Depends(get_asset_store),
):
    """Store sticker artwork and return the URL to put on a draft order."""
    if not (file.content_type or "").startswith("image/"):
        raise InvalidInput("Only image uploads are accepted")

    # Read one byte past the limit so oversized files are caught without buffering them whole
    data = await file.read(settings.MAX_UPLOAD_BYTES + 1)
    if not data:
        raise InvalidInput("Uploaded file is empty")
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise InvalidInput(f"Image exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)}MB limit")

    url = await assets.store(data, filename=file.filename)
    logger.info("image_uploaded", user_id=user_id, size_bytes=len(data))
    return AssetResponse(url=url)
