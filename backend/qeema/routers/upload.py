from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool

from .. import responses
from ..auth import Principal, get_current_principal, get_settings
from ..config import Settings
from ..errors import BadRequestError
from ..schemas import UploadOut
from ..utils.image_upload import CloudinaryUploader, validate_image

router = APIRouter(prefix="/upload", tags=["upload"])


def get_uploader(settings: Settings = Depends(get_settings)) -> CloudinaryUploader:
    """Cloudinary client for the configured account; 503 when unset."""
    return CloudinaryUploader.from_settings(settings)


@router.post("")
async def upload_image(
    image: Optional[UploadFile] = File(default=None),
    _: Principal = Depends(get_current_principal),
    settings: Settings = Depends(get_settings),
    uploader: CloudinaryUploader = Depends(get_uploader),
):
    """Validate an image and store it on Cloudinary, returning its URL and size."""
    if image is None:
        raise BadRequestError("No file uploaded")
    # read one byte past the limit so oversize is detectable without buffering everything
    payload = await image.read(settings.MAX_UPLOAD_BYTES + 1)
    validate_image(payload, image.content_type, settings.MAX_UPLOAD_BYTES)
    result = await run_in_threadpool(uploader.upload, payload, image.filename)
    out = UploadOut(url=result.url, public_id=result.public_id, width=result.width, height=result.height)
    return responses.success(out, "Image uploaded successfully")
