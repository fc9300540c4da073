"""Image upload validation and the Cloudinary client.

Uploads are checked twice: the declared content type must be one of the
accepted image types, and the bytes themselves must open as an image in
Pillow. Only then are they handed to the Cloudinary SDK, which stores
them with automatic quality and format transformations.
"""

import io
import logging
from dataclasses import dataclass
from typing import Optional

import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from PIL import Image, UnidentifiedImageError

from ..config import Settings
from ..errors import BadRequestError, ServiceUnavailableError, UpstreamError

logger = logging.getLogger("qeema.upload")

ALLOWED_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}
# Pillow format name -> content types it may arrive as
_FORMAT_TYPES = {
    "JPEG": {"image/jpeg"},
    "PNG": {"image/png"},
    "GIF": {"image/gif"},
    "WEBP": {"image/webp"},
}
TRANSFORMATIONS = [{"quality": "auto:good"}, {"fetch_format": "auto"}]


def _human_size(n: int) -> str:
    if n >= 1024 * 1024:
        return f"{n / (1024 * 1024):g}MB"
    return f"{n / 1024:g}KB"


def validate_image(payload: bytes, content_type: Optional[str], max_bytes: int) -> str:
    """Check an uploaded image and return its Pillow format name.

    Raises `BadRequestError` for an empty or oversized payload, a content
    type outside the allowed set, or bytes that are not a real image of
    that type.
    """
    if not payload:
        raise BadRequestError("No file uploaded")
    if len(payload) > max_bytes:
        raise BadRequestError(f"File too large; maximum size is {_human_size(max_bytes)}")
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise BadRequestError("Only image files (JPEG, PNG, GIF, WebP) are allowed")
    try:
        with Image.open(io.BytesIO(payload)) as img:
            fmt = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError):
        raise BadRequestError("Uploaded file is not a valid image")
    if content_type not in _FORMAT_TYPES.get(fmt, set()):
        raise BadRequestError("Uploaded file content does not match its content type")
    return fmt


@dataclass
class UploadResult:
    url: str
    public_id: str
    width: Optional[int] = None
    height: Optional[int] = None


class CloudinaryUploader:
    """Uploads images to one Cloudinary account and folder."""

    def __init__(self, cloud_name: str, api_key: str, api_secret: str, folder: str = "qeema"):
        self.cloud_name = cloud_name
        self.api_key = api_key
        self.api_secret = api_secret
        self.folder = folder

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudinaryUploader":
        if not settings.upload_configured:
            raise ServiceUnavailableError()
        return cls(
            settings.CLOUDINARY_CLOUD_NAME,
            settings.CLOUDINARY_API_KEY,
            settings.CLOUDINARY_API_SECRET,
            settings.CLOUDINARY_FOLDER,
        )

    def upload(self, payload: bytes, filename: Optional[str] = None) -> UploadResult:
        """Upload the image; credentials go per call so the global SDK config stays untouched."""
        try:
            result = cloudinary.uploader.upload(
                io.BytesIO(payload),
                filename=filename or "upload",
                folder=self.folder,
                resource_type="image",
                transformation=TRANSFORMATIONS,
                cloud_name=self.cloud_name,
                api_key=self.api_key,
                api_secret=self.api_secret,
            )
            uploaded = UploadResult(
                url=result["secure_url"],
                public_id=result["public_id"],
                width=result.get("width"),
                height=result.get("height"),
            )
        except (cloudinary.exceptions.Error, KeyError) as exc:
            logger.warning("cloudinary upload failed: %s", exc)
            raise UpstreamError("Failed to upload image")
        logger.info("image uploaded public_id=%s bytes=%d", uploaded.public_id, len(payload))
        return uploaded
