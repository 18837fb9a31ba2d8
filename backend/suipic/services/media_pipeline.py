"""
Media ingestion: validate an upload, normalize it to a bounded WebP and
store it under a server-generated key.

Storage is written only after the image decoded and re-encoded cleanly, so a
rejected or broken upload never leaves an object behind. The caller creates
the Image record only after `ingest()` returns.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple
import io
import logging
import mimetypes
import os
import time
import uuid

from fastapi import Depends
from PIL import Image, ImageOps, UnidentifiedImageError
from pillow_heif import register_heif_opener
from starlette.concurrency import run_in_threadpool

from suipic.core.config import settings
from suipic.core.errors import ValidationFailed
from suipic.services.storage_factory import get_storage
from suipic.services.storage_interface import StorageInterface

logger = logging.getLogger(__name__)

# HEIC/HEIF decoding through Pillow
register_heif_opener()

ALLOWED_CONTENT_TYPES = frozenset({
    "image/jpeg",
    "image/png",
    "image/webp",
    "image/heic",
    "image/heif",
})

OUTPUT_CONTENT_TYPE = "image/webp"
OUTPUT_EXTENSION = "webp"

_EXTENSION_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".heic": "image/heic",
    ".heif": "image/heif",
}

_EXIF_ORIENTATION = 0x0112


@dataclass
class IngestedMedia:
    """Result of a successful ingestion."""

    storage_key: str
    width: int
    height: int
    size_bytes: int
    content_type: str = OUTPUT_CONTENT_TYPE
    metadata: Dict[str, Any] = field(default_factory=dict)


def resolve_content_type(content_type: Optional[str], filename: Optional[str]) -> str:
    """
    Normalize the declared content type.

    Browsers often send `application/octet-stream` (or nothing) for HEIC, so
    in that case the type is guessed from the filename extension.
    """
    declared = (content_type or "").split(";")[0].strip().lower()
    if declared and declared != "application/octet-stream":
        return declared

    extension = os.path.splitext(filename or "")[1].lower()
    if extension in _EXTENSION_TYPES:
        return _EXTENSION_TYPES[extension]
    guessed, _ = mimetypes.guess_type(filename or "")
    return guessed or declared


def validate_upload(content_type: str, size_bytes: Optional[int], max_bytes: int) -> None:
    """
    Reject disallowed, empty or oversize uploads before any decoding.

    `size_bytes` may be None when the size is not known yet; only the type is
    checked then.
    """
    if content_type not in ALLOWED_CONTENT_TYPES:
        raise ValidationFailed(
            f"Unsupported file type '{content_type or 'unknown'}'. "
            f"Allowed: {', '.join(sorted(ALLOWED_CONTENT_TYPES))}"
        )
    if size_bytes is None:
        return
    if size_bytes <= 0:
        raise ValidationFailed("Uploaded file is empty")
    if size_bytes > max_bytes:
        raise ValidationFailed(f"File too large. Maximum size is {max_bytes // (1024 * 1024)} MB")


def compute_target_dimensions(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """
    Scale (width, height) so the longer side is at most max_dimension.

    Aspect ratio is preserved and images are never upscaled.

    Args:
        width: Source width in pixels
        height: Source height in pixels
        max_dimension: Longest edge allowed in the output

    Returns:
        Tuple of (width, height) for the output image
    """
    if width <= max_dimension and height <= max_dimension:
        return width, height
    if width >= height:
        return max_dimension, max(1, round(height * max_dimension / width))
    return max(1, round(width * max_dimension / height)), max_dimension


def generate_storage_key(prefix: str = None) -> str:
    """`<prefix>/<epoch millis>-<uuid4>.webp`, independent of the uploaded filename."""
    prefix = (prefix or settings.STORAGE_PATH_PREFIX).strip("/")
    return f"{prefix}/{int(time.time() * 1000)}-{uuid.uuid4()}.{OUTPUT_EXTENSION}"


def _has_alpha(img: Image.Image) -> bool:
    return img.mode in ("RGBA", "LA", "PA") or (img.mode == "P" and "transparency" in img.info)


def extract_metadata(img: Image.Image) -> Dict[str, Any]:
    """Intrinsic attributes of the decoded source image."""
    orientation = img.getexif().get(_EXIF_ORIENTATION)
    metadata = {
        "width": img.width,
        "height": img.height,
        "format": (img.format or "").lower() or None,
        "space": img.mode,
        "hasAlpha": _has_alpha(img),
        "orientation": int(orientation) if orientation else None,
        "hasIccProfile": bool(img.info.get("icc_profile")),
    }
    dpi = img.info.get("dpi")
    if dpi:
        metadata["density"] = round(float(dpi[0]), 2)
    return metadata


def normalize_image(data: bytes, max_dimension: int, quality: int) -> Tuple[bytes, int, int, Dict[str, Any]]:
    """
    Decode, orient, resize and re-encode an image to WebP (blocking).

    Returns:
        Tuple of (encoded bytes, width, height, source metadata)
    """
    try:
        with Image.open(io.BytesIO(data)) as source:
            source.load()
            metadata = extract_metadata(source)
            has_alpha = _has_alpha(source)

            img = ImageOps.exif_transpose(source)
            # A profile only describes the pixels it came with
            icc_profile = source.info.get("icc_profile") if source.mode in ("RGB", "RGBA") else None
            if img.mode not in ("RGB", "RGBA"):
                img = img.convert("RGBA" if has_alpha else "RGB")

            width, height = compute_target_dimensions(img.width, img.height, max_dimension)
            if (width, height) != img.size:
                img = img.resize((width, height), Image.Resampling.LANCZOS)

            output = io.BytesIO()
            save_kwargs = {"quality": quality}
            if icc_profile:
                save_kwargs["icc_profile"] = icc_profile
            img.save(output, format="WEBP", **save_kwargs)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        logger.info(f"Image decode failed: {e}")
        raise ValidationFailed("Could not decode image")

    return output.getvalue(), width, height, metadata


class MediaIngestionPipeline:
    """Turns an uploaded image into a normalized, stored asset."""

    def __init__(
        self,
        storage: StorageInterface,
        max_dimension: int = None,
        quality: int = None,
        max_bytes: int = None,
        key_prefix: str = None,
    ):
        self.storage = storage
        self.max_dimension = max_dimension or settings.IMAGE_MAX_DIMENSION
        self.quality = quality or settings.IMAGE_QUALITY
        self.max_bytes = max_bytes or settings.max_file_size_bytes
        self.key_prefix = key_prefix or settings.STORAGE_PATH_PREFIX

    def precheck(self, filename: str, content_type: Optional[str], size_bytes: Optional[int]) -> None:
        """Type and size checks that need no file content."""
        validate_upload(resolve_content_type(content_type, filename), size_bytes, self.max_bytes)

    async def ingest(self, data: bytes, filename: str, content_type: Optional[str]) -> IngestedMedia:
        content_type = resolve_content_type(content_type, filename)
        validate_upload(content_type, len(data), self.max_bytes)

        encoded, width, height, metadata = await run_in_threadpool(
            normalize_image, data, self.max_dimension, self.quality
        )

        storage_key = generate_storage_key(self.key_prefix)
        # UpstreamFailure propagates; nothing has been persisted yet
        await run_in_threadpool(self.storage.put, storage_key, encoded, OUTPUT_CONTENT_TYPE)
        logger.info(
            f"Ingested {filename} as {storage_key} "
            f"({metadata['width']}x{metadata['height']} -> {width}x{height}, {len(encoded)} bytes)"
        )

        return IngestedMedia(
            storage_key=storage_key,
            width=width,
            height=height,
            size_bytes=len(encoded),
            metadata=metadata,
        )


def get_media_pipeline(storage: StorageInterface = Depends(get_storage)) -> MediaIngestionPipeline:
    """FastAPI dependency building the pipeline over the configured storage."""
    return MediaIngestionPipeline(storage)
