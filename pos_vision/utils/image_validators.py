"""Validation of base64 image payloads sent by the scanner clients.

Clients post camera frames as base64, usually as ``data:image/...;base64,``
URLs. Payloads are decoded strictly, size-checked, and identified by their
magic numbers so a mislabeled or non-image upload never reaches the model.
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass
from hashlib import sha256
from typing import Literal, Optional

from pos_vision.core.config import settings
from pos_vision.core.errors import ValidationAppError

logger = logging.getLogger(__name__)

ImageType = Literal["jpeg", "png", "gif", "webp"]

_DATA_URL_RE = re.compile(r"^data:image/[a-zA-Z0-9.+-]+;base64,")
_WHITESPACE_RE = re.compile(r"\s+")

MIME_TYPES: dict[str, str] = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "gif": "image/gif",
    "webp": "image/webp",
}


@dataclass(frozen=True)
class DecodedImage:
    """A validated image ready to be forwarded to the model."""

    data: bytes
    image_type: ImageType

    @property
    def mime_type(self) -> str:
        return MIME_TYPES[self.image_type]

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def digest(self) -> str:
        return sha256(self.data).hexdigest()

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


def strip_data_url_prefix(image: str) -> str:
    """Remove a leading ``data:image/<type>;base64,`` prefix if present."""
    return _DATA_URL_RE.sub("", image.strip(), count=1)


def detect_image_type(data: bytes) -> Optional[ImageType]:
    """Identify the image format from its magic number.

    Returns:
        The detected type, or None for unsupported/unknown content.
    """
    if data.startswith(b"\xff\xd8\xff"):
        return "jpeg"
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "png"
    if data.startswith((b"GIF87a", b"GIF89a")):
        return "gif"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "webp"
    return None


def decode_image(image: str, *, max_bytes: int | None = None) -> DecodedImage:
    """Decode and validate a base64 image payload.

    Args:
        image: Raw base64 or data URL.
        max_bytes: Size limit on the decoded bytes; defaults to
            ``APP_MAX_IMAGE_SIZE_MB``.

    Returns:
        DecodedImage with the raw bytes and detected type.

    Raises:
        ValidationAppError: If the payload is empty, not valid base64, too
            large, or not a supported image format.
    """
    limit = max_bytes if max_bytes is not None else settings.app.max_image_size_mb * 1024 * 1024

    payload = _WHITESPACE_RE.sub("", strip_data_url_prefix(image or ""))
    if not payload:
        raise ValidationAppError(code="missing_image", message="No image provided")

    # Reject before decoding: base64 expands by 4/3
    if len(payload) * 3 // 4 > limit + 2:
        logger.warning(
            "image_validation.rejected_by_length",
            extra={"encoded_chars": len(payload), "max_bytes": limit},
        )
        raise ValidationAppError(
            code="image_too_large",
            message=f"Image too large. Maximum size: {limit} bytes",
            details={"max_bytes": limit},
        )

    try:
        data = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as exc:
        logger.warning("image_validation.invalid_base64", extra={"encoded_chars": len(payload)})
        raise ValidationAppError(
            code="invalid_image_encoding",
            message="Image must be base64 encoded",
        ) from exc

    if not data:
        raise ValidationAppError(code="missing_image", message="No image provided")

    if len(data) > limit:
        raise ValidationAppError(
            code="image_too_large",
            message=f"Image too large. Maximum size: {limit} bytes",
            details={"max_bytes": limit, "actual_bytes": len(data)},
        )

    image_type = detect_image_type(data)
    if image_type is None:
        logger.warning(
            "image_validation.unsupported_type",
            extra={"actual_prefix": data[:8].hex()},
        )
        raise ValidationAppError(
            code="unsupported_image_type",
            message="Unsupported image type. Only JPEG, PNG, GIF and WEBP are allowed.",
        )

    logger.debug(
        "image_validation.accepted",
        extra={"image_type": image_type, "size_bytes": len(data)},
    )
    return DecodedImage(data=data, image_type=image_type)
