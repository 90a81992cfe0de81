from __future__ import annotations

import base64
from dataclasses import dataclass
from typing import Optional

from .errors import InputValidationError

DEFAULT_IMAGE_MIME = "image/png"


@dataclass(frozen=True)
class UploadedImage:
    """Source image attached to a generation request."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)

    def to_data_url(self) -> str:
        """Encode the image as a ``data:`` URL, used for previews and the model input."""
        mime = self.content_type or DEFAULT_IMAGE_MIME
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{mime};base64,{encoded}"


def validate_upload(image: Optional[UploadedImage], max_bytes: int) -> None:
    """Reject non-image uploads and uploads larger than ``max_bytes``."""
    if image is None:
        return

    if not (image.content_type or "").startswith("image/"):
        raise InputValidationError("Please upload an image file")

    if image.size > max_bytes:
        limit_mb = max_bytes // (1024 * 1024)
        raise InputValidationError(f"File size must be less than {limit_mb}MB")
