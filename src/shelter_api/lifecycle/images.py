"""
Inline image encoding.

Uploaded buffers are stored on the pet record as data URLs
(``data:<mime>;base64,<payload>``). Files over the per-file ceiling, or past the
per-request count ceiling, are dropped without failing the request. A file with
a MIME type outside ALLOWED_IMAGE_TYPES fails the whole request.
"""

import base64
from typing import Iterable
from typing import List
from typing import Optional

from loguru import logger
from pydantic import BaseModel
from pydantic import ConfigDict

from shelter_api.lifecycle.exceptions import ValidationFailed

ALLOWED_IMAGE_TYPES = frozenset(
    {
        "image/jpeg",
        "image/jpg",
        "image/png",
        "image/gif",
        "image/webp",
    }
)

MIB = 1024 * 1024


class UploadedImage(BaseModel):
    """One uploaded file, already read into memory."""

    filename: str = ""
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ImageLimits(BaseModel):
    """Ceilings applied before an image is accepted into a pet's image list."""

    max_file_bytes: int
    max_files: int
    max_encoded_length: Optional[int] = None

    model_config = ConfigDict(frozen=True)


DONATION_IMAGE_LIMITS = ImageLimits(max_file_bytes=1 * MIB, max_files=3, max_encoded_length=int(1.5 * MIB))
LISTING_IMAGE_LIMITS = ImageLimits(max_file_bytes=5 * MIB, max_files=5)


def to_data_url(data: bytes, content_type: str) -> str:
    return f"data:{content_type};base64,{base64.b64encode(data).decode('ascii')}"


def encode_images(uploads: Iterable[UploadedImage], limits: ImageLimits) -> List[str]:
    """
    Convert uploads to data URLs, keeping at most ``limits.max_files`` that fit.

    Parameters
    ----------
    uploads : Iterable[UploadedImage]
        Files in the order they were uploaded
    limits : ImageLimits
        Per-file and per-request ceilings

    Returns
    -------
    List[str]
        Encoded images, in upload order

    Raises
    ------
    ValidationFailed
        If any file is not an allowed image type
    """
    uploads = list(uploads)
    for upload in uploads:
        if upload.content_type not in ALLOWED_IMAGE_TYPES:
            raise ValidationFailed(
                f"Invalid file type '{upload.content_type}' for {upload.filename or 'upload'}. "
                "Only JPEG, PNG, GIF, and WebP images are allowed."
            )

    encoded: List[str] = []
    for index, upload in enumerate(uploads):
        if len(encoded) >= limits.max_files:
            logger.warning(
                "Dropping image past per-request limit",
                filename=upload.filename,
                position=index + 1,
                max_files=limits.max_files,
            )
            continue

        if upload.size > limits.max_file_bytes:
            logger.warning(
                "Dropping oversized image",
                filename=upload.filename,
                size=upload.size,
                max_file_bytes=limits.max_file_bytes,
            )
            continue

        data_url = to_data_url(upload.data, upload.content_type)
        if limits.max_encoded_length is not None and len(data_url) > limits.max_encoded_length:
            logger.warning("Dropping image with oversized encoding", filename=upload.filename, length=len(data_url))
            continue

        encoded.append(data_url)

    logger.debug("Encoded images", received=len(uploads), kept=len(encoded))
    return encoded
