"""Image uploads to Firebase Storage."""

from __future__ import annotations

import base64
import binascii
import mimetypes
import re
import uuid

from firebase_admin import storage
from flask import current_app

from .errors import UploadError, ValidationError

DATA_URI_PATTERN = re.compile(
    r"^data:(?P<mime>image/[\w.+-]+);base64,(?P<data>[A-Za-z0-9+/=\s]+)$"
)


def decode_data_uri(image: str) -> tuple[str, bytes]:
    """Split a base64 image data URI into its content type and raw bytes."""
    match = DATA_URI_PATTERN.match(image.strip()) if isinstance(image, str) else None
    if not match:
        raise ValidationError("Image must be a base64 encoded image data URI.")
    try:
        content = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError) as e:
        raise ValidationError("Image data is not valid base64.") from e
    if not content:
        raise ValidationError("Image data is empty.")
    return match.group("mime"), content


def upload_image(image: str, folder: str) -> str:
    """Upload an image data URI to the default bucket and return its public URL."""
    content_type, content = decode_data_uri(image)
    extension = mimetypes.guess_extension(content_type) or ".img"
    blob_path = f"{folder}/{uuid.uuid4().hex}{extension}"
    try:
        bucket = storage.bucket()
        blob = bucket.blob(blob_path)
        blob.upload_from_string(content, content_type=content_type)
        blob.make_public()
        return blob.public_url
    except Exception as e:
        current_app.logger.error(f"Error uploading image to {blob_path}: {e}")
        raise UploadError("Image upload failed.") from e
