"""Soil report upload gate and storage naming."""

import time
from typing import NamedTuple, Optional

from werkzeug.utils import secure_filename

ALLOWED_TYPES = ('image/jpeg', 'image/png', 'application/pdf')
MAX_UPLOAD_BYTES = 5 * 1024 * 1024


class UploadRejection(NamedTuple):
    title: str
    message: str


INVALID_TYPE = UploadRejection("Invalid File Type", "Please upload a JPG, PNG, or PDF file")
TOO_LARGE = UploadRejection("File Too Large", "Please upload a file smaller than 5MB")


class SoilReport(NamedTuple):
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self):
        return len(self.data)

    @classmethod
    def from_file_storage(cls, storage):
        """Read a werkzeug FileStorage into memory."""
        return cls(filename=storage.filename or '',
                   content_type=storage.mimetype or '',
                   data=storage.read())


def check_upload(content_type: str, size: int) -> Optional[UploadRejection]:
    """Return None when the file is acceptable, otherwise why it is not."""
    if content_type not in ALLOWED_TYPES:
        return INVALID_TYPE
    if size > MAX_UPLOAD_BYTES:
        return TOO_LARGE
    return None


def storage_path(user_id: str, filename: str, now: Optional[float] = None) -> str:
    """`<user_id>/<epoch millis>.<extension of the original name>`"""
    millis = int((time.time() if now is None else now) * 1000)
    extension = secure_filename(filename).rsplit('.', 1)[-1]
    return f"{user_id}/{millis}.{extension}"
