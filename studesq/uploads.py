"""Certificate uploads stored on local disk, one directory per student profile."""

import logging
import os
import re
import time
from dataclasses import dataclass

from studesq.core import config
from studesq.core.constants import ALLOWED_MIME_TYPES

logger = logging.getLogger(__name__)

PUBLIC_PATH = '/uploads'


class UploadError(Exception):
    def __init__(self, code: str, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


@dataclass(frozen=True)
class UploadedFile:
    filename: str
    path: str
    public_url: str
    size: int
    mimetype: str


def validate_file_size(size: int, max_size: int | None = None) -> None:
    limit = max_size if max_size is not None else config.MAX_UPLOAD_SIZE
    if size > limit:
        raise UploadError('FILE_TOO_LARGE', f'File size exceeds {limit / 1024 / 1024:g}MB limit')


def validate_mime_type(mimetype: str) -> None:
    if mimetype not in ALLOWED_MIME_TYPES:
        raise UploadError(
            'INVALID_TYPE',
            f"File type {mimetype} not allowed. Allowed types: {', '.join(ALLOWED_MIME_TYPES)}",
        )


def validate_extension(filename: str) -> None:
    extension = os.path.splitext(filename)[1].lower()
    if extension not in config.ALLOWED_EXTENSIONS:
        raise UploadError(
            'INVALID_TYPE',
            f"File extension {extension} not allowed. Allowed extensions: {', '.join(config.ALLOWED_EXTENSIONS)}",
        )


def validate_file(filename: str, size: int, mimetype: str) -> None:
    validate_file_size(size)
    validate_mime_type(mimetype)
    validate_extension(filename)


def generate_safe_filename(original_filename: str, timestamp_ms: int | None = None) -> str:
    basename = os.path.basename(original_filename.replace('\\', '/'))
    sanitized = re.sub(r'_{2,}', '_', re.sub(r'[^a-zA-Z0-9.-]', '_', basename))
    name, extension = os.path.splitext(sanitized)
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    return f'{name}_{stamp}{extension}'


def student_upload_dir(student_id: str, upload_root: str | None = None) -> str:
    return os.path.join(upload_root or config.UPLOAD_DIR, student_id)


def save_upload(
    content: bytes,
    original_filename: str,
    mimetype: str,
    student_id: str,
    upload_root: str | None = None,
) -> UploadedFile:
    validate_file(original_filename, len(content), mimetype)

    safe_filename = generate_safe_filename(original_filename)
    directory = student_upload_dir(student_id, upload_root)
    path = os.path.join(directory, safe_filename)
    try:
        os.makedirs(directory, exist_ok=True)
        with open(path, 'wb') as handle:
            handle.write(content)
    except OSError as exc:
        logger.exception('Failed to save upload for student %s', student_id)
        raise UploadError('UPLOAD_FAILED', 'Failed to save file') from exc

    return UploadedFile(
        filename=safe_filename,
        path=path,
        public_url=f'{PUBLIC_PATH}/{student_id}/{safe_filename}',
        size=len(content),
        mimetype=mimetype,
    )


def resolve_upload_path(student_id: str, relative_path: str, upload_root: str | None = None) -> str | None:
    """Absolute path of a stored file, or None when it escapes the student's directory."""
    root = os.path.realpath(upload_root or config.UPLOAD_DIR)
    directory = os.path.realpath(os.path.join(root, student_id))
    if directory != os.path.join(root, student_id):
        return None
    candidate = os.path.realpath(os.path.join(directory, relative_path))
    if candidate == directory or os.path.commonpath([directory, candidate]) != directory:
        return None
    return candidate


def discard_upload(uploaded: UploadedFile) -> None:
    """Remove a stored file whose database record was never written."""
    try:
        os.remove(uploaded.path)
    except FileNotFoundError:
        return
    except OSError:
        logger.exception('Failed to remove orphaned upload %s', uploaded.path)
