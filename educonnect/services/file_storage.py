"""
Storage for message attachments uploaded by teachers and students.
Files are written to ``settings.upload_dir`` and served from ``/uploads``.
"""

import random
import re
import time
from pathlib import Path

from educonnect.core.config import settings
from educonnect.core.logging_config import get_logger

logger = get_logger(__name__)

UPLOAD_URL_PREFIX = "/uploads"

# Keep ASCII letters, digits, "-" and "_", plus Latin-1/Latin Extended and Vietnamese letters
_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9\-_À-ɏḀ-ỿ]")


class FileStorageError(Exception):
    """Raised when an upload is rejected."""


def max_file_size() -> int:
    return settings.max_upload_size_mb * 1024 * 1024


def upload_dir() -> Path:
    path = Path(settings.upload_dir)
    path.mkdir(parents=True, exist_ok=True)
    return path


def sanitize_filename(filename: str) -> str:
    stem = Path(filename).stem or "file"
    return _UNSAFE_CHARS.sub("_", stem)


def build_stored_name(filename: str) -> str:
    """``{sanitized-stem}-{epoch-ms}-{random}{ext}``; the suffix keeps names unique."""
    ext = _UNSAFE_CHARS.sub("", Path(filename).suffix.lstrip("."))
    unique_suffix = f"{int(time.time() * 1000)}-{random.randint(0, 10**9)}"
    name = f"{sanitize_filename(filename)}-{unique_suffix}"
    return f"{name}.{ext.lower()}" if ext else name


def validate_files(files: list[tuple[str, bytes]]) -> None:
    """Check count and per-file size limits."""
    if not files:
        raise FileStorageError("No files uploaded")
    if len(files) > settings.max_upload_files:
        raise FileStorageError(f"Too many files. Maximum is {settings.max_upload_files} files")

    limit = max_file_size()
    for filename, content in files:
        if len(content) > limit:
            size_mb = len(content) / (1024 * 1024)
            logger.warning(f"Upload too large: {filename} ({size_mb:.2f} MB)")
            raise FileStorageError(
                f"File {filename} is too large. Maximum size is {settings.max_upload_size_mb} MB"
            )


def public_url(stored_name: str) -> str:
    return f"{settings.public_base_url.rstrip('/')}{UPLOAD_URL_PREFIX}/{stored_name}"


def save_files(files: list[tuple[str, bytes]]) -> list[str]:
    """Validate and persist ``(filename, content)`` pairs. Returns their public URLs."""
    validate_files(files)
    target_dir = upload_dir()

    urls = []
    for filename, content in files:
        stored_name = build_stored_name(filename)
        (target_dir / stored_name).write_bytes(content)
        logger.info(f"Stored upload {filename!r} as {stored_name} ({len(content)} bytes)")
        urls.append(public_url(stored_name))
    return urls
