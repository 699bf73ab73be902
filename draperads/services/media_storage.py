from __future__ import annotations

import logging
import mimetypes
import secrets
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from draperads.config import settings

logger = logging.getLogger(__name__)

ALLOWED_MEDIA_PREFIXES = ("image/", "video/")
_CHUNK_SIZE = 1024 * 1024


class MediaValidationError(ValueError):
    pass


@dataclass(frozen=True)
class StoredMedia:
    filename: str
    path: Path
    content_type: str
    size_bytes: int

    @property
    def url(self) -> str:
        return f"/uploads/{self.filename}"

    @property
    def is_image(self) -> bool:
        return self.content_type.startswith("image/")


def resolve_content_type(content_type: str | None, filename: str | None) -> str:
    resolved = (content_type or "").split(";")[0].strip().lower()
    if not resolved and filename:
        guessed, _ = mimetypes.guess_type(filename)
        if guessed:
            resolved = guessed.lower()
    return resolved


class LocalMediaStorage:
    """Writes uploaded media under a local directory served at /uploads."""

    def __init__(self, *, root: Path, max_bytes: int) -> None:
        self.root = root
        self.max_bytes = max_bytes

    @classmethod
    def from_settings(cls) -> "LocalMediaStorage":
        return cls(root=Path(settings.UPLOAD_DIR), max_bytes=settings.UPLOAD_MAX_BYTES)

    def _generate_filename(self, original_name: str | None) -> str:
        suffix = Path(original_name or "").suffix.lower()
        return f"media-{int(time.time() * 1000)}-{secrets.randbelow(10**9)}{suffix}"

    def save(self, stream: BinaryIO, *, original_name: str | None, content_type: str | None) -> StoredMedia:
        resolved_type = resolve_content_type(content_type, original_name)
        if not resolved_type.startswith(ALLOWED_MEDIA_PREFIXES):
            raise MediaValidationError("Only image and video files are allowed")

        self.root.mkdir(parents=True, exist_ok=True)
        filename = self._generate_filename(original_name)
        destination = self.root / filename
        written = 0
        try:
            with destination.open("wb") as handle:
                while True:
                    chunk = stream.read(_CHUNK_SIZE)
                    if not chunk:
                        break
                    written += len(chunk)
                    if written > self.max_bytes:
                        raise MediaValidationError(f"File exceeds the {self.max_bytes} byte limit")
                    handle.write(chunk)
        except MediaValidationError:
            destination.unlink(missing_ok=True)
            raise

        logger.info(
            "Stored uploaded media",
            extra={"media_filename": filename, "content_type": resolved_type, "size_bytes": written},
        )
        return StoredMedia(filename=filename, path=destination, content_type=resolved_type, size_bytes=written)
