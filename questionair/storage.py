"""On-disk storage for voice notes and recommendation uploads.

Files are stored flat under one root per kind with an opaque
``<uuid>.<ext>`` name; the database only ever references that name, never a
client-supplied path.
"""
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile

from .errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

CHUNK_SIZE = 1024 * 1024


@dataclass
class StoredFile:
    name: str
    size: int
    path: Path


def _megabytes(n: int) -> str:
    return f"{n // (1024 * 1024)}MB"


class FileStore:
    def __init__(self, root: Path):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, name: str) -> Path:
        abspath = (self.root / name).resolve()
        root = self.root.resolve()
        if root not in abspath.parents:
            raise NotFound("File not found")
        return abspath

    async def save(self, upload: UploadFile, *, suffix: str, max_bytes: int) -> StoredFile:
        """Stream ``upload`` to disk, refusing anything larger than ``max_bytes``."""
        name = f"{uuid.uuid4()}{suffix}"
        dest = self.root / name
        size = 0
        try:
            with open(dest, "wb") as w:
                while True:
                    chunk = await upload.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    size += len(chunk)
                    if size > max_bytes:
                        raise ValidationFailed(f"File too large. Maximum size is {_megabytes(max_bytes)}.")
                    w.write(chunk)
        except BaseException:
            self.delete(name)
            raise
        logger.debug("Stored upload %s (%d bytes) under %s", name, size, self.root)
        return StoredFile(name=name, size=size, path=dest)

    def delete(self, name: str | None) -> bool:
        """Best-effort removal; failures are logged, never raised."""
        if not name:
            return False
        try:
            self.path_for(name).unlink()
            return True
        except FileNotFoundError:
            return False
        except Exception:  # noqa: BLE001
            logger.exception("Failed to delete stored file %s", name)
            return False


__all__ = ["FileStore", "StoredFile"]
