"""
Object storage for uploaded images.

Only used to hand the vision collaborator a durable reference to an upload.
"""

import asyncio
import re
import uuid
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from loguru import logger

from config.constants import DATA_DIR, UPLOADS_DIR
from core.exceptions import ObjectStoreError

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def safe_filename(filename: Optional[str], default: str = "upload.png") -> str:
    """Strip directories and unsafe characters from a client-supplied name."""
    name = Path(filename or "").name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or default


class ObjectStore(ABC):
    """Store bytes, get back a URL."""

    @abstractmethod
    async def store(self, data: bytes, filename: Optional[str] = None) -> str:
        """
        Persist ``data``.

        Raises:
            ObjectStoreError: if the object cannot be written
        """


class LocalObjectStore(ObjectStore):
    """Writes uploads under ``<root>/<uuid>_<name>`` and returns file:// URLs."""

    def __init__(self, root: str | Path = Path(DATA_DIR) / UPLOADS_DIR):
        self.root = Path(root)

    async def store(self, data: bytes, filename: Optional[str] = None) -> str:
        path = self.root / f"{uuid.uuid4().hex}_{safe_filename(filename)}"
        try:
            await asyncio.to_thread(self._write, path, data)
        except OSError as e:
            raise ObjectStoreError(f"Could not store upload: {e}", {"path": str(path)}) from e
        logger.debug(f"Stored upload at {path} ({len(data)} bytes)")
        return path.resolve().as_uri()

    @staticmethod
    def _write(path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
