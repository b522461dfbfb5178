"""
Durable byte storage for database snapshots.
"""

from __future__ import annotations

import asyncio
import os
from abc import ABC, abstractmethod
from pathlib import Path

from loguru import logger


class ByteStorage(ABC):
    """
    Key/value storage for opaque blobs.
    One blob per wallet snapshot.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Get stored bytes for key, None if absent"""

    @abstractmethod
    async def set(self, key: str, data: bytes) -> None:
        """Store bytes under key, raising OSError on failure"""


class MemoryByteStorage(ByteStorage):
    """In-process storage, used for tests and throwaway sessions."""

    def __init__(self) -> None:
        self.blobs: dict[str, bytes] = {}
        self.write_count = 0

    async def get(self, key: str) -> bytes | None:
        return self.blobs.get(key)

    async def set(self, key: str, data: bytes) -> None:
        self.blobs[key] = bytes(data)
        self.write_count += 1


class FileByteStorage(ByteStorage):
    """
    One file per key inside a data directory.

    Writes go to a temp file that is then renamed over the target, so a crash
    mid-write leaves the previous snapshot intact.
    """

    def __init__(self, directory: Path | str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.sqlite"

    async def get(self, key: str) -> bytes | None:
        path = self._path(key)
        if not path.exists():
            return None
        return await asyncio.to_thread(path.read_bytes)

    async def set(self, key: str, data: bytes) -> None:
        await asyncio.to_thread(self._write, self._path(key), bytes(data))

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(path.suffix + ".tmp")
        with open(tmp_path, "wb") as f:
            f.write(data)
            f.flush()
            os.fsync(f.fileno())
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, path)
        logger.debug(f"Wrote {len(data)} bytes to {path}")
