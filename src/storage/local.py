from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath

import aiofiles
import aiofiles.os

from src.storage.interface import (
    MediaStorage,
    ObjectExistsError,
    ObjectNotFoundError,
    StorageError,
)

logger = logging.getLogger(__name__)


class LocalMediaStorage(MediaStorage):
    """Bucket storage on the local filesystem: `<root>/<bucket>/<path>`."""

    def __init__(self, root: Path, base_url: str = "/storage") -> None:
        self._root = root
        self._base_url = base_url.rstrip("/")

    def _resolve(self, bucket: str, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts or not relative.parts:
            raise StorageError(f"Invalid object path: {path!r}")
        return self._root / bucket / Path(*relative.parts)

    async def upload(self, bucket: str, path: str, content: bytes) -> str:
        target = self._resolve(bucket, path)
        if await aiofiles.os.path.exists(target):
            raise ObjectExistsError(f"{bucket}/{path} already exists")

        await aiofiles.os.makedirs(target.parent, exist_ok=True)
        async with aiofiles.open(target, "wb") as file:
            await file.write(content)

        logger.info("Stored %d bytes at %s/%s", len(content), bucket, path)
        return path

    async def download(self, bucket: str, path: str) -> bytes:
        target = self._resolve(bucket, path)
        if not await aiofiles.os.path.exists(target):
            raise ObjectNotFoundError(f"{bucket}/{path} not found")
        async with aiofiles.open(target, "rb") as file:
            return await file.read()

    def public_url(self, bucket: str, path: str) -> str:
        return f"{self._base_url}/{bucket}/{path}"
