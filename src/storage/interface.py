from __future__ import annotations

from abc import ABC, abstractmethod

MEDIA_BUCKET = "inspection-photos"


class StorageError(Exception):
    """Raised when an object cannot be stored or read."""


class ObjectExistsError(StorageError):
    pass


class ObjectNotFoundError(StorageError):
    pass


class MediaStorage(ABC):
    @abstractmethod
    async def upload(self, bucket: str, path: str, content: bytes) -> str:
        """Store `content` at `path` and return the stored path.

        Existing objects are never overwritten.
        """

    @abstractmethod
    async def download(self, bucket: str, path: str) -> bytes: ...

    @abstractmethod
    def public_url(self, bucket: str, path: str) -> str: ...
