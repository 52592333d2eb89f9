import os
from pathlib import Path

from src.storage.interface import MediaStorage
from src.storage.local import LocalMediaStorage

STORAGE_DIR = Path(os.environ.get("AUTOINSPECT_STORAGE_DIR", "storage"))


def create_storage() -> MediaStorage:
    """Create the media store backing the `inspection-photos` bucket."""
    return LocalMediaStorage(STORAGE_DIR)
