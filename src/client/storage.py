from __future__ import annotations

import json
import logging
import os
from pathlib import Path

logger = logging.getLogger(__name__)

CLIENT_STATE_PATH = Path(
    os.environ.get(
        "AUTOINSPECT_CLIENT_STATE", Path.home() / ".autoinspect" / "state.json"
    )
)


class LocalStore:
    """String key/value store kept in one JSON file.

    Every write rewrites the whole file through a temporary file and an
    atomic rename, so a crash leaves either the old or the new state.
    """

    def __init__(self, path: Path | None = None) -> None:
        self._path = path or CLIENT_STATE_PATH
        self._data = self._load()

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            logger.exception("Failed to read client state from %s", self._path)
            return {}
        if not isinstance(raw, dict):
            logger.error("Client state in %s is not an object, ignoring", self._path)
            return {}
        return {str(k): v for k, v in raw.items() if isinstance(v, str)}

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        tmp.write_text(json.dumps(self._data), encoding="utf-8")
        os.replace(tmp, self._path)

    def get(self, key: str) -> str | None:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._flush()

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))
