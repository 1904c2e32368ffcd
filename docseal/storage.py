"""
DocSeal Key-Value Stores
========================

The vault never touches a filesystem or browser directly.  It is handed
one :class:`KeyValueStore` per :class:`StorageTier`:

- :class:`MemoryStore`: process memory (tests, short-lived sessions)
- :class:`JsonFileStore`: a JSON file in the DocSeal config directory,
  owner-only permissions
- :class:`docseal.session_store.SessionStateStore`: Streamlit session state
"""

from __future__ import annotations

import enum
import json
import logging
import os
import platform
from pathlib import Path
from typing import Dict, Optional, Protocol, Union

from docseal.config import config_dir
from docseal.errors import VaultError

logger = logging.getLogger(__name__)


class StorageTier(enum.Enum):
    PERSISTENT = "localStorage"
    SESSION = "sessionStorage"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Dictionary-backed store."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._data

    def snapshot(self) -> Dict[str, str]:
        return dict(self._data)


class JsonFileStore:
    """
    Store persisted as a flat JSON object on disk.

    The file is rewritten on every mutation through an owner-only
    temporary file that atomically replaces it.
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self._path = Path(path) if path is not None else config_dir() / "vault.json"

    @property
    def path(self) -> Path:
        return self._path

    # ----- persistence -----

    def _load(self) -> Dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text("utf-8"))
        except (OSError, ValueError) as exc:
            raise VaultError(f"Cannot read vault file {self._path}.") from exc
        if not isinstance(data, dict):
            raise VaultError(f"Vault file {self._path} does not hold a JSON object.")
        return data

    def _save(self, data: Dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_name(self._path.name + ".tmp")
        # created owner-only, then swapped in atomically
        fd = os.open(tmp, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(json.dumps(data, indent=2))
            if platform.system() != "Windows":
                os.chmod(tmp, 0o600)
            os.replace(tmp, self._path)
        except BaseException:
            try:
                tmp.unlink()
            except FileNotFoundError:
                pass
            raise
        logger.debug("Wrote vault file %s", self._path)

    # ----- operations -----

    def get(self, key: str) -> Optional[str]:
        return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def delete(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._save(data)
