"""
On-device key-value storage used for anonymous/offline durability.

Values are JSON-serializable objects stored under fixed keys (the
conversation blob, the cached Gmail token). Each browser session or
signed-in user reads and writes its own namespace; nothing is shared
between namespaces.
"""

from pathlib import Path
from typing import Any, Dict, Optional, Protocol
import hashlib
import json
import re
import uuid

from utils.logging_config import get_logger


USER_NAMESPACE_PREFIX = "user-"
DEVICE_NAMESPACE_PREFIX = "device-"


def new_device_id() -> str:
    """Random id for one browser session"""
    return uuid.uuid4().hex


def storage_namespace(user_id: Optional[str], device_id: Optional[str] = None) -> str:
    """
    Namespace holding one party's on-device data

    Signed-in users get a namespace derived from their user id, guests one
    per browser session. A guest without a device id gets a fresh namespace
    that nobody else can reach.
    """
    if user_id:
        return USER_NAMESPACE_PREFIX + hashlib.sha256(user_id.encode("utf-8")).hexdigest()[:32]
    return DEVICE_NAMESPACE_PREFIX + (device_id or new_device_id())


class KeyValueStorage(Protocol):
    """Minimal key-value storage port"""

    def get(self, key: str) -> Optional[Any]:
        ...

    def set(self, key: str, value: Any) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class InMemoryKeyValueStorage:
    """Dict-backed storage, scoped to one process"""

    namespace: Optional[str] = None

    def __init__(self, initial: Optional[Dict[str, Any]] = None):
        self._data: Dict[str, Any] = {}
        for key, value in (initial or {}).items():
            self.set(key, value)

    def get(self, key: str) -> Optional[Any]:
        raw = self._data.get(key)
        return None if raw is None else json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        # Serialize eagerly so callers see the same failures as on disk
        self._data[key] = json.dumps(value, ensure_ascii=False)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileKeyValueStorage:
    """One JSON file per key under ``directory/<namespace>``"""

    _SAFE_KEY = re.compile(r"[^A-Za-z0-9_.-]")

    def __init__(self, directory: str, namespace: Optional[str] = None):
        self.logger = get_logger(__name__)
        self.namespace = namespace
        self.directory = Path(directory)
        if namespace:
            self.directory = self.directory / self._safe(namespace)
        self.directory.mkdir(parents=True, exist_ok=True)

    @classmethod
    def _safe(cls, name: str) -> str:
        return cls._SAFE_KEY.sub("_", name)

    def _path(self, key: str) -> Path:
        return self.directory / f"{self._safe(key)}.json"

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            self.logger.warning(f"Ignoring unreadable local storage entry '{key}': {e}")
            return None

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
        tmp_path.replace(path)

    def remove(self, key: str) -> None:
        path = self._path(key)
        if path.exists():
            path.unlink()
