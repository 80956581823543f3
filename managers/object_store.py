"""Object storage collaborators keyed by opaque string keys"""

import logging
import threading
from pathlib import Path
from typing import Dict, Optional, Protocol, Tuple, runtime_checkable

logger = logging.getLogger("AssetIntake")


class ObjectNotFoundError(KeyError):
    """No object stored under the requested key"""


@runtime_checkable
class ObjectStore(Protocol):
    def store(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        """Save bytes under key and return a URL for them"""

    def retrieve(self, key: str) -> bytes:
        ...

    def delete(self, key: str) -> None:
        ...


class InMemoryObjectStore:
    """Process-local store, for tests and single-process runs"""

    def __init__(self, base_url: str = "memory://assets"):
        self.base_url = base_url.rstrip("/")
        self._objects: Dict[str, Tuple[bytes, Optional[str]]] = {}
        self._lock = threading.Lock()

    def store(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        with self._lock:
            self._objects[key] = (bytes(content), content_type)
        return f"{self.base_url}/{key}"

    def retrieve(self, key: str) -> bytes:
        with self._lock:
            if key not in self._objects:
                raise ObjectNotFoundError(key)
            return self._objects[key][0]

    def delete(self, key: str) -> None:
        with self._lock:
            self._objects.pop(key, None)

    def content_type(self, key: str) -> Optional[str]:
        with self._lock:
            entry = self._objects.get(key)
        return entry[1] if entry else None

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._objects

    def __len__(self) -> int:
        with self._lock:
            return len(self._objects)


class LocalObjectStore:
    """Stores objects as files under a root directory"""

    def __init__(self, root: Path):
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        logger.info(f"Initialized LocalObjectStore at {self.root}")

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes the store root: {key}")
        return path

    def store(self, key: str, content: bytes, content_type: Optional[str] = None) -> str:
        path = self._path_for(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(content)
        logger.debug(f"Stored {len(content)} bytes at {key}")
        return path.as_uri()

    def retrieve(self, key: str) -> bytes:
        path = self._path_for(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        return path.read_bytes()

    def delete(self, key: str) -> None:
        path = self._path_for(key)
        if path.is_file():
            path.unlink()
