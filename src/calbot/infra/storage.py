"""Object storage for backed-up files.

Only a local-filesystem backend ships here. Keys look like
``groups/<groupId>/<fileId>`` or ``users/<userId>/<fileId>``; the content
type is kept in a sidecar file next to the object.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol


class ObjectNotFoundError(Exception):
    """Raised when a key has no stored object."""


class ObjectStorage(Protocol):
    def put(self, key: str, data: bytes, content_type: str) -> None: ...

    def get(self, key: str) -> tuple[bytes, str]: ...

    def delete(self, key: str) -> bool: ...


class LocalObjectStorage:
    """Stores objects as files below ``root``."""

    _META_SUFFIX = ".content-type"

    def __init__(self, root: str | Path):
        self._root = Path(root).resolve()

    def _path(self, key: str) -> Path:
        path = (self._root / key).resolve()
        # keys come from ids we generate, but never allow escaping the root
        if self._root not in path.parents:
            raise ValueError(f"invalid storage key: {key!r}")
        return path

    def put(self, key: str, data: bytes, content_type: str) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        path.with_name(path.name + self._META_SUFFIX).write_text(content_type, encoding="utf-8")

    def get(self, key: str) -> tuple[bytes, str]:
        path = self._path(key)
        if not path.is_file():
            raise ObjectNotFoundError(key)
        meta = path.with_name(path.name + self._META_SUFFIX)
        content_type = (
            meta.read_text(encoding="utf-8") if meta.is_file() else "application/octet-stream"
        )
        return path.read_bytes(), content_type

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        path.unlink()
        path.with_name(path.name + self._META_SUFFIX).unlink(missing_ok=True)
        return True
