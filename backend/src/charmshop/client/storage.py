"""Persistent key/value stores backing the client cache mirror.

Both stores hold strings under string keys and enforce a byte quota, raising
QuotaExceededError the way browser storage does when it is full.
"""
import os
from pathlib import Path
from typing import Dict, Iterator, Optional, Protocol
from urllib.parse import quote, unquote


class StorageError(Exception):
    """A persistent store could not complete an operation."""


class QuotaExceededError(StorageError):
    """Writing the value would exceed the store's byte quota."""


class Storage(Protocol):
    def get_item(self, key: str) -> Optional[str]: ...

    def set_item(self, key: str, value: str) -> None: ...

    def remove_item(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class MemoryStorage:
    """Dict-backed store, used in tests and when no cache directory is configured."""

    def __init__(self, quota_bytes: Optional[int] = None):
        self.quota_bytes = quota_bytes
        self._items: Dict[str, str] = {}

    def _size_without(self, key: str) -> int:
        return sum(len(k) + len(v.encode("utf-8")) for k, v in self._items.items() if k != key)

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.quota_bytes is not None:
            needed = self._size_without(key) + len(key) + len(value.encode("utf-8"))
            if needed > self.quota_bytes:
                raise QuotaExceededError(f"Storing {key} needs {needed} bytes, quota is {self.quota_bytes}")
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._items))


class FileStorage:
    """
    One file per key under a directory.

    Writes go through a temporary file and os.replace so a crash never leaves a
    half-written entry behind.
    """

    SUFFIX = ".json"

    def __init__(self, directory: Path, quota_bytes: Optional[int] = None):
        self.directory = Path(directory)
        self.quota_bytes = quota_bytes

    def _path(self, key: str) -> Path:
        return self.directory / f"{quote(key, safe='')}{self.SUFFIX}"

    def _used_bytes(self, exclude: Path) -> int:
        if not self.directory.exists():
            return 0
        return sum(p.stat().st_size for p in self.directory.glob(f"*{self.SUFFIX}") if p != exclude)

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as e:
            raise StorageError(f"Could not read {key}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        encoded = value.encode("utf-8")
        try:
            if self.quota_bytes is not None and self._used_bytes(path) + len(encoded) > self.quota_bytes:
                raise QuotaExceededError(f"Storing {key} would exceed the {self.quota_bytes} byte quota")
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_bytes(encoded)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Could not write {key}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e

    def keys(self) -> Iterator[str]:
        if not self.directory.exists():
            return iter(())
        return iter([unquote(p.name[: -len(self.SUFFIX)]) for p in self.directory.glob(f"*{self.SUFFIX}")])
