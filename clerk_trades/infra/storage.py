"""JSON array stores holding the link history and reconciled trades."""

from __future__ import annotations

import json
import os
import shutil
import tempfile
from pathlib import Path
from threading import Lock
from typing import Callable, Generic, Iterable, TypeVar

from pydantic import ValidationError

from ..errors import StoreError
from ..models import TradeRecord

T = TypeVar("T")

BACKUP_SUFFIX = ".bak"


def write_json_atomic(path: Path, payload: object) -> Path:
    """Atomically persist ``payload`` as two-space indented JSON."""

    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", dir=str(path.parent), delete=False
    ) as handle:
        json.dump(payload, handle, indent=2, ensure_ascii=False)
        handle.flush()
        try:
            os.fsync(handle.fileno())
        except OSError:
            pass
        temp_name = handle.name
    Path(temp_name).replace(path)
    return path


def read_json_array(path: Path) -> list:
    """Load a JSON array from ``path``, creating ``[]`` when the file is absent."""

    if not path.exists():
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("[]", encoding="utf-8")
        return []
    try:
        data = json.loads(path.read_text(encoding="utf-8") or "[]")
    except json.JSONDecodeError as exc:
        raise StoreError(f"failed to unmarshal JSON in {path}: {exc}") from exc
    if not isinstance(data, list):
        raise StoreError(f"{path} must contain a JSON array")
    return data


class JsonArrayStore(Generic[T]):
    """Ordered, append-only collection mirrored to a JSON array file.

    Every mutation goes through :meth:`update`, which holds the store lock for
    the membership test and append only and rewrites the whole file before
    releasing it.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._lock = Lock()
        self._items: list[T] = [self._decode(item) for item in read_json_array(path)]

    def _decode(self, raw: object) -> T:
        return raw  # type: ignore[return-value]

    def _encode(self, item: T) -> object:
        return item

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    def items(self) -> list[T]:
        with self._lock:
            return list(self._items)

    def tail(self, count: int) -> list[T]:
        """Return the last ``count`` items in store order."""

        if count <= 0:
            return []
        with self._lock:
            return list(self._items[-count:])

    def update(self, compute: Callable[[list[T]], Iterable[T]]) -> list[T]:
        """Append whatever ``compute`` derives from the current items.

        ``compute`` receives a snapshot and returns the items to add; the file
        is rewritten only when there is something to add.
        """

        with self._lock:
            additions = list(compute(list(self._items)))
            if additions:
                self._persist(self._items + additions)
                self._items.extend(additions)
            return additions

    def reload(self) -> None:
        with self._lock:
            self._items = [self._decode(item) for item in read_json_array(self.path)]

    def _persist(self, items: list[T]) -> None:
        try:
            write_json_atomic(self.path, [self._encode(item) for item in items])
        except OSError as exc:
            raise StoreError(f"failed to write {self.path}: {exc}") from exc


class LinkStore(JsonArrayStore[str]):
    """Duplicate-free, insertion-ordered history of discovered report links."""

    def _decode(self, raw: object) -> str:
        if not isinstance(raw, str):
            raise StoreError(f"{self.path} must contain only link strings")
        return raw

    def __contains__(self, link: object) -> bool:
        with self._lock:
            return link in self._items

    def add_new(self, links: Iterable[str]) -> list[str]:
        """Append links not yet stored, preserving the given order."""

        candidates = list(links)

        def _compute(existing: list[str]) -> list[str]:
            seen = set(existing)
            fresh: list[str] = []
            for link in candidates:
                if link and link not in seen:
                    seen.add(link)
                    fresh.append(link)
            return fresh

        return self.update(_compute)

    @property
    def backup_path(self) -> Path:
        return self.path.with_name(self.path.name + BACKUP_SUFFIX)

    def backup_and_clear(self) -> Path:
        """Move the current history aside so every listing row counts as new."""

        with self._lock:
            try:
                if self.path.exists():
                    shutil.copyfile(self.path, self.backup_path)
                else:
                    write_json_atomic(self.backup_path, [])
            except OSError as exc:
                raise StoreError(f"failed to back up {self.path}: {exc}") from exc
            self._persist([])
            self._items = []
            return self.backup_path

    def restore_backup(self) -> bool:
        """Put back the history saved by :meth:`backup_and_clear`."""

        with self._lock:
            if not self.backup_path.exists():
                return False
            try:
                shutil.copyfile(self.backup_path, self.path)
                self.backup_path.unlink()
            except OSError as exc:
                raise StoreError(f"failed to restore {self.backup_path}: {exc}") from exc
            self._items = [self._decode(item) for item in read_json_array(self.path)]
            return True


class TradeStore(JsonArrayStore[TradeRecord]):
    """Append-only history of reconciled trade records."""

    def _decode(self, raw: object) -> TradeRecord:
        try:
            return TradeRecord.model_validate(raw)
        except ValidationError as exc:
            raise StoreError(f"invalid trade record in {self.path}: {exc}") from exc

    def _encode(self, item: TradeRecord) -> object:
        return item.to_json()


__all__ = [
    "JsonArrayStore",
    "LinkStore",
    "TradeStore",
    "read_json_array",
    "write_json_atomic",
]
