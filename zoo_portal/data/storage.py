"""
Persistence collaborators for submissions and the animal catalog.

Submissions are appended to named collections (``bookings``, ``members``) with
a read-modify-write cycle. Two backends are provided:

- :class:`InMemoryCollectionStore` keeps collections in process memory
- :class:`JsonFileCollectionStore` keeps one JSON array file per collection and
  replaces it atomically on every write

The :class:`CatalogStore` holds the current catalog snapshot. It is replaced
wholesale after each successful fetch and appended to when a new animal is
added through the guarded form.
"""

import copy
import json
import os
import tempfile
import threading
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Tuple, Union

import structlog

from zoo_portal.business.models import CatalogRecord

logger = structlog.get_logger(__name__)

BOOKINGS = 'bookings'
MEMBERS = 'members'


class StorageError(Exception):
    """Raised when a collection cannot be read or written."""

    def __init__(self, message: str, collection: Optional[str] = None):
        super().__init__(message)
        self.collection = collection


class CollectionStore(Protocol):
    def read(self, name: str) -> List[Dict[str, Any]]:
        ...

    def append(self, name: str, record: Dict[str, Any]) -> None:
        ...


class InMemoryCollectionStore:
    """Collections held in a dictionary; contents are lost with the process."""

    def __init__(self) -> None:
        self._collections: Dict[str, List[Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    def read(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return copy.deepcopy(self._collections.get(name, []))

    def append(self, name: str, record: Dict[str, Any]) -> None:
        with self._lock:
            records = self._collections.get(name, [])
            self._collections[name] = records + [copy.deepcopy(record)]


class JsonFileCollectionStore:
    """
    One ``<name>.json`` array per collection under ``directory``.

    Writes go to a temporary file in the same directory followed by
    ``os.replace`` so a crash never leaves a half-written collection.

    Args:
        directory: Directory holding the collection files; created on demand
    """

    def __init__(self, directory: Union[str, Path]) -> None:
        self.directory = Path(directory)
        self._lock = threading.Lock()

    def _path(self, name: str) -> Path:
        if not name or os.sep in name or name.startswith('.'):
            raise StorageError(f"Invalid collection name {name!r}", collection=name)
        return self.directory / f"{name}.json"

    def _load(self, name: str) -> List[Dict[str, Any]]:
        path = self._path(name)
        if not path.exists():
            return []
        try:
            with path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except (OSError, ValueError) as e:
            raise StorageError(f"Unable to read collection {name!r}: {e}", collection=name) from e
        if not isinstance(data, list):
            raise StorageError(f"Collection {name!r} is not a JSON array", collection=name)
        return data

    def read(self, name: str) -> List[Dict[str, Any]]:
        with self._lock:
            return self._load(name)

    def append(self, name: str, record: Dict[str, Any]) -> None:
        with self._lock:
            records = self._load(name)
            records.append(record)
            self._write(name, records)

        logger.info("Record appended", collection=name, total_records=len(records))

    def _write(self, name: str, records: List[Dict[str, Any]]) -> None:
        path = self._path(name)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{name}.", suffix='.tmp', dir=self.directory)
            try:
                with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                    json.dump(records, handle, indent=2)
                os.replace(tmp_path, path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            raise StorageError(f"Unable to write collection {name!r}: {e}", collection=name) from e


class CatalogStore:
    """
    Thread-safe holder of the current catalog snapshot.

    Args:
        records: Initial catalog contents
    """

    def __init__(self, records: Optional[Iterable[CatalogRecord]] = None) -> None:
        self._records: Tuple[CatalogRecord, ...] = tuple(records or ())
        self._lock = threading.Lock()

    @classmethod
    def from_json_file(cls, path: Union[str, Path]) -> 'CatalogStore':
        """
        Load a catalog from a JSON array file.

        Raises:
            StorageError: If the file is unreadable or not a valid catalog
        """
        path = Path(path)
        try:
            with path.open('r', encoding='utf-8') as handle:
                data = json.load(handle)
        except OSError as e:
            raise StorageError(f"Unable to read {path.name}", collection='animals') from e
        except ValueError as e:
            raise StorageError(f"Invalid JSON in {path.name}", collection='animals') from e

        if not isinstance(data, list):
            raise StorageError(f"Invalid JSON in {path.name}", collection='animals')
        try:
            return cls(CatalogRecord.model_validate(item) for item in data)
        except ValueError as e:
            raise StorageError(f"Invalid animal record in {path.name}: {e}", collection='animals') from e

    def write_json_file(self, path: Union[str, Path]) -> None:
        """Atomically write the current snapshot as a JSON array."""
        path = Path(path)
        payload = [record.to_payload() for record in self.snapshot()]
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix=f".{path.name}.", suffix='.tmp', dir=path.parent)
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(payload, handle, indent=2)
            os.replace(tmp_path, path)
        except OSError as e:
            raise StorageError(f"Unable to write {path.name}: {e}", collection='animals') from e

    def snapshot(self) -> List[CatalogRecord]:
        with self._lock:
            return list(self._records)

    def replace(self, records: Iterable[CatalogRecord]) -> None:
        new_records = tuple(records)
        with self._lock:
            self._records = new_records
        logger.info("Catalog replaced", record_count=len(new_records))

    def append(self, record: CatalogRecord) -> CatalogRecord:
        """
        Add ``record`` and return it as stored.

        A record whose id is already taken is stored under the highest
        existing id plus one.
        """
        with self._lock:
            taken = {existing.id for existing in self._records}
            if record.id in taken:
                record = record.model_copy(update={'id': max(taken) + 1})
            self._records = self._records + (record,)
        return record

    def find(self, animal_id: int) -> Optional[CatalogRecord]:
        with self._lock:
            for record in self._records:
                if record.id == animal_id:
                    return record
        return None

    def __len__(self) -> int:
        return len(self._records)


__all__ = [
    'BOOKINGS',
    'MEMBERS',
    'StorageError',
    'CollectionStore',
    'InMemoryCollectionStore',
    'JsonFileCollectionStore',
    'CatalogStore',
]
