"""
Flat-file JSON storage.

Each collection is one JSON array on disk (``<data_dir>/<name>.json``). Reads
load the whole array, writes replace it. Every mutation runs under a lock
owned by the collection so writers inside one process never lose updates;
writers in separate processes are not coordinated.

The query surface mirrors the small subset of the pymongo collection API the
handlers need (``find``, ``find_one``, ``insert_one``, ``update_one``,
``delete_one``, ``delete_many``) with plain equality filters.
"""

import json
import logging
import os
import tempfile
import threading
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from config import get_settings

logger = logging.getLogger(__name__)

Document = Dict[str, Any]
Seed = Union[List[Document], Callable[[], List[Document]]]


def _matches(doc: Document, filt: Optional[Dict[str, Any]]) -> bool:
    if not filt:
        return True
    return all(doc.get(key) == value for key, value in filt.items())


class JsonCollection:
    """A single JSON-array collection keyed by integer ``id``."""

    def __init__(self, path: Path, seed: Optional[Seed] = None):
        self.path = Path(path)
        self.name = self.path.stem
        self._lock = threading.RLock()
        if not self.path.exists():
            initial = seed() if callable(seed) else list(seed or [])
            self._write(initial)

    @property
    def lock(self):
        """Re-entrant lock; hold it to make a read-check-write sequence atomic."""
        return self._lock

    # ------- raw file access -------

    def _read(self) -> List[Document]:
        if not self.path.exists():
            return []
        try:
            raw = self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.warning(f"Could not read collection {self.name}: {e}")
            return []
        if not raw.strip():
            return []
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Collection {self.name} holds invalid JSON, treating as empty: {e}")
            return []
        if not isinstance(data, list):
            logger.warning(f"Collection {self.name} is not a JSON array, treating as empty")
            return []
        return [d for d in data if isinstance(d, dict)]

    def _write(self, docs: List[Document]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.name}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(docs, fh, indent=2, ensure_ascii=False)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    # ------- queries -------

    def find(self, filt: Optional[Dict[str, Any]] = None) -> List[Document]:
        with self._lock:
            return [d for d in self._read() if _matches(d, filt)]

    def find_one(self, filt: Optional[Dict[str, Any]] = None) -> Optional[Document]:
        for doc in self.find(filt):
            return doc
        return None

    def get(self, doc_id: int) -> Optional[Document]:
        return self.find_one({"id": doc_id})

    def count(self, filt: Optional[Dict[str, Any]] = None) -> int:
        return len(self.find(filt))

    # ------- mutations -------

    def insert_one(self, doc: Document) -> Document:
        """Append ``doc`` with the next integer id and return the stored copy."""
        with self._lock:
            docs = self._read()
            stored = dict(doc)
            stored["id"] = max((d.get("id", 0) for d in docs), default=0) + 1
            docs.append(stored)
            self._write(docs)
            return stored

    def update_one(self, filt: Dict[str, Any], changes: Document) -> Optional[Document]:
        """Merge ``changes`` into the first match. Returns the updated doc or None."""
        with self._lock:
            docs = self._read()
            for i, doc in enumerate(docs):
                if _matches(doc, filt):
                    updated = {**doc, **changes, "id": doc.get("id")}
                    docs[i] = updated
                    self._write(docs)
                    return updated
            return None

    def replace_one(self, filt: Dict[str, Any], doc: Document) -> Optional[Document]:
        with self._lock:
            docs = self._read()
            for i, existing in enumerate(docs):
                if _matches(existing, filt):
                    replacement = {**doc, "id": existing.get("id")}
                    docs[i] = replacement
                    self._write(docs)
                    return replacement
            return None

    def delete_one(self, filt: Dict[str, Any]) -> bool:
        with self._lock:
            docs = self._read()
            for i, doc in enumerate(docs):
                if _matches(doc, filt):
                    del docs[i]
                    self._write(docs)
                    return True
            return False

    def delete_many(self, filt: Dict[str, Any]) -> int:
        with self._lock:
            docs = self._read()
            kept = [d for d in docs if not _matches(d, filt)]
            removed = len(docs) - len(kept)
            if removed:
                self._write(kept)
            return removed

    def replace_all(self, docs: Iterable[Document]) -> None:
        with self._lock:
            self._write(list(docs))


class Database:
    """Directory of JSON collections, indexed like a pymongo database."""

    def __init__(self, data_dir: Union[str, Path]):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.name = self.data_dir.name
        self._collections: Dict[str, JsonCollection] = {}
        self._lock = threading.Lock()

    def collection(self, name: str, seed: Optional[Seed] = None) -> JsonCollection:
        with self._lock:
            if name not in self._collections:
                self._collections[name] = JsonCollection(self.data_dir / f"{name}.json", seed=seed)
            return self._collections[name]

    def __getitem__(self, name: str) -> JsonCollection:
        return self.collection(name)

    def list_collection_names(self) -> List[str]:
        return sorted(p.stem for p in self.data_dir.glob("*.json"))


@lru_cache
def get_db() -> Database:
    return Database(get_settings().data_dir)
