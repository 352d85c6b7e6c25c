"""
lunarwave.database.store — Named JSON Document Store
======================================================

Every piece of Lunarwave state lives in a named document: either a list of
records (``servers``, ``giveaways`` …) or a map keyed by id (``profiles``,
``reviews`` …).  Services always read a whole document, change it, and
write the whole document back.

Backends share one contract:

* ``load(name)`` never raises for I/O or parse problems.  A missing
  document is created empty; an unreadable one is logged and replaced by
  a fresh empty default for that request.
* ``save(name, document)`` logs and swallows write failures.

There is no locking across a load/save pair.  Within one process the API
calls services on the event loop thread, so read-modify-write cycles do not
interleave; separate processes sharing a store can still lose updates.
"""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Protocol

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError

from lunarwave.config import LunarwaveConfig
from lunarwave.constants import STORE_DEFAULTS
from lunarwave.database.engine import create_db_engine, get_session, init_db
from lunarwave.database.models import Document as DocumentRow

logger = logging.getLogger(__name__)

Document = list[Any] | dict[str, Any]


def empty_document(name: str) -> Document:
    """Return the empty default for store *name* (``[]`` or ``{}``).

    Raises
    ------
    KeyError
        If *name* is not a declared store.
    """
    return STORE_DEFAULTS[name]()


class RecordStore(Protocol):
    def load(self, name: str) -> Document:
        ...

    def save(self, name: str, document: Document) -> None:
        ...


# ---------------------------------------------------------------------------
# JSON files — one <name>.json per document
# ---------------------------------------------------------------------------
class JsonFileStore:
    """Documents persisted as pretty-printed JSON files in *data_dir*."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, name: str) -> Path:
        return self.data_dir / f"{name}.json"

    def load(self, name: str) -> Document:
        default = empty_document(name)
        path = self._path(name)
        if not path.exists():
            logger.warning("Store file not found: %s. Initializing…", path)
            self.save(name, default)
            return empty_document(name)

        try:
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logger.error("Error reading or parsing %s: %s", path, exc)
            return default

        if not isinstance(data, type(default)):
            logger.error(
                "Store %s holds %s, expected %s; using empty default",
                path, type(data).__name__, type(default).__name__,
            )
            return default
        return data

    def save(self, name: str, document: Document) -> None:
        path = self._path(name)
        try:
            fd, tmp = tempfile.mkstemp(dir=self.data_dir, prefix=f".{name}.", suffix=".tmp")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as fh:
                    json.dump(document, fh, indent=2)
                os.replace(tmp, path)
            except BaseException:
                Path(tmp).unlink(missing_ok=True)
                raise
        except (OSError, TypeError, ValueError) as exc:
            logger.error("Error writing to %s: %s", path, exc)


# ---------------------------------------------------------------------------
# In-memory — tests and throwaway instances
# ---------------------------------------------------------------------------
class MemoryStore:
    """Process-local store; documents are deep-copied on the way in and out."""

    def __init__(self, initial: dict[str, Document] | None = None) -> None:
        self._documents: dict[str, Document] = {}
        for name, document in (initial or {}).items():
            self.save(name, document)

    def load(self, name: str) -> Document:
        if name not in self._documents:
            self._documents[name] = empty_document(name)
        return copy.deepcopy(self._documents[name])

    def save(self, name: str, document: Document) -> None:
        empty_document(name)
        self._documents[name] = copy.deepcopy(document)


# ---------------------------------------------------------------------------
# SQL — one row per document in the ``documents`` table
# ---------------------------------------------------------------------------
class SqlDocumentStore:
    """Documents stored as JSON values in a SQL table."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    def load(self, name: str) -> Document:
        default = empty_document(name)
        try:
            with get_session(self.engine) as session:
                row = session.get(DocumentRow, name)
                if row is None:
                    logger.warning("Document %r not found. Initializing…", name)
                    session.add(DocumentRow(name=name, body=default))
                    return empty_document(name)
                body = copy.deepcopy(row.body)
        except SQLAlchemyError as exc:
            logger.error("Error reading document %r: %s", name, exc)
            return default

        if not isinstance(body, type(default)):
            logger.error("Document %r has the wrong shape; using empty default", name)
            return default
        return body

    def save(self, name: str, document: Document) -> None:
        empty_document(name)
        try:
            with get_session(self.engine) as session:
                row = session.get(DocumentRow, name)
                if row is None:
                    session.add(DocumentRow(name=name, body=document))
                else:
                    row.body = copy.deepcopy(document)
        except SQLAlchemyError as exc:
            logger.error("Error writing document %r: %s", name, exc)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------
def create_store(cfg: LunarwaveConfig) -> RecordStore:
    """Build the store selected by ``cfg.storage_backend``."""
    if cfg.storage_backend == "sql":
        engine = create_db_engine()
        init_db(engine)
        return SqlDocumentStore(engine)
    return JsonFileStore(cfg.data_dir)


def init_store(store: RecordStore) -> None:
    """Touch every declared document so missing ones are created empty."""
    logger.info("Initializing store documents…")
    for name in STORE_DEFAULTS:
        store.load(name)
    logger.info("Store initialization complete.")
