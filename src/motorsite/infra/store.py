# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""YAML-backed table storage.

Each table lives in ``<data_dir>/<table>.yml`` as::

    version: 1
    next_id: 3
    rows:
      - {id: 1, login: alice, ...}

Tables are cached in memory and reloaded when the file's mtime changes. Writes
go through a temporary file and ``os.replace`` so a reader never sees a
half-written table.
"""

from __future__ import annotations

import copy
import logging
import os
import tempfile
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Set

import yaml

from motorsite.core.errors import UniqueConstraintError

logger = logging.getLogger(__name__)


@dataclass
class _Table:
    rows: List[Dict[str, Any]] = field(default_factory=list)
    next_id: int = 1
    mtime: float = 0.0


def _matches(row: Mapping[str, Any], where: Mapping[str, Any]) -> bool:
    return all(row.get(k) == v for k, v in where.items())


class TableStore:
    """Tables of dict rows with find/insert/delete, unique constraints and transactions."""

    def __init__(self, data_dir: Path, *, unique: Optional[Mapping[str, Sequence[str]]] = None):
        self.data_dir = Path(data_dir).resolve()
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.unique: Dict[str, tuple] = {t: tuple(cols) for t, cols in (unique or {}).items()}
        self._tables: Dict[str, _Table] = {}
        self._lock = threading.RLock()
        self._tx_dirty: Optional[Set[str]] = None

    # ------------------ files ------------------

    def _path(self, table: str) -> Path:
        return self.data_dir / f"{table}.yml"

    def _load(self, table: str) -> _Table:
        path = self._path(table)
        try:
            mtime = path.stat().st_mtime if path.exists() else 0.0
        except OSError:
            mtime = 0.0

        cached = self._tables.get(table)
        # Inside a transaction the in-memory copy is authoritative.
        if cached is not None and (self._tx_dirty is not None or cached.mtime == mtime):
            return cached

        if not mtime:
            loaded = _Table()
        else:
            raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
            rows = (raw.get("rows") or []) if isinstance(raw, dict) else []
            rows = [dict(r) for r in rows if isinstance(r, dict)]
            next_id = int(raw.get("next_id") or 0) if isinstance(raw, dict) else 0
            max_id = max((int(r.get("id") or 0) for r in rows), default=0)
            loaded = _Table(rows=rows, next_id=max(next_id, max_id + 1), mtime=mtime)

        self._tables[table] = loaded
        return loaded

    def _write(self, table: str) -> None:
        t = self._tables[table]
        path = self._path(table)
        payload = {"version": 1, "next_id": t.next_id, "rows": t.rows}
        fd, tmp = tempfile.mkstemp(dir=str(self.data_dir), prefix=f".{table}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml.safe_dump(payload, fh, sort_keys=False, allow_unicode=True)
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        t.mtime = path.stat().st_mtime

    def _touched(self, table: str) -> None:
        if self._tx_dirty is not None:
            self._tx_dirty.add(table)
        else:
            self._write(table)

    # ------------------ queries ------------------

    def find_one(self, table: str, **where: Any) -> Optional[Dict[str, Any]]:
        with self._lock:
            for row in self._load(table).rows:
                if _matches(row, where):
                    return dict(row)
        return None

    def find_all(self, table: str, **where: Any) -> List[Dict[str, Any]]:
        with self._lock:
            return [dict(r) for r in self._load(table).rows if _matches(r, where)]

    def insert(self, table: str, record: Mapping[str, Any]) -> Dict[str, Any]:
        """Insert a row and return it with its assigned ``id``."""
        with self._lock:
            t = self._load(table)
            for col in self.unique.get(table, ()):
                value = record.get(col)
                if value is None:
                    continue
                if any(r.get(col) == value for r in t.rows):
                    raise UniqueConstraintError(table, col, value)

            row = {"id": t.next_id, **{k: v for k, v in record.items() if k != "id"}}
            t.next_id += 1
            t.rows.append(row)
            self._touched(table)
            return dict(row)

    def delete(self, table: str, row_id: int) -> int:
        """Delete a row by id. Returns the number of rows removed (0 or 1)."""
        with self._lock:
            t = self._load(table)
            before = len(t.rows)
            t.rows = [r for r in t.rows if r.get("id") != row_id]
            removed = before - len(t.rows)
            if removed:
                self._touched(table)
            return removed

    # ------------------ transactions ------------------

    @contextmanager
    def transaction(self) -> Iterator["TableStore"]:
        """Group writes; on error the in-memory tables are restored and nothing is written.

        Nested calls join the outer transaction.
        """
        with self._lock:
            if self._tx_dirty is not None:
                yield self
                return

            snapshot = copy.deepcopy(self._tables)
            self._tx_dirty = set()
            try:
                yield self
            except BaseException:
                self._tables = snapshot
                self._tx_dirty = None
                logger.warning("Transaction rolled back")
                raise

            dirty, self._tx_dirty = self._tx_dirty, None
            for table in sorted(dirty):
                self._write(table)
