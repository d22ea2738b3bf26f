# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side sessions.

The browser only holds a signed, opaque session id (itsdangerous); the data
lives in a backend keyed by that id. One reserved key, ``flash``, carries data
for the next rendered page and is cleared when read.
"""

from __future__ import annotations

import logging
import os
import re
import secrets
import tempfile
import threading
import time
from pathlib import Path
from typing import Any, Dict, Optional, Protocol, Tuple

import yaml
from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer
from starlette.responses import Response

from motorsite.core.settings import Settings

logger = logging.getLogger(__name__)

FLASH_KEY = "flash"
_SID_RE = re.compile(r"^[A-Za-z0-9_\-]{20,128}$")


def make_serializer(secret: str, salt: str) -> URLSafeTimedSerializer:
    if not secret:
        raise RuntimeError("Missing SECRET_KEY (or MOTOR_SECRET_KEY / app.secret_key)")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


class Session:
    """Key/value data of one client for the current request."""

    def __init__(self, session_id: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.id = session_id
        self._data: Dict[str, Any] = dict(data or {})
        self.modified = False
        self.previous_id: Optional[str] = None

    @property
    def data(self) -> Dict[str, Any]:
        return dict(self._data)

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def has(self, key: str) -> bool:
        return key in self._data

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def delete(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self.modified = True

    def pop_flash(self) -> Dict[str, Any]:
        """Return the flash data (empty dict when none) and clear it."""
        flash = self._data.pop(FLASH_KEY, None)
        if flash is None:
            return {}
        self.modified = True
        return dict(flash)

    def regenerate(self) -> None:
        """Move the data to a new session id on the next save."""
        if self.id is not None:
            self.previous_id = self.id
        self.id = None
        self.modified = True


class SessionBackend(Protocol):
    def read(self, session_id: str) -> Optional[Dict[str, Any]]: ...

    def write(self, session_id: str, data: Dict[str, Any]) -> None: ...

    def touch(self, session_id: str) -> None: ...

    def destroy(self, session_id: str) -> None: ...

    def gc(self) -> int: ...


class MemorySessionBackend:
    """In-process backend, for tests and single-worker development.

    Expired records are dropped when read, and swept on write at most once
    every ``gc_interval`` seconds.
    """

    def __init__(self, max_lifetime: int = 3600, gc_interval: float = 60):
        self.max_lifetime = max_lifetime
        self.gc_interval = gc_interval
        self._items: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()
        self._last_gc = 0.0

    def count(self) -> int:
        return len(self._items)

    def read(self, session_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            item = self._items.get(session_id)
            if item is None:
                return None
            ts, data = item
            if time.time() - ts > self.max_lifetime:
                del self._items[session_id]
                return None
            return dict(data)

    def write(self, session_id: str, data: Dict[str, Any]) -> None:
        now = time.time()
        with self._lock:
            if now - self._last_gc >= self.gc_interval:
                self._sweep(now)
            self._items[session_id] = (now, dict(data))

    def touch(self, session_id: str) -> None:
        with self._lock:
            item = self._items.get(session_id)
            if item is not None:
                self._items[session_id] = (time.time(), item[1])

    def destroy(self, session_id: str) -> None:
        with self._lock:
            self._items.pop(session_id, None)

    def gc(self) -> int:
        with self._lock:
            return self._sweep(time.time())

    def _sweep(self, now: float) -> int:
        # caller holds the lock
        stale = [sid for sid, (ts, _) in self._items.items() if now - ts > self.max_lifetime]
        for sid in stale:
            del self._items[sid]
        self._last_gc = now
        if stale:
            logger.debug("Session gc removed %d record(s)", len(stale))
        return len(stale)


class FileSessionBackend:
    """One YAML file per session id; file mtime is the last-access time."""

    def __init__(self, directory: Path, max_lifetime: int = 3600, gc_interval: float = 60):
        self.directory = Path(directory).resolve()
        self.directory.mkdir(parents=True, exist_ok=True)
        self.max_lifetime = max_lifetime
        self.gc_interval = gc_interval
        self._last_gc = 0.0
        self._gc_lock = threading.Lock()

    def _path(self, session_id: str) -> Path:
        if not _SID_RE.match(session_id or ""):
            raise ValueError("Invalid session id")
        return self.directory / f"sess_{session_id}.yml"

    def read(self, session_id: str) -> Optional[Dict[str, Any]]:
        path = self._path(session_id)
        if not path.exists():
            return None
        if time.time() - path.stat().st_mtime > self.max_lifetime:
            path.unlink(missing_ok=True)
            return None
        raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
        return raw if isinstance(raw, dict) else {}

    def write(self, session_id: str, data: Dict[str, Any]) -> None:
        path = self._path(session_id)
        if time.time() - self._last_gc >= self.gc_interval:
            self.gc()

        # Write to a temp file in the same directory, then atomically replace.
        fd, tmp_name = tempfile.mkstemp(prefix=".sess_", suffix=".tmp", dir=str(self.directory))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                yaml.safe_dump(data, fh, sort_keys=False, allow_unicode=True)
            os.replace(tmp_name, path)
        except BaseException:
            try:
                os.unlink(tmp_name)
            except OSError:
                pass
            raise

    def touch(self, session_id: str) -> None:
        path = self._path(session_id)
        if path.exists():
            path.touch()

    def destroy(self, session_id: str) -> None:
        self._path(session_id).unlink(missing_ok=True)

    def gc(self) -> int:
        """Delete session files not accessed within ``max_lifetime``."""
        removed = 0
        with self._gc_lock:
            now = time.time()
            for path in self.directory.glob("sess_*.yml"):
                try:
                    if now - path.stat().st_mtime > self.max_lifetime:
                        path.unlink()
                        removed += 1
                except FileNotFoundError:
                    continue
            self._last_gc = now
        if removed:
            logger.debug("Session gc removed %d file(s)", removed)
        return removed


def backend_from_settings(settings: Settings) -> SessionBackend:
    max_lifetime = int(settings.get("session.gc_maxlifetime", 3600))
    gc_interval = float(settings.get("session.gc_interval", 60))
    kind = str(settings.get("session.backend", "file")).strip().lower()
    if kind == "memory":
        return MemorySessionBackend(max_lifetime=max_lifetime, gc_interval=gc_interval)
    if kind == "file":
        directory = settings.get("session.path") or str(Path(settings.get("app.data_dir", "data")) / "sessions")
        return FileSessionBackend(Path(directory), max_lifetime=max_lifetime, gc_interval=gc_interval)
    raise ValueError(f"Unknown session backend: {kind}")


class SessionManager:
    """Loads the session for a request and persists it on the response."""

    def __init__(self, settings: Settings, backend: SessionBackend):
        self.backend = backend
        self.cookie_name = str(settings.get("session.name", "motor_session"))
        self.lifetime = int(settings.get("session.cookie_lifetime", 3600))
        self.secure = bool(settings.get("session.cookie_secure", True))
        self.httponly = bool(settings.get("session.cookie_httponly", True))
        self.samesite = str(settings.get("session.cookie_samesite", "lax")).lower()
        self._secret = str(settings.get("app.secret_key", "") or "")
        self._salt = str(settings.get("session.salt", "motor.session.v1"))

    def encode_id(self, session_id: str) -> str:
        return make_serializer(self._secret, self._salt).dumps({"sid": session_id})

    def decode_id(self, token: str) -> Optional[str]:
        if not token:
            return None
        try:
            data = make_serializer(self._secret, self._salt).loads(token, max_age=self.lifetime)
        except (BadSignature, BadTimeSignature):
            return None
        sid = str((data or {}).get("sid") or "") if isinstance(data, dict) else ""
        return sid if _SID_RE.match(sid) else None

    def load(self, token: Optional[str]) -> Session:
        sid = self.decode_id(token or "")
        if sid:
            data = self.backend.read(sid)
            if data is not None:
                return Session(sid, data)
        return Session()

    def save(self, session: Session, response: Response) -> None:
        """Persist the session and (re)issue its cookie.

        An unmodified session is only touched, but its cookie is signed again
        so the expiry slides with activity instead of running from login.
        """
        if not session.modified:
            if session.id:
                self.backend.touch(session.id)
                self._set_cookie(response, session.id)
            return

        if session.previous_id:
            self.backend.destroy(session.previous_id)
            session.previous_id = None
        if session.id is None:
            session.id = secrets.token_urlsafe(32)
        self.backend.write(session.id, session.data)
        self._set_cookie(response, session.id)

    def _set_cookie(self, response: Response, session_id: str) -> None:
        response.set_cookie(
            self.cookie_name,
            self.encode_id(session_id),
            max_age=self.lifetime,
            path="/",
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )
