# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional

from motorsite.core.utils import now_ts
from motorsite.infra.store import TableStore

TABLE = "users"
UNIQUE_COLUMNS = ("login", "email")

# Roles, highest first.
ADMIN = "admin"
MODER = "moder"
EDITOR = "editor"
USER = "user"
BANNED = "banned"

ALL_ROLES: Dict[str, str] = {
    ADMIN: "Administrator",
    MODER: "Moderator",
    EDITOR: "Editor",
    USER: "User",
    BANNED: "Banned",
}


@dataclass(frozen=True)
class UserRecord:
    id: int
    login: str
    email: str
    password: str
    role: str
    created_at: int

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "UserRecord":
        return cls(
            id=int(row.get("id") or 0),
            login=str(row.get("login") or ""),
            email=str(row.get("email") or ""),
            password=str(row.get("password") or ""),
            role=str(row.get("role") or USER).strip().lower(),
            created_at=int(row.get("created_at") or 0),
        )


class UserRepository:
    """Reads and creates rows of the ``users`` table."""

    def __init__(self, store: TableStore):
        self.store = store

    def _first(self, **where: Any) -> Optional[UserRecord]:
        row = self.store.find_one(TABLE, **where)
        return UserRecord.from_row(row) if row else None

    def find_by_login(self, login: str) -> Optional[UserRecord]:
        login = (login or "").strip()
        if not login:
            return None
        return self._first(login=login)

    def find_by_email(self, email: str) -> Optional[UserRecord]:
        email = (email or "").strip()
        if not email:
            return None
        return self._first(email=email)

    def find_by_id(self, user_id: int) -> Optional[UserRecord]:
        return self._first(id=user_id)

    def all(self) -> List[UserRecord]:
        rows = self.store.find_all(TABLE)
        return sorted((UserRecord.from_row(r) for r in rows), key=lambda u: (u.created_at, u.id))

    def create(self, *, login: str, email: str, password_hash: str, role: str = USER) -> UserRecord:
        """Insert a user. Raises UniqueConstraintError if login or email is taken."""
        row = self.store.insert(
            TABLE,
            {
                "login": login,
                "email": email,
                "password": password_hash,
                "role": role,
                "created_at": now_ts(),
            },
        )
        return UserRecord.from_row(row)
