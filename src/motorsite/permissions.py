# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import hmac
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException, Request

from motorsite.auth.session import Session
from motorsite.auth.users import ADMIN, BANNED, EDITOR, MODER, USER, UserRepository

ROLE_ORDER = {BANNED: -1, USER: 0, EDITOR: 1, MODER: 2, ADMIN: 3}


def _rank(role: str) -> int:
    return ROLE_ORDER.get((role or USER).strip().lower(), 0)


@dataclass(frozen=True)
class CurrentUser:
    id: int
    login: str
    role: str

    def is_admin(self) -> bool:
        return _rank(self.role) >= _rank(ADMIN)


def load_user_from_session(session: Session, users: UserRepository) -> Optional[CurrentUser]:
    """Session identity is valid only while login and password hash match the stored user."""
    login = session.get("login")
    password_hash = session.get("password")
    if not login or not password_hash:
        return None
    u = users.find_by_login(str(login))
    if not u or not hmac.compare_digest(u.password, str(password_hash)):
        return None
    return CurrentUser(id=u.id, login=u.login, role=u.role)


def current_user_optional(request: Request) -> Optional[CurrentUser]:
    return getattr(request.state, "user", None)


def require_user(request: Request) -> CurrentUser:
    u = current_user_optional(request)
    if u:
        return u
    raise HTTPException(status_code=303, headers={"Location": "/login"})


def require_role(min_role: str):
    def _dep(request: Request) -> CurrentUser:
        u = require_user(request)
        if _rank(u.role) < _rank(min_role):
            raise HTTPException(status_code=403, detail="Forbidden")
        return u

    return _dep
