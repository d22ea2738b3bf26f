# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Remember-me cookies.

Two cookies are issued on login: ``login`` (the user's login) and ``password``
(a signed token bound to the stored password hash). The hash itself never
leaves the server; changing the password invalidates outstanding tokens.
"""

from __future__ import annotations

import hashlib
import hmac
from datetime import datetime, timedelta, timezone
from typing import Optional

from itsdangerous import BadSignature, BadTimeSignature
from starlette.requests import Request
from starlette.responses import Response

from motorsite.auth.session import make_serializer
from motorsite.auth.users import UserRecord, UserRepository
from motorsite.core.settings import Settings

LOGIN_COOKIE = "login"
TOKEN_COOKIE = "password"


def _fingerprint(password_hash: str) -> str:
    return hashlib.sha256(password_hash.encode("utf-8")).hexdigest()[:32]


class RememberCookies:
    def __init__(self, settings: Settings):
        self.lifetime = timedelta(days=int(settings.get("remember.lifetime_days", 365)))
        self.secure = bool(settings.get("session.cookie_secure", True))
        self._secret = str(settings.get("app.secret_key", "") or "")
        self._salt = str(settings.get("remember.salt", "motor.remember.v1"))

    def _options(self) -> dict:
        return {"path": "/", "secure": self.secure, "httponly": True, "samesite": "lax"}

    def make_token(self, user: UserRecord) -> str:
        s = make_serializer(self._secret, self._salt)
        return s.dumps({"l": user.login, "f": _fingerprint(user.password)})

    def issue(self, response: Response, user: UserRecord) -> None:
        expires = datetime.now(timezone.utc) + self.lifetime
        response.set_cookie(LOGIN_COOKIE, user.login, expires=expires, **self._options())
        response.set_cookie(TOKEN_COOKIE, self.make_token(user), expires=expires, **self._options())

    def clear(self, response: Response) -> None:
        past = datetime.now(timezone.utc) - timedelta(hours=1)
        for name in (LOGIN_COOKIE, TOKEN_COOKIE):
            response.set_cookie(name, "", expires=past, max_age=0, **self._options())

    def resolve(self, request: Request, users: UserRepository) -> Optional[UserRecord]:
        """Return the user the remember cookies belong to, or None."""
        login = request.cookies.get(LOGIN_COOKIE, "")
        token = request.cookies.get(TOKEN_COOKIE, "")
        if not login or not token:
            return None
        s = make_serializer(self._secret, self._salt)
        try:
            data = s.loads(token, max_age=int(self.lifetime.total_seconds()))
        except (BadSignature, BadTimeSignature):
            return None
        if not isinstance(data, dict) or data.get("l") != login:
            return None
        user = users.find_by_login(login)
        if not user:
            return None
        if not hmac.compare_digest(str(data.get("f") or ""), _fingerprint(user.password)):
            return None
        return user
