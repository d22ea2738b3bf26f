# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Login, registration and logout.

Each operation reads the submitted form, updates the session (identity and
flash message) and tells the route where to redirect and whether to issue or
clear the remember-me cookies. Failures never raise: the errors and the
submitted input (without passwords) are flashed and the user is sent back to
the form.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from motorsite.auth.captcha import SESSION_KEY as CAPTCHA_KEY
from motorsite.auth.passwords import hash_password, verify_password
from motorsite.auth.session import FLASH_KEY, Session
from motorsite.auth.users import USER, UserRecord, UserRepository
from motorsite.core.errors import UniqueConstraintError
from motorsite.core.settings import Settings
from motorsite.core.utils import sanitize
from motorsite.core.validation import Validator

logger = logging.getLogger(__name__)

MSG_INVALID_CREDENTIALS = "invalid login or password"
MSG_LOGIN_TAKEN = "login already taken"
MSG_EMAIL_TAKEN = "email already in use"
MSG_CAPTCHA = "captcha check failed"
MSG_LOGGED_IN = "You have successfully logged in!"
MSG_REGISTERED = "You have successfully registered!"
MSG_LOGGED_OUT = "You have successfully logged out!"

SECRET_FIELDS = ("password", "password2")
LOGIN_PATTERN = r"^[a-z0-9\-]+\Z"


@dataclass(frozen=True)
class FlowResult:
    ok: bool
    redirect: str
    remember: Optional[UserRecord] = None
    forget: bool = False


def old_input(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Submitted values to re-fill the form with; passwords are left out."""
    return {k: v for k, v in data.items() if k not in SECRET_FIELDS}


def establish_identity(session: Session, user: UserRecord) -> None:
    session.regenerate()
    session.set("login", user.login)
    session.set("password", user.password)


class AuthFlow:
    def __init__(self, users: UserRepository, settings: Settings):
        self.users = users
        self.home_url = str(settings.get("main.home_url", "/"))

    def _fail(self, session: Session, validator: Validator, data: Mapping[str, Any], back: str) -> FlowResult:
        session.set(FLASH_KEY, {"errors": validator.get_errors(), "old": old_input(data)})
        return FlowResult(ok=False, redirect=back)

    def login(self, data: Mapping[str, Any], session: Session, validator: Validator) -> FlowResult:
        validator.required(["login", "password"])

        if validator.is_valid(data):
            user = self.users.find_by_login(str(data["login"]))
            if user and verify_password(user.password, str(data["password"])):
                establish_identity(session, user)
                session.set(FLASH_KEY, {"success": MSG_LOGGED_IN})
                logger.info("Login ok: %s", user.login)
                return FlowResult(ok=True, redirect=self.home_url, remember=user)

            logger.info("Login failed for %r", data.get("login"))
            validator.add_error("login", MSG_INVALID_CREDENTIALS)

        return self._fail(session, validator, data, "/login")

    def register(self, data: Mapping[str, Any], session: Session, validator: Validator) -> FlowResult:
        expected_captcha = session.get(CAPTCHA_KEY)
        session.delete(CAPTCHA_KEY)

        (
            validator.required(["login", "password", "password2", "email", "captcha"])
            .add("captcha", lambda d: expected_captcha is not None and str(d.get("captcha", "")) == str(expected_captcha), MSG_CAPTCHA)
            .length("login", 3, 20)
            .regex("login", LOGIN_PATTERN, flags=re.IGNORECASE)
            .email("email")
            .min_length(["password", "password2"], 6)
            .equal("password", "password2")
        )

        if self.users.find_by_login(str(data.get("login") or "")):
            validator.add_error("login", MSG_LOGIN_TAKEN)
        if self.users.find_by_email(str(data.get("email") or "")):
            validator.add_error("email", MSG_EMAIL_TAKEN)

        if validator.is_valid(data):
            try:
                user = self.users.create(
                    login=sanitize(data["login"]),
                    email=sanitize(data["email"]),
                    password_hash=hash_password(str(data["password"])),
                    role=USER,
                )
            except UniqueConstraintError as e:
                validator.add_error(e.field, MSG_LOGIN_TAKEN if e.field == "login" else MSG_EMAIL_TAKEN)
                return self._fail(session, validator, data, "/register")

            establish_identity(session, user)
            session.set(FLASH_KEY, {"success": MSG_REGISTERED})
            logger.info("User registered: %s", user.login)
            return FlowResult(ok=True, redirect=self.home_url, remember=user)

        return self._fail(session, validator, data, "/register")

    def logout(self, session: Session) -> FlowResult:
        session.delete("login")
        session.delete("password")
        session.set(FLASH_KEY, {"success": MSG_LOGGED_OUT})
        return FlowResult(ok=True, redirect=self.home_url, forget=True)
