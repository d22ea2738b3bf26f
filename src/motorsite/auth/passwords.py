# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError

from motorsite.core.settings import Settings

_PH = PasswordHasher()


def configure_hasher(settings: Settings) -> PasswordHasher:
    """Rebuild the module hasher with the cost parameters from ``password.*``."""
    global _PH
    _PH = PasswordHasher(
        time_cost=int(settings.get("password.time_cost", 3)),
        memory_cost=int(settings.get("password.memory_cost", 65536)),
        parallelism=int(settings.get("password.parallelism", 4)),
    )
    return _PH


def hash_password(plain: str, *, hasher: Optional[PasswordHasher] = None) -> str:
    if not plain:
        raise ValueError("Empty password")
    return (hasher or _PH).hash(plain)


def verify_password(hash_value: str, plain: str, *, hasher: Optional[PasswordHasher] = None) -> bool:
    if not hash_value or not plain:
        return False
    try:
        return (hasher or _PH).verify(hash_value, plain)
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False
