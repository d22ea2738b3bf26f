# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Exception classes shared across the application."""

from __future__ import annotations

from typing import Any, Optional


class MotorError(Exception):
    """Base exception for all application errors."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code or self.__class__.__name__


class NotFoundError(MotorError):
    """Record not found."""


class UniqueConstraintError(MotorError):
    """Insert would duplicate a value declared unique for the table."""

    def __init__(self, table: str, field: str, value: Any):
        super().__init__(f"Duplicate value for {table}.{field}: {value!r}")
        self.table = table
        self.field = field
        self.value = value
