# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Authentication helpers.

This package provides:
- Password hashing/verification (argon2)
- User records stored in the ``users`` table
- Server-side sessions keyed by a signed cookie (itsdangerous)
- Remember-me cookies
- The login / register / logout flow
"""
