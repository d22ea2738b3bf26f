# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import re
import time

_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f]")


def sanitize(s: str) -> str:
    """Trim and drop control characters from user-submitted text."""
    return _CONTROL_CHARS.sub("", str(s or "")).strip()


def now_ts() -> int:
    return int(time.time())
