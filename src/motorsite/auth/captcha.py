# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Registration captcha: a short code kept in the session, drawn as SVG."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from typing import List

from motorsite.core.settings import Settings

SESSION_KEY = "captcha"

WIDTH = 150
HEIGHT = 50


@dataclass(frozen=True)
class Glyph:
    char: str
    x: int
    y: int
    rotate: int


@dataclass(frozen=True)
class Line:
    x1: int
    y1: int
    x2: int
    y2: int


def generate_code(settings: Settings) -> str:
    length = max(1, int(settings.get("captcha.length", 5)))
    symbols = str(settings.get("captcha.symbols", "23456789")) or "0123456789"
    return "".join(secrets.choice(symbols) for _ in range(length))


def _jitter(spread: int) -> int:
    return secrets.randbelow(2 * spread + 1) - spread


def layout(code: str) -> List[Glyph]:
    step = WIDTH // (len(code) + 1)
    return [
        Glyph(char=ch, x=step * (i + 1) + _jitter(3), y=HEIGHT // 2 + 8 + _jitter(6), rotate=_jitter(25))
        for i, ch in enumerate(code)
    ]


def noise(count: int = 5) -> List[Line]:
    return [
        Line(
            x1=secrets.randbelow(WIDTH),
            y1=secrets.randbelow(HEIGHT),
            x2=secrets.randbelow(WIDTH),
            y2=secrets.randbelow(HEIGHT),
        )
        for _ in range(count)
    ]
