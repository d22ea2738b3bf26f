# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import sys
from pathlib import Path

from motorsite.core.settings import Settings

LOG_FORMAT = "%(asctime)s {app} %(levelname)s [%(name)s] %(message)s"


def configure_logging(settings: Settings) -> logging.Logger:
    """Attach one handler to the application logger from the ``logger.*`` settings.

    ``logger.path`` is a file path, or ``stdout`` / ``stderr``.
    """
    name = str(settings.get("logger.name", "motor-app"))
    target = str(settings.get("logger.path", "stdout") or "stdout")
    level = str(settings.get("logger.level", "INFO")).upper()
    if settings.get("debug"):
        level = "DEBUG"

    if target == "stdout":
        handler: logging.Handler = logging.StreamHandler(sys.stdout)
    elif target == "stderr":
        handler = logging.StreamHandler(sys.stderr)
    else:
        Path(target).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(target, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT.replace("{app}", name)))

    # Package loggers (motorsite.*) propagate here.
    root = logging.getLogger("motorsite")
    for h in list(root.handlers):
        root.removeHandler(h)
        h.close()
    root.addHandler(handler)
    root.setLevel(level)

    return root
