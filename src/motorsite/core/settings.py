# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Application settings.

Settings are loaded once at start-up (defaults + optional YAML file + environment)
and frozen. Values are read with dotted keys, e.g. ``settings.get("session.name")``.
"""

from __future__ import annotations

import copy
import os
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

DEFAULTS: Dict[str, Any] = {
    "debug": False,
    "app": {
        "secret_key": "",
        "data_dir": "data",
    },
    "main": {
        "guest_name": "Guest",
        "home_url": "/",
    },
    "guestbook": {
        "per_page": 10,
        "title_min_length": 5,
        "title_max_length": 50,
        "text_min_length": 5,
        "text_max_length": 5000,
        "allow_guests": True,
    },
    "session": {
        "name": "motor_session",
        "salt": "motor.session.v1",
        "backend": "file",
        "path": "",
        "cookie_secure": True,
        "cookie_httponly": True,
        "cookie_lifetime": 3600,
        "gc_maxlifetime": 3600,
        "gc_interval": 60,
        "cookie_samesite": "lax",
    },
    "captcha": {
        "length": 5,
        "symbols": "23456789",
    },
    "remember": {
        "salt": "motor.remember.v1",
        "lifetime_days": 365,
    },
    "password": {
        "time_cost": 3,
        "memory_cost": 65536,
        "parallelism": 4,
    },
    "logger": {
        "name": "motor-app",
        "path": "stdout",
        "level": "INFO",
    },
}


def _freeze(value: Any) -> Any:
    if isinstance(value, Mapping):
        return MappingProxyType({k: _freeze(v) for k, v in value.items()})
    if isinstance(value, list):
        return tuple(_freeze(v) for v in value)
    return value


def _deep_merge(base: Dict[str, Any], extra: Mapping[str, Any]) -> Dict[str, Any]:
    for key, value in extra.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), dict):
            _deep_merge(base[key], value)
        elif isinstance(value, Mapping):
            base[key] = _deep_merge({}, value)
        else:
            base[key] = value
    return base


class Settings:
    """Read-only nested settings."""

    def __init__(self, settings: Mapping[str, Any]):
        self._settings = _freeze(settings)

    def all(self) -> Mapping[str, Any]:
        return self._settings

    def get(self, key: str, default: Any = None) -> Any:
        node: Any = self._settings
        if "." not in key:
            return node.get(key, default)

        for segment in key.split("."):
            if isinstance(node, Mapping) and segment in node:
                node = node[segment]
            else:
                return default
        return node


def _env_settings() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    secret = os.getenv("SECRET_KEY") or os.getenv("MOTOR_SECRET_KEY")
    if secret:
        out.setdefault("app", {})["secret_key"] = secret
    data_dir = os.getenv("MOTOR_DATA_DIR")
    if data_dir:
        out.setdefault("app", {})["data_dir"] = data_dir
    return out


def load_settings(
    path: Optional[Path] = None,
    *,
    overrides: Optional[Mapping[str, Any]] = None,
) -> Settings:
    """Build the settings from defaults, a YAML file, the environment and overrides."""
    merged = copy.deepcopy(DEFAULTS)

    if path is None and os.getenv("MOTOR_SETTINGS_PATH"):
        path = Path(os.environ["MOTOR_SETTINGS_PATH"])
    if path is not None and Path(path).exists():
        raw = yaml.safe_load(Path(path).read_text(encoding="utf-8")) or {}
        if not isinstance(raw, dict):
            raise ValueError(f"Settings file must contain a mapping: {path}")
        _deep_merge(merged, raw)

    _deep_merge(merged, _env_settings())
    if overrides:
        _deep_merge(merged, overrides)
    return Settings(merged)
