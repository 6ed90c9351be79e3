"""Line settings resolved from the environment into ``app.config``."""

from __future__ import annotations

import os
from typing import Mapping

from flask import current_app

from config import production
from config.production import CYCLE_TIME_POLICIES

_INTEGER_SETTINGS = {
    "LOCAL_UTC_OFFSET_MINUTES": production.LOCAL_UTC_OFFSET_MINUTES,
    "PACK_SIZE": production.PACK_SIZE,
    "DASHBOARD_WORKERS": production.DASHBOARD_WORKERS,
}


def _int_setting(environ: Mapping[str, str], key: str, default: int) -> int:
    raw = (environ.get(key) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{key} must be an integer, got {raw!r}") from None


def load_settings(app, environ: Mapping[str, str] | None = None) -> None:
    """Copy line settings from ``environ`` into ``app.config``."""

    environ = os.environ if environ is None else environ
    for key, default in _INTEGER_SETTINGS.items():
        app.config[key] = _int_setting(environ, key, default)

    if app.config["PACK_SIZE"] <= 0:
        raise RuntimeError("PACK_SIZE must be greater than zero")
    if app.config["DASHBOARD_WORKERS"] <= 0:
        raise RuntimeError("DASHBOARD_WORKERS must be greater than zero")

    policy = (environ.get("CYCLE_TIME_POLICY") or production.CYCLE_TIME_POLICY).strip().lower()
    if policy not in CYCLE_TIME_POLICIES:
        raise RuntimeError(
            f"CYCLE_TIME_POLICY must be one of {', '.join(CYCLE_TIME_POLICIES)}"
        )
    app.config["CYCLE_TIME_POLICY"] = policy


def offset_minutes() -> int:
    return current_app.config.get(
        "LOCAL_UTC_OFFSET_MINUTES", production.LOCAL_UTC_OFFSET_MINUTES
    )


def pack_size() -> int:
    return current_app.config.get("PACK_SIZE", production.PACK_SIZE)


def cycle_time_policy() -> str:
    return current_app.config.get("CYCLE_TIME_POLICY", production.CYCLE_TIME_POLICY)


def dashboard_workers() -> int:
    return current_app.config.get("DASHBOARD_WORKERS", production.DASHBOARD_WORKERS)
