"""Production plan validation and lookup."""

from __future__ import annotations

from typing import Any, Mapping

from flask import current_app

from config.production import GENERAL_PART_CODE, SHIFT_HOURS

from .db import fetch_production_plans, upsert_production_plan
from .errors import ValidationError, raise_for_store_error
from .shifts import ShiftWindow, parse_calendar_date


def _non_negative_int(payload: Mapping, key: str, *, required: bool) -> int:
    raw = payload.get(key)
    if raw in (None, ""):
        if required:
            raise ValidationError(f"{key} is required.")
        return 0
    try:
        value = int(str(raw).strip())
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer.") from None
    if value < 0:
        raise ValidationError(f"{key} must not be negative.")
    return value


def set_plan(payload: Mapping[str, Any]) -> dict:
    """Create or replace the plan for ``(date, model, shift, part_code)``."""

    plan_date = parse_calendar_date(payload.get("date_string") or payload.get("date"))
    model = str(payload.get("model") or "").strip()
    if not model:
        raise ValidationError("Model is required.")
    shift = str(payload.get("shift") or "").strip().lower()
    if shift not in SHIFT_HOURS:
        raise ValidationError(f"Unknown shift: {payload.get('shift')!r}")

    record = {
        "date_string": plan_date.isoformat(),
        "model": model,
        "shift": shift,
        "part_code": str(payload.get("part_code") or "").strip() or GENERAL_PART_CODE,
        "target_quantity": _non_negative_int(payload, "target_quantity", required=True),
        "cycle_time_seconds": _non_negative_int(payload, "cycle_time_seconds", required=False),
    }
    saved, error = upsert_production_plan(record)
    raise_for_store_error(error)
    current_app.logger.info(
        "Plan %s %s %s/%s: %d pcs @ %ds",
        record["date_string"],
        shift,
        model,
        record["part_code"],
        record["target_quantity"],
        record["cycle_time_seconds"],
    )
    return saved


def plans_for_window(window: ShiftWindow, model: str | None = None) -> list[dict]:
    rows, error = fetch_production_plans(window.date.isoformat(), window.shift, model or None)
    raise_for_store_error(error)
    return rows or []
