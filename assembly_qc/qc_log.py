"""Inspection event vocabulary and payload validation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping

from .errors import ValidationError
from .shifts import format_instant

STATUS_OK = "OK"
STATUS_NG = "NG"
STATUS_REWORK = "REWORK"
STATUSES = (STATUS_OK, STATUS_NG, STATUS_REWORK)

SIDES = ("L", "R")

SERIAL_SENTINEL = "-"


def _clean(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def normalize_status(value) -> str:
    status = (_clean(value) or "").upper()
    if not status:
        raise ValidationError("Status is required.")
    if status not in STATUSES:
        raise ValidationError(f"Unknown status: {value!r}")
    return status


def build_event_record(payload: Mapping, *, now: datetime | None = None) -> dict:
    """Validate a log request and return the row to insert.

    ``model``, ``status`` and ``operator_id`` are required and NG events need a
    defect.  Optional fields fall back to ``None`` (or the serial sentinel)
    instead of failing.
    """

    model = _clean(payload.get("model"))
    if not model:
        raise ValidationError("Model is required.")

    status = normalize_status(payload.get("status"))

    operator_id = _clean(payload.get("operator_id") or payload.get("userId"))
    if not operator_id:
        raise ValidationError("Operator id is required.")

    defect = _clean(payload.get("defect"))
    if status == STATUS_NG and not defect:
        raise ValidationError("Defect is required for NG events.")

    side = _clean(payload.get("side"))
    if side is not None:
        side = side.upper()
        if side not in SIDES:
            raise ValidationError(f"Unknown side: {payload.get('side')!r}")

    now = now or datetime.now(timezone.utc)
    return {
        "model": model,
        "part_code": _clean(payload.get("part_code")),
        "serial_number": _clean(payload.get("serial_number")) or SERIAL_SENTINEL,
        "status": status,
        "defect": defect,
        "side": side,
        "timestamp": format_instant(now),
        "operator_id": operator_id,
        "operator_name": _clean(payload.get("operator_name") or payload.get("username")),
    }
