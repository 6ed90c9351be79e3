"""Per-operator logging and today's counters.

"Today" starts at local midnight at the configured line offset, not at a
shift boundary, so an operator on the night shift sees their count restart at
midnight. Counters only include events stamped before ``now``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from flask import current_app

from . import settings
from .analytics import rack_summary, run_store_queries
from .db import (
    count_qc_events,
    delete_operator_events,
    delete_qc_event,
    fetch_qc_events,
    insert_qc_event,
)
from .errors import NotFound, ValidationError, raise_for_store_error
from .qc_log import STATUS_NG, STATUS_OK, STATUS_REWORK, build_event_record
from .shifts import local_midnight


def _require_operator(operator_id: Any) -> str:
    value = str(operator_id or "").strip()
    if not value:
        raise ValidationError("Operator id is required.")
    return value


def log_event(payload: Mapping, *, now: datetime | None = None) -> dict:
    """Validate and store one inspection event."""

    record = build_event_record(payload, now=now)
    stored, error = insert_qc_event(record)
    raise_for_store_error(error)
    current_app.logger.info(
        "QC: %s -> %s [%s]",
        record["operator_name"] or record["operator_id"],
        record["status"],
        record["part_code"] or record["model"],
    )
    return stored


def operator_counts(
    operator_id: Any,
    model: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Status totals, side split and racks for one operator from midnight up to ``now``."""

    operator = _require_operator(operator_id)
    now = now or datetime.now(timezone.utc)
    start = local_midnight(now, settings.offset_minutes())
    scope = {"model": model or None, "operator_id": operator}

    results = run_store_queries(
        {
            "ok": (count_qc_events, (start, now), {**scope, "status": STATUS_OK}),
            "ng": (count_qc_events, (start, now), {**scope, "status": STATUS_NG}),
            "rework": (count_qc_events, (start, now), {**scope, "status": STATUS_REWORK}),
            "ok_left": (count_qc_events, (start, now), {**scope, "status": STATUS_OK, "side": "L"}),
            "ok_right": (count_qc_events, (start, now), {**scope, "status": STATUS_OK, "side": "R"}),
            "rack_rows": (
                fetch_qc_events,
                (start, now),
                {**scope, "status": STATUS_OK, "columns": ("model", "part_code")},
            ),
        }
    )

    ok, ng, rework = results["ok"], results["ng"], results["rework"]
    return {
        "ok": ok,
        "ng": ng,
        "rework": rework,
        "total": ok + ng + rework,
        "ok_left": results["ok_left"],
        "ok_right": results["ok_right"],
        "racks": rack_summary(results["rack_rows"], settings.pack_size()),
    }


def undo_last(operator_id: Any, *, now: datetime | None = None) -> dict:
    """Delete and return the operator's most recent event of today."""

    operator = _require_operator(operator_id)
    now = now or datetime.now(timezone.utc)
    start = local_midnight(now, settings.offset_minutes())

    rows, error = fetch_qc_events(
        start, operator_id=operator, descending=True, limit=1
    )
    raise_for_store_error(error)
    if not rows:
        raise NotFound("No QC event to undo today.")

    last = rows[0]
    _, error = delete_qc_event(last.get("id"))
    raise_for_store_error(error)
    current_app.logger.info("Undo QC event %s for %s", last.get("id"), operator)
    return last


def reset_today(operator_id: Any, *, now: datetime | None = None) -> int:
    """Delete every event the operator logged since local midnight."""

    operator = _require_operator(operator_id)
    start = local_midnight(now, settings.offset_minutes())
    deleted, error = delete_operator_events(operator, start)
    raise_for_store_error(error)
    count = len(deleted or [])
    current_app.logger.info("Reset %d QC events for %s", count, operator)
    return count


__all__ = ["log_event", "operator_counts", "reset_today", "undo_last"]
