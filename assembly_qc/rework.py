"""Rework queue and re-inspection history.

REWORK is the only non-terminal status.  Re-inspecting an item records the
inspector and the check time on the event and may set it back to REWORK.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from flask import current_app

from . import settings
from .analytics import run_store_queries
from .db import fetch_qc_event, fetch_qc_events, update_qc_event
from .errors import NotFound, ValidationError, raise_for_store_error
from .qc_log import STATUS_REWORK, normalize_status
from .shifts import (
    ShiftWindow,
    format_instant,
    local_day_bounds,
    parse_instant,
    today_local,
)


def _newest_first(rows: list[dict]) -> list[dict]:
    epoch = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(
        rows,
        key=lambda row: parse_instant(row.get("timestamp")) or epoch,
        reverse=True,
    )


def list_pending_rework() -> list[dict]:
    """Every event currently in REWORK, newest first, regardless of date."""

    rows, error = fetch_qc_events(status=STATUS_REWORK, descending=True)
    raise_for_store_error(error)
    return rows or []


def shift_rework_items(window: ShiftWindow, model: str | None = None) -> list[dict]:
    """REWORK events logged inside ``window``, newest first."""

    rows, error = fetch_qc_events(
        window.start,
        window.end,
        model=model or None,
        status=STATUS_REWORK,
        descending=True,
    )
    raise_for_store_error(error)
    return rows or []


def update_rework(
    event_id: Any,
    new_status: Any,
    inspector: Any,
    *,
    now: datetime | None = None,
) -> dict:
    """Record a re-inspection result on a reworked event."""

    if event_id in (None, ""):
        raise ValidationError("Event id is required.")
    status = normalize_status(new_status)
    inspector_name = str(inspector or "").strip()
    if not inspector_name:
        raise ValidationError("Inspector is required.")

    existing, error = fetch_qc_event(event_id)
    raise_for_store_error(error)
    if not existing:
        raise NotFound(f"QC event {event_id} not found.")
    if existing.get("status") != STATUS_REWORK:
        raise ValidationError(
            f"QC event {event_id} is {existing.get('status')}; "
            "only REWORK items can be re-inspected."
        )

    now = now or datetime.now(timezone.utc)
    fields = {
        "status": status,
        "rework_checked_by": inspector_name,
        "rework_checked_at": format_instant(now),
    }
    updated, error = update_qc_event(event_id, fields)
    raise_for_store_error(error)
    current_app.logger.info(
        "Rework %s: %s -> %s by %s", event_id, existing.get("status"), status, inspector_name
    )
    return updated or {**existing, **fields}


def rework_history(
    start_date: Any = None,
    end_date: Any = None,
    *,
    now: datetime | None = None,
) -> list[dict]:
    """Events ever routed through rework within the local-day range.

    An event qualifies when it is still REWORK or has been re-inspected, and
    either its creation time or its re-inspection time falls in the range.
    Dates default to today.
    """

    offset = settings.offset_minutes()
    today = today_local(now, offset)
    start, end = local_day_bounds(
        start_date or today, end_date or start_date or today, offset_minutes=offset
    )

    results = run_store_queries(
        {
            "logged": (fetch_qc_events, (start, end), {}),
            "checked": (
                fetch_qc_events,
                (start, end),
                {"range_column": "rework_checked_at"},
            ),
        }
    )

    merged: dict[Any, dict] = {}
    for row in (results["logged"] or []) + (results["checked"] or []):
        if row.get("status") == STATUS_REWORK or row.get("rework_checked_at"):
            merged.setdefault(row.get("id"), row)
    return _newest_first(list(merged.values()))


__all__ = [
    "list_pending_rework",
    "rework_history",
    "shift_rework_items",
    "update_rework",
]
