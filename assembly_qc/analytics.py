"""Shift dashboard aggregation.

A dashboard request resolves one shift window and then issues a set of
independent, read-only queries against the QC log and the plan table (status
counts, side split, defect rows, hourly rows, rack rows, plans).  They run
concurrently on a thread pool and are joined before the efficiency estimate is
computed from the merged totals.  Any failed query fails the whole request.
"""

from __future__ import annotations

from collections import defaultdict
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Mapping

from flask import current_app

from . import settings
from .db import count_qc_events, fetch_production_plans, fetch_qc_events
from .efficiency import estimate_efficiency
from .errors import StoreError, raise_for_store_error
from .qc_log import STATUS_NG, STATUS_OK, STATUS_REWORK
from .shifts import ShiftWindow, local_hour, resolve_shift_window, today_local

StoreTask = tuple[Callable[..., tuple[Any, str | None]], tuple, dict]

_STATUS_KEYS = {
    STATUS_OK: "ok",
    STATUS_NG: "ng",
    STATUS_REWORK: "rework",
}


def run_store_queries(
    tasks: Mapping[str, StoreTask], *, workers: int | None = None
) -> dict[str, Any]:
    """Run ``(data, error)`` store calls concurrently and join the results.

    ``tasks`` maps a result name to ``(func, args, kwargs)``.  Each call runs
    in a worker thread inside the current application context.  All calls are
    awaited before any error is raised, and no partial result is returned.
    """

    if not tasks:
        return {}

    app = current_app._get_current_object()
    workers = workers or settings.dashboard_workers()

    def call(func, args, kwargs):
        with app.app_context():
            return func(*args, **kwargs)

    with ThreadPoolExecutor(max_workers=max(1, min(workers, len(tasks)))) as executor:
        futures = {
            name: executor.submit(call, func, args, kwargs)
            for name, (func, args, kwargs) in tasks.items()
        }

    results: dict[str, Any] = {}
    for name, future in futures.items():
        try:
            data, error = future.result()
        except Exception as exc:
            raise StoreError(f"Query {name!r} failed: {exc}") from exc
        raise_for_store_error(error)
        results[name] = data
    return results


def defect_histogram(rows: Iterable[Mapping]) -> list[dict]:
    """Count NG rows per defect, most frequent first.

    Equal counts keep the order in which the defects were first seen.
    """

    counts: dict[Any, int] = {}
    for row in rows or []:
        defect = row.get("defect")
        counts[defect] = counts.get(defect, 0) + 1
    ordered = sorted(counts.items(), key=lambda item: -item[1])
    return [{"defect": defect, "count": count} for defect, count in ordered]


def hourly_histogram(rows: Iterable[Mapping], offset_minutes: int) -> list[dict]:
    """Bucket rows by local hour with per-status counts; empty hours are omitted."""

    buckets: dict[int, dict] = {}
    for row in rows or []:
        hour = local_hour(row.get("timestamp"), offset_minutes)
        if hour is None:
            continue
        bucket = buckets.setdefault(hour, {"hour": hour, "ok": 0, "ng": 0, "rework": 0})
        key = _STATUS_KEYS.get((row.get("status") or "").upper())
        if key:
            bucket[key] += 1
    return [buckets[hour] for hour in sorted(buckets)]


def rack_summary(rows: Iterable[Mapping], pack_size: int) -> list[dict]:
    """Group OK rows per ``(model, part_code)`` into full racks and leftovers.

    Rows without a part code are grouped under their model name.
    """

    totals: defaultdict[tuple[str, str], int] = defaultdict(int)
    for row in rows or []:
        model = row.get("model") or ""
        part_code = row.get("part_code") or model
        totals[(model, part_code)] += 1

    return [
        {
            "model": model,
            "part_code": part_code,
            "total_ok": total,
            "full_racks": total // pack_size,
            "pending_pieces": total % pack_size,
        }
        for (model, part_code), total in sorted(totals.items())
    ]


def sum_plan_targets(plans: Iterable[Mapping]) -> int:
    total = 0
    for plan in plans or []:
        try:
            total += int(plan.get("target_quantity") or 0)
        except (TypeError, ValueError):
            continue
    return total


def aggregate_shift(
    window: ShiftWindow,
    model: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Compute the dashboard payload for ``window``."""

    model = model or None
    start, end = window.start, window.end
    scope = {"model": model}

    tasks: dict[str, StoreTask] = {
        "ok": (count_qc_events, (start, end), {**scope, "status": STATUS_OK}),
        "ng": (count_qc_events, (start, end), {**scope, "status": STATUS_NG}),
        "rework": (count_qc_events, (start, end), {**scope, "status": STATUS_REWORK}),
        "ok_left": (count_qc_events, (start, end), {**scope, "status": STATUS_OK, "side": "L"}),
        "ok_right": (count_qc_events, (start, end), {**scope, "status": STATUS_OK, "side": "R"}),
        "defect_rows": (
            fetch_qc_events,
            (start, end),
            {**scope, "status": STATUS_NG, "columns": ("defect",)},
        ),
        "hourly_rows": (
            fetch_qc_events,
            (start, end),
            {**scope, "columns": ("timestamp", "status")},
        ),
        "rack_rows": (
            fetch_qc_events,
            (start, end),
            {**scope, "status": STATUS_OK, "columns": ("model", "part_code")},
        ),
        "rework_items": (
            fetch_qc_events,
            (start, end),
            {**scope, "status": STATUS_REWORK, "descending": True},
        ),
        "plans": (fetch_production_plans, (window.date.isoformat(), window.shift), scope),
    }
    results = run_store_queries(tasks)

    now = now or datetime.now(timezone.utc)
    plans = results["plans"] or []
    plan_total = sum_plan_targets(plans)
    ok, ng, rework = results["ok"], results["ng"], results["rework"]
    estimate = estimate_efficiency(
        ok, plans, window, now, policy=settings.cycle_time_policy()
    )

    kpi = {
        "plan": plan_total,
        "ok": ok,
        "ng": ng,
        "rework": rework,
        "total": ok + ng + rework,
        "ok_left": results["ok_left"],
        "ok_right": results["ok_right"],
        "variance": ok - plan_total,
        **estimate.as_dict(),
    }
    return {
        "window": window.as_dict(),
        "model": model,
        "kpi": kpi,
        "defects": defect_histogram(results["defect_rows"]),
        "hourly": hourly_histogram(results["hourly_rows"], settings.offset_minutes()),
        "racks": rack_summary(results["rack_rows"], settings.pack_size()),
        "rework_items": results["rework_items"] or [],
        "plans": plans,
    }


def build_shift_dashboard(
    day: Any = None,
    shift: str | None = None,
    model: str | None = None,
    *,
    now: datetime | None = None,
) -> dict:
    """Resolve ``day``/``shift`` (defaulting to today's day shift) and aggregate it."""

    now = now or datetime.now(timezone.utc)
    offset = settings.offset_minutes()
    window = resolve_shift_window(
        day or today_local(now, offset), shift or "day", offset_minutes=offset
    )
    current_app.logger.debug(
        "Aggregating %s shift %s (model=%s)", window.shift, window.date, model or "*"
    )
    return aggregate_shift(window, model, now=now)


__all__ = [
    "aggregate_shift",
    "build_shift_dashboard",
    "defect_histogram",
    "hourly_histogram",
    "rack_summary",
    "run_store_queries",
    "sum_plan_targets",
]
