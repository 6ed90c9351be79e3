from datetime import datetime
from typing import Any, Tuple

from flask import current_app

from config.supabase_schema import (
    column_name,
    from_supabase_row,
    table_name,
    to_supabase_payload,
)

from .shifts import format_instant


def _ensure_supabase_client() -> Tuple[Any, str | None]:
    """Return the configured Supabase client or an explanatory error.

    Returns:
        tuple: (client, error). When Supabase is unavailable the client will be
        ``None`` and ``error`` will contain a message explaining the failure.
    """

    supabase = current_app.config.get("SUPABASE")
    if not supabase or not hasattr(supabase, "table"):
        return None, (
            "Supabase client is not configured. Set SUPABASE_URL and SUPABASE_"
            "SERVICE_KEY to enable the QC log."
        )
    return supabase, None


def _select_columns(table: str, columns: tuple[str, ...] | None) -> str:
    if not columns:
        return "*"
    return ",".join(column_name(table, column) for column in columns)


def _rows(table: str, response) -> list[dict]:
    return [from_supabase_row(table, row) for row in getattr(response, "data", None) or []]


def _instant_text(value: datetime | str | None) -> str | None:
    if value is None or isinstance(value, str):
        return value
    return format_instant(value)


def _apply_event_filters(
    query,
    *,
    start: datetime | str | None = None,
    end: datetime | str | None = None,
    range_column: str = "timestamp",
    model: str | None = None,
    status: str | None = None,
    side: str | None = None,
    operator_id: str | None = None,
):
    """Apply the shared ``qc_log`` predicate to a PostgREST query."""

    if start is not None:
        query = query.gte(column_name("qc_log", range_column), _instant_text(start))
    if end is not None:
        query = query.lt(column_name("qc_log", range_column), _instant_text(end))
    if model:
        query = query.eq(column_name("qc_log", "model"), model)
    if status:
        query = query.eq(column_name("qc_log", "status"), status)
    if side:
        query = query.eq(column_name("qc_log", "side"), side)
    if operator_id not in (None, ""):
        query = query.eq(column_name("qc_log", "operator_id"), operator_id)
    return query


def ping_store() -> tuple[bool | None, str | None]:
    """Issue a trivial read to confirm Supabase is reachable."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        supabase.table(table_name("qc_log")).select(column_name("qc_log", "id")).limit(1).execute()
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to reach Supabase: {exc}"
    return True, None


# ---------------------------------------------------------------------------
# QC log
# ---------------------------------------------------------------------------


def insert_qc_event(record: dict) -> tuple[dict | None, str | None]:
    """Insert a single inspection event and return the stored row."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("qc_log"))
            .insert(to_supabase_payload("qc_log", record))
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to insert QC event: {exc}"
    inserted = _rows("qc_log", response)
    if not inserted:
        return None, "Failed to insert QC event."
    return inserted[0], None


def fetch_qc_events(
    start: datetime | str | None = None,
    end: datetime | str | None = None,
    *,
    range_column: str = "timestamp",
    model: str | None = None,
    status: str | None = None,
    side: str | None = None,
    operator_id: str | None = None,
    columns: tuple[str, ...] | None = None,
    descending: bool = False,
    limit: int | None = None,
    page_size: int = 1000,
) -> tuple[list[dict] | None, str | None]:
    """Fetch inspection events matching the shared predicate.

    Rows are ordered by ``timestamp``.  Supabase caps responses to 1,000 rows by
    default, so unless ``limit`` is given the rows are fetched in
    ``page_size`` chunks until a short page is returned.
    """

    if page_size <= 0:
        raise ValueError("page_size must be greater than zero")

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error

    table = table_name("qc_log")
    select = _select_columns("qc_log", columns)
    rows: list[dict] = []
    offset = 0
    try:
        while True:
            query = supabase.table(table).select(select)
            query = _apply_event_filters(
                query,
                start=start,
                end=end,
                range_column=range_column,
                model=model,
                status=status,
                side=side,
                operator_id=operator_id,
            )
            query = query.order(column_name("qc_log", "timestamp"), desc=descending)
            if limit is not None:
                response = query.limit(limit).execute()
                return _rows("qc_log", response), None

            response = query.range(offset, offset + page_size - 1).execute()
            batch = _rows("qc_log", response)
            rows.extend(batch)
            if len(batch) < page_size:
                break
            offset += page_size
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch QC events: {exc}"
    return rows, None


def count_qc_events(
    start: datetime | str | None = None,
    end: datetime | str | None = None,
    *,
    model: str | None = None,
    status: str | None = None,
    side: str | None = None,
    operator_id: str | None = None,
) -> tuple[int | None, str | None]:
    """Return the number of events matching the shared predicate."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        query = supabase.table(table_name("qc_log")).select(
            column_name("qc_log", "id"), count="exact", head=True
        )
        query = _apply_event_filters(
            query,
            start=start,
            end=end,
            model=model,
            status=status,
            side=side,
            operator_id=operator_id,
        )
        response = query.execute()
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to count QC events: {exc}"
    count = getattr(response, "count", None)
    if count is None:
        count = len(getattr(response, "data", None) or [])
    return int(count), None


def fetch_qc_event(event_id) -> tuple[dict | None, str | None]:
    """Return the event with ``event_id`` or ``None`` when it does not exist."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("qc_log"))
            .select("*")
            .eq(column_name("qc_log", "id"), event_id)
            .limit(1)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch QC event: {exc}"
    rows = _rows("qc_log", response)
    return (rows[0] if rows else None), None


def update_qc_event(event_id, fields: dict) -> tuple[dict | None, str | None]:
    """Apply ``fields`` to a single event and return the updated row."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("qc_log"))
            .update(to_supabase_payload("qc_log", fields))
            .eq(column_name("qc_log", "id"), event_id)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to update QC event: {exc}"
    rows = _rows("qc_log", response)
    return (rows[0] if rows else None), None


def delete_qc_event(event_id) -> tuple[list[dict] | None, str | None]:
    """Delete one event by id."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("qc_log"))
            .delete()
            .eq(column_name("qc_log", "id"), event_id)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to delete QC event: {exc}"
    return _rows("qc_log", response), None


def delete_operator_events(
    operator_id, start: datetime | str
) -> tuple[list[dict] | None, str | None]:
    """Delete every event of ``operator_id`` stamped at or after ``start``."""

    if operator_id in (None, ""):
        return None, "Operator id is required"

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        query = supabase.table(table_name("qc_log")).delete()
        query = _apply_event_filters(query, start=start, operator_id=operator_id)
        response = query.execute()
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to reset QC events: {exc}"
    return _rows("qc_log", response), None


# ---------------------------------------------------------------------------
# Production plans
# ---------------------------------------------------------------------------


def fetch_production_plans(
    date_string: str, shift: str, model: str | None = None
) -> tuple[list[dict] | None, str | None]:
    """Return plans for ``date_string``/``shift`` optionally limited to ``model``."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        query = (
            supabase.table(table_name("production_plans"))
            .select("*")
            .eq(column_name("production_plans", "date_string"), date_string)
            .eq(column_name("production_plans", "shift"), shift)
        )
        if model:
            query = query.eq(column_name("production_plans", "model"), model)
        response = query.order(column_name("production_plans", "id")).execute()
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch production plans: {exc}"
    return _rows("production_plans", response), None


def upsert_production_plan(record: dict) -> tuple[dict | None, str | None]:
    """Create or replace the plan keyed by date, model, shift and part code."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    conflict_columns = ",".join(
        column_name("production_plans", key)
        for key in ("date_string", "model", "shift", "part_code")
    )
    try:
        response = (
            supabase.table(table_name("production_plans"))
            .upsert(
                to_supabase_payload("production_plans", record),
                on_conflict=conflict_columns,
            )
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to save production plan: {exc}"
    rows = _rows("production_plans", response)
    return (rows[0] if rows else dict(record)), None


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


def fetch_app_user_credentials(username: str) -> tuple[dict | None, str | None]:
    """Return the stored user row for ``username`` including its hash."""

    if not username:
        return None, "Username is required"

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("app_users"))
            .select("*")
            .eq(column_name("app_users", "username"), username)
            .limit(1)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch user credentials: {exc}"
    rows = _rows("app_users", response)
    return (rows[0] if rows else None), None


def insert_app_user(record: dict) -> tuple[dict | None, str | None]:
    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("app_users"))
            .insert(to_supabase_payload("app_users", record))
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to create user: {exc}"
    rows = _rows("app_users", response)
    if not rows:
        return None, "Failed to create user."
    return rows[0], None


def update_app_user(user_id, fields: dict) -> tuple[dict | None, str | None]:
    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("app_users"))
            .update(to_supabase_payload("app_users", fields))
            .eq(column_name("app_users", "id"), user_id)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to update user: {exc}"
    rows = _rows("app_users", response)
    return (rows[0] if rows else None), None


def fetch_active_users() -> tuple[list[dict] | None, str | None]:
    """Return the roster of users currently flagged online."""

    supabase, error = _ensure_supabase_client()
    if error:
        return None, error
    try:
        response = (
            supabase.table(table_name("app_users"))
            .select(_select_columns("app_users", ("id", "full_name", "last_login")))
            .eq(column_name("app_users", "is_online"), True)
            .execute()
        )
    except Exception as exc:  # pragma: no cover - network errors
        return None, f"Failed to fetch active users: {exc}"
    return _rows("app_users", response), None
