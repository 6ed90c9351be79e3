"""Centralised Supabase table and column configuration.

The service stores inspection events, production plans and line users in
Supabase/PostgREST tables.  Each table name and column identifier used by the
code base is defined here so that deployments can adjust naming conventions
without touching the analytics code.  Columns without a mapping pass through
unchanged.

Overrides are read from the ``SUPABASE_SCHEMA_JSON`` environment variable, for
example::

    {"qc_log": {"name": "line3_qc_log", "columns": {"timestamp": "logged_at"}}}
"""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping


@dataclass(frozen=True)
class SupabaseTable:
    """Configuration for a Supabase table."""

    name: str
    columns: Mapping[str, str] = field(default_factory=dict)


# Default table and column mappings. These act as fallbacks if no environment
# overrides are supplied.
_DEFAULT_SUPABASE_SCHEMA: Dict[str, SupabaseTable] = {
    "qc_log": SupabaseTable(
        name="qc_log",
        columns={
            "id": "id",
            "model": "model",
            "part_code": "part_code",
            "serial_number": "serial_number",
            "status": "status",
            "defect": "defect",
            "side": "side",
            "timestamp": "timestamp",
            "operator_id": "operator_id",
            "operator_name": "operator_name",
            "rework_checked_by": "rework_checked_by",
            "rework_checked_at": "rework_checked_at",
        },
    ),
    "production_plans": SupabaseTable(
        name="production_plans",
        columns={
            "id": "id",
            "date_string": "date_string",
            "model": "model",
            "shift": "shift",
            "part_code": "part_code",
            "target_quantity": "target_quantity",
            "cycle_time_seconds": "cycle_time_seconds",
        },
    ),
    "app_users": SupabaseTable(
        name="app_users",
        columns={
            "id": "id",
            "username": "username",
            "password_hash": "password_hash",
            "full_name": "full_name",
            "role": "role",
            "department": "department",
            "employee_id": "employee_id",
            "is_active": "is_active",
            "is_online": "is_online",
            "last_login": "last_login",
            "created_at": "created_at",
        },
    ),
}


def load_schema(raw: str | None = None) -> Dict[str, SupabaseTable]:
    """Merge a ``SUPABASE_SCHEMA_JSON`` document over the default tables.

    Only the three tables above can be renamed, and only their known columns
    remapped.  Anything else stops start-up with :class:`RuntimeError`.
    """

    raw = os.getenv("SUPABASE_SCHEMA_JSON") if raw is None else raw
    schema = dict(_DEFAULT_SUPABASE_SCHEMA)
    if not raw:
        return schema

    try:
        overrides = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise RuntimeError(f"SUPABASE_SCHEMA_JSON is not valid JSON: {exc}") from None
    if not isinstance(overrides, dict):
        raise RuntimeError("SUPABASE_SCHEMA_JSON must be a JSON object")

    for identifier, entry in overrides.items():
        default = schema.get(identifier)
        if default is None or not isinstance(entry, dict):
            raise RuntimeError(f"Unknown table override: {identifier!r}")
        columns = dict(default.columns)
        for logical, actual in (entry.get("columns") or {}).items():
            if logical not in columns or not isinstance(actual, str) or not actual:
                raise RuntimeError(f"Unknown column override: {identifier}.{logical}")
            columns[logical] = actual
        schema[identifier] = SupabaseTable(
            name=entry.get("name") or default.name, columns=columns
        )
    return schema


SUPABASE_SCHEMA: Dict[str, SupabaseTable] = load_schema()


def table_name(identifier: str) -> str:
    return SUPABASE_SCHEMA[identifier].name


def column_name(table_identifier: str, column_identifier: str) -> str:
    """Physical name of a logical column; unmapped columns pass through."""

    columns = SUPABASE_SCHEMA[table_identifier].columns
    return columns.get(column_identifier, column_identifier)


def to_supabase_payload(
    table_identifier: str, payload: Mapping[str, Any]
) -> Dict[str, Any]:
    """Rename the keys of an outgoing record to physical column names."""

    return {
        column_name(table_identifier, key): value for key, value in payload.items()
    }


def from_supabase_row(
    table_identifier: str, row: Mapping[str, Any]
) -> Dict[str, Any]:
    """Rename the keys of a returned row back to logical names."""

    columns = SUPABASE_SCHEMA[table_identifier].columns
    logical = {actual: key for key, actual in columns.items()}
    return {logical.get(key, key): value for key, value in row.items()}
