"""Exceptions raised by the QC services and their JSON rendering."""

from __future__ import annotations

from flask import current_app, jsonify


class AssemblyQCError(RuntimeError):
    """Base class for errors surfaced to API callers."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(AssemblyQCError):
    """Raised when a required field is missing or malformed."""

    status_code = 400


class InvalidDate(ValidationError):
    """Raised when a calendar date string cannot be parsed."""


class NotFound(AssemblyQCError):
    """Raised when the targeted event does not exist."""

    status_code = 404


class StoreError(AssemblyQCError):
    """Raised when Supabase reports a failure or cannot be reached."""

    status_code = 500


def raise_for_store_error(error: str | None) -> None:
    """Convert a ``(data, error)`` store result into :class:`StoreError`."""

    if error:
        raise StoreError(error)


def _render_error(exc: AssemblyQCError):
    if isinstance(exc, StoreError):
        current_app.logger.warning("Store failure: %s", exc.message)
    return jsonify({"error": exc.message}), exc.status_code


def register_error_handlers(app) -> None:
    """Render :class:`AssemblyQCError` subclasses as ``{"error": ...}``."""

    app.register_error_handler(AssemblyQCError, _render_error)


__all__ = [
    "AssemblyQCError",
    "InvalidDate",
    "NotFound",
    "StoreError",
    "ValidationError",
    "raise_for_store_error",
    "register_error_handlers",
]
