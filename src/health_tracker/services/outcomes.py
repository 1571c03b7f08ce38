"""Helpers for storage outcomes that callers may deliberately ignore."""

import logging
from collections.abc import Callable
from dataclasses import dataclass

NOT_FOUND_CODE = "PGRST116"
MISSING_TABLE_CODE = "42P01"
UNIQUE_VIOLATION_CODE = "23505"

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Attempt:
    """Result of a best-effort side effect."""

    succeeded: bool
    error: Exception | None = None


def attempt(action: str, func: Callable[..., object], *args: object) -> Attempt:
    """Run a side effect, logging and capturing any failure instead of raising."""
    try:
        func(*args)
    except Exception as exc:
        _logger.warning("Best-effort %s failed: %s", action, exc)
        return Attempt(succeeded=False, error=exc)
    return Attempt(succeeded=True)


def error_code(exc: BaseException) -> str | None:
    """Return the PostgREST/Postgres error code carried by an exception."""
    code = getattr(exc, "code", None)
    if code is None and exc.args and isinstance(exc.args[0], dict):
        code = exc.args[0].get("code")
    return str(code) if code is not None else None


def is_not_found(exc: BaseException) -> bool:
    """Return whether the error means the query matched no rows."""
    return error_code(exc) == NOT_FOUND_CODE


def is_missing_table(exc: BaseException) -> bool:
    """Return whether the error means the table does not exist."""
    return error_code(exc) == MISSING_TABLE_CODE


def is_unique_violation(exc: BaseException) -> bool:
    """Return whether the error is a unique constraint violation."""
    return error_code(exc) == UNIQUE_VIOLATION_CODE
