"""Logging configuration helpers."""

import logging

_SENSITIVE_FIELDS = (
    "api_key",
    "apikey",
    "token",
    "password",
    "email",
    "phone",
    "ssn",
    "address",
    "credit_card",
    "x-api-key",
)


def sanitize(data: object) -> object:
    """Redact sensitive keys and summarize health payloads in log data."""
    if isinstance(data, list | tuple):
        return [sanitize(item) for item in data]
    if not isinstance(data, dict):
        return data
    sanitized: dict[object, object] = {}
    for key, value in data.items():
        lower_key = str(key).lower()
        if any(field in lower_key for field in _SENSITIVE_FIELDS):
            sanitized[key] = "[REDACTED]"
            continue
        if key == "event_data" and isinstance(value, dict):
            sanitized[key] = {"fields_present": sorted(str(name) for name in value)}
            continue
        sanitized[key] = sanitize(value)
    return sanitized


class RedactingFilter(logging.Filter):
    """Sanitize dict and list arguments before records are formatted."""

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.args, dict):
            record.args = sanitize(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(sanitize(arg) for arg in record.args)
        return True


def configure_logging() -> None:
    """Configure application logging with a single stream handler."""
    logger = logging.getLogger("health_tracker")
    logger.setLevel(logging.INFO)
    if logger.handlers:
        return
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(levelname)s: %(name)s: %(message)s"))
    handler.addFilter(RedactingFilter())
    logger.addHandler(handler)
    logger.propagate = False
