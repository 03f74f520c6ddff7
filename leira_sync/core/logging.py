"""Secure structured logging for leira-sync.

Features:
    - Sensitive data masking (API keys, bearer tokens, JWTs, passwords)
    - JSON structured logging format
    - Pass context integration ([pass=xxx][trigger=yyy] prefixes)
"""

from __future__ import annotations

import json
import logging
import re
from datetime import datetime, timezone

# Patterns to mask in logs
SENSITIVE_PATTERNS = [
    (re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.I), "api_key=***MASKED***"),
    (re.compile(r"Bearer\s+[\w\-.=]+", re.I), "Bearer ***MASKED***"),
    # Supabase service-role keys and other JWTs
    (re.compile(r"eyJ[\w-]{10,}\.[\w-]{10,}\.[\w-]{10,}"), "***JWT***"),
    (re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s"\']+', re.I), "password=***MASKED***"),
    (re.compile(r'pin["\']?\s*[:=]\s*["\']?\d+', re.I), "pin=***MASKED***"),
]


def _get_pass_context() -> tuple[str | None, str | None]:
    """Get pass context without importing at module level.

    Returns:
        Tuple of (pass_id, trigger) or (None, None) outside a pass.
    """
    try:
        from leira_sync.core.tracing import get_current_context

        ctx = get_current_context()
        if ctx:
            return ctx.pass_id, ctx.trigger
    except ImportError:
        pass
    return None, None


def mask_sensitive_data(message: str) -> str:
    """Apply every masking pattern to a message."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        message = pattern.sub(replacement, message)
    return message


class SecureFormatter(logging.Formatter):
    """Formatter that masks sensitive data and includes pass context."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        include_pass_context: bool = True,
    ) -> None:
        """Initialize the secure formatter.

        Args:
            fmt: Format string for log messages.
            datefmt: Date format string.
            include_pass_context: Whether to include [pass=xxx][trigger=yyy] prefix.
        """
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.include_pass_context = include_pass_context

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if self.include_pass_context:
            pass_id, trigger = _get_pass_context()
            if pass_id:
                prefix = f"[pass={pass_id}]"
                if trigger:
                    prefix += f"[trigger={trigger}]"
                prefix += " "
                # "2026-10-19 10:30:00 - logger - LEVEL - message"
                # becomes "... - LEVEL - [pass=xxx] message"
                parts = message.split(" - ", 3)
                if len(parts) == 4:
                    message = f"{parts[0]} - {parts[1]} - {parts[2]} - {prefix}{parts[3]}"
                else:
                    message = prefix + message

        return mask_sensitive_data(message)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging with pass context."""

    def __init__(self, include_pass_context: bool = True) -> None:
        super().__init__()
        self.include_pass_context = include_pass_context

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, str | None] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if self.include_pass_context:
            pass_id, trigger = _get_pass_context()
            if pass_id:
                log_data["pass_id"] = pass_id
            if trigger:
                log_data["trigger"] = trigger

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return mask_sensitive_data(json.dumps(log_data))


def configure_logging(
    level: str = "INFO",
    json_format: bool = False,
    mask_sensitive: bool = True,
    include_pass_context: bool = True,
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        json_format: Use JSON format for structured logging.
        mask_sensitive: Mask sensitive data in logs.
        include_pass_context: Include [pass=xxx][trigger=yyy] in log messages.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = JSONFormatter(include_pass_context=include_pass_context)
    elif mask_sensitive:
        formatter = SecureFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            include_pass_context=include_pass_context,
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
