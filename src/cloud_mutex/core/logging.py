"""Logging helpers for cloud-mutex.

The library only creates module loggers. Applications embedding the mutex
call ``setup_logging`` once to get console (and optionally rotating file)
output. Records pass through ``SensitiveDataFilter``, which scrubs the
credentials a storage client tends to leak into messages: AWS access keys
and secrets, service-account JSON fields such as ``private_key`` and
``client_secret``, PEM key blocks and bearer tokens.
"""

import json
import logging
import re
import sys
from datetime import UTC, datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path

from cloud_mutex.core.config import LogConfig
from cloud_mutex.core.constants import VALID_LOG_LEVELS

PACKAGE_LOGGER = "cloud_mutex"
REDACTED = "[REDACTED]"

_STANDARD_RECORD_ATTRS = frozenset(logging.makeLogRecord({}).__dict__) | {"message", "asctime"}
_SCRUBBED_ATTR = "_credentials_scrubbed"
_HANDLER_TAG = "_cloud_mutex_handler"

# Field names from AWS configs, service-account JSON and OAuth payloads.
_CREDENTIAL_FIELDS = frozenset(
    {
        "aws_access_key_id",
        "aws_secret_access_key",
        "aws_session_token",
        "secret_access_key",
        "session_token",
        "security_token",
        "private_key",
        "private_key_id",
        "client_secret",
        "refresh_token",
        "access_token",
        "id_token",
        "api_key",
        "authorization",
        "credentials",
        "password",
        "secret",
        "token",
    }
)

_PEM_BLOCK = re.compile(r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----", re.DOTALL)
_AWS_ACCESS_KEY_ID = re.compile(r"\b(?:AKIA|ASIA)[A-Z0-9]{16}\b")
_ASSIGNMENT = re.compile(
    r"""(?ix)
    (?P<key>["']?(?<![a-z0-9_])
        (?:aws_secret_access_key|aws_session_token|secret_access_key|session_token|security_token
          |private_key_id|private_key|client_secret|refresh_token|access_token|id_token|api_key
          |authorization|password|secret|token)
    (?![a-z0-9_])["']?\s*[:=]\s*)
    (?P<value>"[^"]*"|'[^']*'|[^\s,;}\]]+)
    """
)
_BEARER = re.compile(r"(?i)\b(bearer)\s+[a-z0-9._~+/=-]+")


def _mask_assignment(match: re.Match[str]) -> str:
    value = match.group("value")
    if value[0] in "\"'":
        return f"{match.group('key')}{value[0]}{REDACTED}{value[0]}"
    return f"{match.group('key')}{REDACTED}"


def redact_text(text: str) -> str:
    """Mask credential values embedded in free text."""
    text = _PEM_BLOCK.sub(REDACTED, text)
    text = _AWS_ACCESS_KEY_ID.sub(REDACTED, text)
    text = _ASSIGNMENT.sub(_mask_assignment, text)
    return _BEARER.sub(lambda m: f"{m.group(1)} {REDACTED}", text)


def _is_credential_field(name: object) -> bool:
    snake = re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", str(name))
    normalized = re.sub(r"[^a-z0-9]+", "_", snake.lower()).strip("_")
    return normalized in _CREDENTIAL_FIELDS or normalized.endswith(("_secret", "_token", "_password"))


def _scrub(value: object) -> object:
    if isinstance(value, dict):
        return {k: REDACTED if _is_credential_field(k) else _scrub(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_scrub(item) for item in value]
    if isinstance(value, tuple):
        return tuple(_scrub(item) for item in value)
    if isinstance(value, str):
        return redact_text(value)
    return value


def _extra_keys(record: logging.LogRecord) -> list[str]:
    return [
        key
        for key in record.__dict__
        if isinstance(key, str) and key not in _STANDARD_RECORD_ATTRS and not key.startswith("_")
    ]


def _render_message(record: logging.LogRecord) -> str:
    try:
        return record.getMessage()
    except (TypeError, ValueError):
        return f"{record.msg} [unformattable arguments {record.args!r}]"


class SensitiveDataFilter(logging.Filter):
    """Scrub storage credentials from the message and extra fields of a record.

    The formatted message replaces ``msg``/``args`` so every handler sees the
    same scrubbed text. A record is scrubbed at most once.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if record.__dict__.get(_SCRUBBED_ATTR):
            return True
        record.msg = redact_text(_render_message(record))
        record.args = ()
        for key in _extra_keys(record):
            value = record.__dict__[key]
            record.__dict__[key] = REDACTED if _is_credential_field(key) else _scrub(value)
        record.__dict__[_SCRUBBED_ATTR] = True
        return True


class JSONFormatter(logging.Formatter):
    """One JSON object per line, for Cloud Logging, CloudWatch and similar sinks.

    Scrubs records that did not pass through ``SensitiveDataFilter``.
    """

    def format(self, record: logging.LogRecord) -> str:
        scrubbed = bool(record.__dict__.get(_SCRUBBED_ATTR))
        message = _render_message(record)
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, UTC).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": message if scrubbed else redact_text(message),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "process": record.process,
            "thread_name": record.threadName,
        }
        if record.exc_info:
            entry["exception"] = redact_text(self.formatException(record.exc_info))
        for key in _extra_keys(record):
            value = record.__dict__[key]
            if not scrubbed:
                value = REDACTED if _is_credential_field(key) else _scrub(value)
            entry[key] = value
        return json.dumps(entry, default=str)


class ContextLoggerAdapter(logging.LoggerAdapter):
    """Adds fixed fields (bucket, key) to every record; per-call extras win."""

    def process(self, msg, kwargs):
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


def with_log_context(logger: logging.Logger | logging.LoggerAdapter, **context: object) -> ContextLoggerAdapter:
    """Wrap ``logger`` so records carry ``context``; ``None`` values are dropped."""
    fields: dict[str, object] = {}
    while isinstance(logger, logging.LoggerAdapter):
        fields = {**(logger.extra or {}), **fields}
        logger = logger.logger
    fields.update({k: v for k, v in context.items() if v is not None})
    return ContextLoggerAdapter(logger, fields)


def _open_file_handler(log_file: str | Path, config: LogConfig) -> logging.Handler | None:
    log_path = Path(log_file)
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        return RotatingFileHandler(log_path, maxBytes=config.file_max_bytes, backupCount=config.file_backup_count)
    except OSError as e:
        print(f"Warning: Cannot open log file {log_path}: {e}. Logging to console only.", file=sys.stderr)
        return None


def setup_logging(
    log_level: str | None = None,
    log_format: str | None = None,
    log_file: str | Path | None = None,
    *,
    config: LogConfig | None = None,
) -> logging.Logger:
    """Send log output to stdout and, optionally, a rotating log file.

    Arguments override ``config``, which defaults to ``LogConfig.from_env()``
    (``LOG_LEVEL``, ``LOG_FORMAT``). Handlers installed by an earlier call are
    replaced; handlers installed by the application are left alone.

    Returns:
        The ``cloud_mutex`` package logger
    """
    config = config or LogConfig.from_env()
    requested_level = log_level or config.level
    if requested_level.upper() not in VALID_LOG_LEVELS:
        print(f"Warning: Invalid log level '{requested_level}', using INFO", file=sys.stderr)
        requested_level = "INFO"
    level = getattr(logging, requested_level.upper())

    root = logging.getLogger()
    for handler in [h for h in root.handlers if getattr(h, _HANDLER_TAG, False)]:
        root.removeHandler(handler)
        handler.close()

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file is not None:
        file_handler = _open_file_handler(log_file, config)
        if file_handler is not None:
            handlers.append(file_handler)

    if (log_format or config.log_format).lower() == "json":
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(SensitiveDataFilter())
        setattr(handler, _HANDLER_TAG, True)
        root.addHandler(handler)
    root.setLevel(level)

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(logging.NOTSET)
    logger.debug("Logging initialized (%s, %d handlers)", logging.getLevelName(level), len(handlers))
    return logger
