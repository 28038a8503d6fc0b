"""Logging setup: JSON application logs plus a separate accounting trail."""

import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

# Must stay outside the fundledger.accounting.* module namespace (propagate is off)
ACCOUNTING_LOGGER = "fundledger.audit_trail"

_ACCOUNTING_FIELDS = ("client_id", "period", "kind", "expected", "actual", "delta", "source")

_TEXT_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_TEXT_DATEFMT = "%Y-%m-%d %H:%M:%S"


def _envelope(record: logging.LogRecord, message_key: str) -> dict[str, Any]:
    data: dict[str, Any] = {
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        "level": record.levelname,
        message_key: record.getMessage(),
    }
    run_id = getattr(record, "correlation_id", None)
    if run_id is not None:
        data["correlation_id"] = run_id
    return data


class JsonFormatter(logging.Formatter):
    """One JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        data = _envelope(record, "message")
        data["logger"] = record.name
        if record.exc_info:
            data["exception"] = self.formatException(record.exc_info)
        extra = getattr(record, "extra_data", None)
        if extra:
            data.update(extra)
        return json.dumps(data, ensure_ascii=False, default=str)


class AccountingFormatter(logging.Formatter):
    """JSON lines for accounting.log, with the finding fields lifted to the top level.

    Decimals are written as strings so amounts survive exactly.
    """

    def format(self, record: logging.LogRecord) -> str:
        data = _envelope(record, "event")
        data.update(
            (name, getattr(record, name))
            for name in _ACCOUNTING_FIELDS
            if hasattr(record, name)
        )
        return json.dumps(data, ensure_ascii=False, default=str)


def _file_handler(path: Path, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(level)
    handler.setFormatter(formatter)
    return handler


def setup_logging(
    log_dir: Path,
    level: str = "INFO",
    json_format: bool = True,
) -> None:
    """
    Configure root and accounting loggers.

    Files written under ``log_dir``:
    - app.log: everything from DEBUG up
    - errors.log: ERROR and above
    - accounting.log: reconciliation findings and period closes only

    The console handler writes to stderr; stdout is reserved for CLI output.
    """
    log_dir = Path(log_dir)
    log_dir.mkdir(parents=True, exist_ok=True)

    formatter: logging.Formatter
    if json_format:
        formatter = JsonFormatter()
    else:
        formatter = logging.Formatter(_TEXT_FORMAT, datefmt=_TEXT_DATEFMT)

    root = logging.getLogger()
    root.setLevel(getattr(logging, level))
    root.handlers.clear()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(logging.INFO)
    console.setFormatter(formatter)
    root.addHandler(console)
    root.addHandler(_file_handler(log_dir / "app.log", logging.DEBUG, formatter))
    root.addHandler(_file_handler(log_dir / "errors.log", logging.ERROR, formatter))

    trail = logging.getLogger(ACCOUNTING_LOGGER)
    trail.setLevel(logging.INFO)
    trail.propagate = False
    trail.handlers.clear()
    trail_formatter = (
        AccountingFormatter()
        if json_format
        else logging.Formatter("%(asctime)s | %(levelname)-8s | %(message)s", datefmt=_TEXT_DATEFMT)
    )
    trail.addHandler(_file_handler(log_dir / "accounting.log", logging.INFO, trail_formatter))

    for noisy in ("aiosqlite", "aiosmtplib"):
        logging.getLogger(noisy).setLevel(logging.WARNING)


def get_accounting_logger() -> logging.Logger:
    return logging.getLogger(ACCOUNTING_LOGGER)


class LogContext:
    """Stamps every record created inside the block with a run id."""

    def __init__(self, correlation_id: str) -> None:
        self.correlation_id = correlation_id
        self._previous_factory = None

    def __enter__(self) -> "LogContext":
        previous = logging.getLogRecordFactory()
        self._previous_factory = previous
        run_id = self.correlation_id

        def factory(*args: Any, **kwargs: Any) -> logging.LogRecord:
            record = previous(*args, **kwargs)
            record.correlation_id = run_id
            return record

        logging.setLogRecordFactory(factory)
        return self

    def __exit__(self, *exc: Any) -> None:
        if self._previous_factory is not None:
            logging.setLogRecordFactory(self._previous_factory)
            self._previous_factory = None
