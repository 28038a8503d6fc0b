"""Logging setup for the accounting service."""

from fundledger.monitor.logger import LogContext, get_accounting_logger, setup_logging

__all__ = [
    "LogContext",
    "setup_logging",
    "get_accounting_logger",
]
