"""Balance, capital event and trade ledgers."""

from fundledger.ledger.types import (
    AuditEventType,
    AuditLogEntry,
    BalanceSnapshot,
    CapitalEvent,
    CapitalEventKind,
    Client,
    ExchangeRate,
    LiveBotState,
    Trade,
)

__all__ = [
    "AuditEventType",
    "AuditLogEntry",
    "BalanceSnapshot",
    "CapitalEvent",
    "CapitalEventKind",
    "Client",
    "ExchangeRate",
    "LiveBotState",
    "Trade",
]
