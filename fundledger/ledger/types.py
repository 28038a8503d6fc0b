"""Typed records for the fund ledgers."""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any

from fundledger.money import ZERO, utc_now


class CapitalEventKind(str, Enum):
    """Direction of an external cash flow."""

    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class AuditEventType(str, Enum):
    """Kinds of state-changing action recorded in the audit log."""

    BALANCE_SNAPSHOT = "BALANCE_SNAPSHOT"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"
    FEE = "FEE"
    REPORT_SENT = "REPORT_SENT"


@dataclass
class Client:
    """A fund participant."""

    client_id: str
    name: str
    email: str | None
    bot_id: str | None
    profit_share_pct: Decimal
    carried_loss: Decimal = ZERO
    initial_capital: Decimal = ZERO
    fiat_currency: str | None = None
    is_active: bool = True
    created_at: datetime = field(default_factory=utc_now)


@dataclass
class BalanceSnapshot:
    """Observed account value at a point in time."""

    client_id: str
    balance: Decimal
    recorded_at: datetime
    equity: Decimal | None = None
    snapshot_id: int | None = None


@dataclass
class CapitalEvent:
    """A recorded deposit or withdrawal. Amount is always positive."""

    client_id: str
    kind: CapitalEventKind
    amount: Decimal
    occurred_at: datetime
    notes: str | None = None
    balance_before: Decimal | None = None
    balance_after: Decimal | None = None
    recorded_by: str | None = None
    recorded_at: datetime = field(default_factory=utc_now)
    event_id: int | None = None

    @property
    def signed_amount(self) -> Decimal:
        if self.kind == CapitalEventKind.DEPOSIT:
            return self.amount
        return -self.amount


@dataclass
class Trade:
    """One execution reported by a trading bot."""

    bot_id: str
    timestamp: datetime
    symbol: str
    side: str  # "BUY" or "SELL"
    price: Decimal
    quantity: Decimal
    amount: Decimal
    pnl: Decimal | None = None
    pnl_percent: Decimal | None = None
    reason: str | None = None
    trade_id: str | None = None

    @property
    def is_closed(self) -> bool:
        """SELL-side executions with a realized P&L close a position."""
        return (self.side or "").upper() == "SELL" and self.pnl is not None


@dataclass
class LiveBotState:
    """Latest telemetry for one trading account."""

    bot_id: str
    updated_at: datetime
    current_amount: Decimal | None = None
    total_equity: Decimal | None = None
    position: str | None = None
    symbol: str | None = None
    leverage: Decimal | None = None


@dataclass
class ExchangeRate:
    """Asset to fiat conversion band."""

    fiat: str
    lower_bound: Decimal
    upper_bound: Decimal
    mid_rate: Decimal
    fetched_at: datetime
    asset: str = "USDT"


@dataclass
class AuditLogEntry:
    """Immutable record of something that happened."""

    event_type: AuditEventType
    description: str
    client_id: str | None = None
    amount: Decimal | None = None
    balance_before: Decimal | None = None
    balance_after: Decimal | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
    created_at: datetime = field(default_factory=utc_now)
    entry_id: int | None = None
