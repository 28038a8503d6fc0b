"""Period statistics calculator.

``compute_stats`` turns one period's balances, capital events and trades
into a ``MonthStats`` record. It is pure: no I/O, no clock, no rounding.

Gross P&L is capital-adjusted (a simplified Modified Dietz):

    gross_pnl = (closing - opening) - (deposits - withdrawals)

so a $500 deposit into a $1,000 account that closes at $1,600 shows
$100 of trading profit, not $600. Any loss carried in from earlier periods
is deducted before a performance fee is charged, which makes the fee a
high-water mark on cumulative gross P&L.
"""

from dataclasses import asdict, dataclass
from decimal import Decimal
from typing import Sequence

from fundledger.ledger.types import (
    BalanceSnapshot,
    CapitalEvent,
    CapitalEventKind,
    Trade,
)
from fundledger.money import INFINITY, ZERO

OPENING_FROM_OVERRIDE = "override"
OPENING_FROM_FIRST_SNAPSHOT = "first_in_period"
OPENING_FROM_NONE = "none"


@dataclass(frozen=True)
class MonthStats:
    """Accounting figures for one client and one period."""

    opening_balance: Decimal
    closing_balance: Decimal
    total_deposits: Decimal
    total_withdrawals: Decimal
    net_new_capital: Decimal
    gross_pnl: Decimal
    carried_loss_in: Decimal
    net_pnl: Decimal
    performance_fee: Decimal
    carried_loss_out: Decimal
    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: Decimal
    profit_factor: Decimal
    best_trade_pnl: Decimal
    worst_trade_pnl: Decimal
    avg_win: Decimal
    avg_loss: Decimal
    realized_pnl: Decimal
    unrealized_pnl_change: Decimal
    client_share: Decimal
    opening_source: str = OPENING_FROM_FIRST_SNAPSHOT

    @property
    def is_profitable(self) -> bool:
        return self.net_pnl > 0

    @property
    def expected_closing(self) -> Decimal:
        """Closing balance implied by the accounting identity."""
        return self.opening_balance + self.net_new_capital + self.gross_pnl

    @property
    def return_pct(self) -> Decimal | None:
        """Gross P&L as a percentage of opening, None without a baseline."""
        if self.opening_balance <= 0:
            return None
        return self.gross_pnl / self.opening_balance * 100

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class TradeStats:
    """Win/loss statistics over closed trades."""

    total_trades: int
    winning_trades: int
    losing_trades: int
    win_rate: Decimal
    profit_factor: Decimal
    best_trade_pnl: Decimal
    worst_trade_pnl: Decimal
    avg_win: Decimal
    avg_loss: Decimal
    realized_pnl: Decimal


def compute_trade_stats(trades: Sequence[Trade]) -> TradeStats:
    """Aggregate closed trades (SELL side with a P&L) into statistics.

    ``avg_loss`` is reported as a positive magnitude, like the gross loss
    used for the profit factor.
    """
    pnls = [t.pnl for t in trades if t.is_closed]
    wins = [p for p in pnls if p > 0]
    losses = [p for p in pnls if p < 0]

    gross_win = sum(wins, ZERO)
    gross_loss = abs(sum(losses, ZERO))

    if gross_loss > 0:
        profit_factor = gross_win / gross_loss
    elif gross_win > 0:
        profit_factor = INFINITY
    else:
        profit_factor = ZERO

    return TradeStats(
        total_trades=len(pnls),
        winning_trades=len(wins),
        losing_trades=len(losses),
        win_rate=Decimal(len(wins)) / Decimal(len(pnls)) * 100 if pnls else ZERO,
        profit_factor=profit_factor,
        best_trade_pnl=max(pnls) if pnls else ZERO,
        worst_trade_pnl=min(pnls) if pnls else ZERO,
        avg_win=gross_win / len(wins) if wins else ZERO,
        avg_loss=gross_loss / len(losses) if losses else ZERO,
        realized_pnl=sum(pnls, ZERO),
    )


def sum_capital_flows(events: Sequence[CapitalEvent]) -> tuple[Decimal, Decimal]:
    """Return (total_deposits, total_withdrawals)."""
    deposits = sum(
        (e.amount for e in events if e.kind == CapitalEventKind.DEPOSIT), ZERO
    )
    withdrawals = sum(
        (e.amount for e in events if e.kind == CapitalEventKind.WITHDRAWAL), ZERO
    )
    return deposits, withdrawals


def compute_stats(
    trades: Sequence[Trade],
    balances: Sequence[BalanceSnapshot],
    capital_events: Sequence[CapitalEvent],
    carried_loss_in: Decimal,
    fee_fraction: Decimal,
    prior_closing_override: Decimal | None = None,
) -> MonthStats:
    """Compute the full statement for one period.

    Args:
        trades: Executions in the period; only closed ones feed trade stats.
        balances: Snapshots in the period, any order.
        capital_events: Deposits and withdrawals in the period.
        carried_loss_in: Unrecovered loss from earlier periods (>= 0).
        fee_fraction: Share of positive net P&L charged as performance fee.
        prior_closing_override: Opening balance taken from before the
            period (normally the last snapshot before its start). Wins over
            the first in-period snapshot when not None.

    Returns:
        MonthStats. With no balances both opening and closing fall back
        to 0; callers treat that as a data gap rather than publish it.
    """
    ordered = sorted(balances, key=lambda b: b.recorded_at)

    if prior_closing_override is not None:
        opening = prior_closing_override
        opening_source = OPENING_FROM_OVERRIDE
    elif ordered:
        opening = ordered[0].balance
        opening_source = OPENING_FROM_FIRST_SNAPSHOT
    else:
        opening = ZERO
        opening_source = OPENING_FROM_NONE

    closing = ordered[-1].balance if ordered else ZERO

    deposits, withdrawals = sum_capital_flows(capital_events)
    net_new_capital = deposits - withdrawals

    gross_pnl = (closing - opening) - net_new_capital

    net_pnl = gross_pnl - carried_loss_in
    if net_pnl > 0:
        performance_fee = net_pnl * fee_fraction
        carried_loss_out = ZERO
        client_share = net_pnl - performance_fee
    else:
        performance_fee = ZERO
        carried_loss_out = abs(net_pnl)
        client_share = net_pnl

    trade_stats = compute_trade_stats(trades)

    return MonthStats(
        opening_balance=opening,
        closing_balance=closing,
        total_deposits=deposits,
        total_withdrawals=withdrawals,
        net_new_capital=net_new_capital,
        gross_pnl=gross_pnl,
        carried_loss_in=carried_loss_in,
        net_pnl=net_pnl,
        performance_fee=performance_fee,
        carried_loss_out=carried_loss_out,
        total_trades=trade_stats.total_trades,
        winning_trades=trade_stats.winning_trades,
        losing_trades=trade_stats.losing_trades,
        win_rate=trade_stats.win_rate,
        profit_factor=trade_stats.profit_factor,
        best_trade_pnl=trade_stats.best_trade_pnl,
        worst_trade_pnl=trade_stats.worst_trade_pnl,
        avg_win=trade_stats.avg_win,
        avg_loss=trade_stats.avg_loss,
        realized_pnl=trade_stats.realized_pnl,
        unrealized_pnl_change=gross_pnl - trade_stats.realized_pnl,
        client_share=client_share,
        opening_source=opening_source,
    )
