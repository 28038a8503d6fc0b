"""Live month-to-date view.

Applies the period formula to the current, open month using live
telemetry as a provisional closing balance. Read-only.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from fundledger.accounting.period import Period
from fundledger.accounting.snapshots import MonthlySnapshotStore
from fundledger.accounting.sources import first_available
from fundledger.accounting.stats import OPENING_FROM_NONE, MonthStats, compute_stats
from fundledger.config import AccountingConfig, TelemetryConfig
from fundledger.feeds.telemetry import Staleness, TelemetryFeed, classify_staleness
from fundledger.ledger.balances import BalanceLedger
from fundledger.ledger.capital import CapitalEventLedger
from fundledger.ledger.clients import ClientDirectory
from fundledger.ledger.trades import TradeLedger
from fundledger.ledger.types import BalanceSnapshot, Client
from fundledger.money import ZERO, as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class MonthToDateView:
    """Provisional statement for one client's open month."""

    client_id: str
    name: str
    period: str
    stats: MonthStats
    opening_source: str
    closing_source: str
    staleness: Staleness
    telemetry_updated_at: datetime | None
    possible_missing_capital: bool

    @property
    def opening(self) -> Decimal:
        return self.stats.opening_balance

    @property
    def current(self) -> Decimal:
        return self.stats.closing_balance

    @property
    def mtd_pnl(self) -> Decimal:
        return self.stats.gross_pnl

    @property
    def mtd_pct(self) -> Decimal | None:
        return self.stats.return_pct

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "name": self.name,
            "period": self.period,
            "opening": self.opening,
            "opening_source": self.opening_source,
            "current": self.current,
            "current_source": self.closing_source,
            "deposits": self.stats.total_deposits,
            "withdrawals": self.stats.total_withdrawals,
            "net_capital": self.stats.net_new_capital,
            "mtd_pnl": self.mtd_pnl,
            "mtd_pct": self.mtd_pct,
            "carried_loss_in": self.stats.carried_loss_in,
            "fee_accrued": self.stats.performance_fee,
            "closed_trades": self.stats.total_trades,
            "staleness": self.staleness.value,
            "telemetry_updated_at": self.telemetry_updated_at,
            "possible_missing_capital": self.possible_missing_capital,
        }


@dataclass
class FundMonthToDate:
    """Aggregate month-to-date across active clients."""

    period: str
    clients: list[MonthToDateView] = field(default_factory=list)

    @property
    def aum(self) -> Decimal:
        return sum((v.current for v in self.clients), ZERO)

    @property
    def opening_aum(self) -> Decimal:
        return sum((v.opening for v in self.clients), ZERO)

    @property
    def mtd_pnl(self) -> Decimal:
        return sum((v.mtd_pnl for v in self.clients), ZERO)

    @property
    def mtd_pct(self) -> Decimal | None:
        if self.opening_aum <= 0:
            return None
        return self.mtd_pnl / self.opening_aum * 100

    def to_dict(self) -> dict:
        return {
            "period": self.period,
            "aum": self.aum,
            "opening_aum": self.opening_aum,
            "mtd_pnl": self.mtd_pnl,
            "mtd_pct": self.mtd_pct,
            "flagged": [v.client_id for v in self.clients if v.possible_missing_capital],
            "clients": [v.to_dict() for v in self.clients],
        }


class MonthToDateService:
    """Computes month-to-date views from ledgers and live telemetry."""

    def __init__(
        self,
        clients: ClientDirectory,
        balances: BalanceLedger,
        capital: CapitalEventLedger,
        trades: TradeLedger,
        snapshots: MonthlySnapshotStore,
        telemetry: TelemetryFeed,
        accounting: AccountingConfig,
        telemetry_config: TelemetryConfig,
    ) -> None:
        self._clients = clients
        self._balances = balances
        self._capital = capital
        self._trades = trades
        self._snapshots = snapshots
        self._telemetry = telemetry
        self._accounting = accounting
        self._telemetry_config = telemetry_config

    async def client_view(
        self, client_id: str, now: datetime | None = None
    ) -> MonthToDateView:
        client = await self._clients.get(client_id)
        return await self._view_for(client, as_utc(now or utc_now()))

    async def client_view_for_email(
        self, email: str, now: datetime | None = None
    ) -> MonthToDateView:
        client = await self._clients.get_by_email(email)
        return await self._view_for(client, as_utc(now or utc_now()))

    async def fund_view(self, now: datetime | None = None) -> FundMonthToDate:
        now = as_utc(now or utc_now())
        fund = FundMonthToDate(period=Period.containing(now).key)
        for client in await self._clients.active():
            fund.clients.append(await self._view_for(client, now))
        return fund

    async def _view_for(self, client: Client, now: datetime) -> MonthToDateView:
        period = Period.containing(now)
        ctx = f"[{client.client_id} {period} MTD] "

        in_month = await self._balances.get_snapshots_in_range(
            client.client_id, period.start, now
        )
        prior_month = await self._snapshots.get(client.client_id, period.previous())
        prior_snapshot = await self._balances.get_last_snapshot_before(
            client.client_id, period.start
        )

        opening = first_available(
            "opening",
            [
                ("prior_month_close", prior_month.closing_balance if prior_month else None),
                ("prior_snapshot", prior_snapshot.balance if prior_snapshot else None),
                ("first_in_period", in_month[0].balance if in_month else None),
            ],
            context=ctx,
        )
        opening_value = opening.value if opening.found else ZERO

        state = None
        if client.bot_id:
            state = await self._telemetry.get_state(client.bot_id)

        closing = first_available(
            "current",
            [
                ("live_equity", state.total_equity if state else None),
                ("live_amount", state.current_amount if state else None),
                ("latest_in_period", in_month[-1].balance if in_month else None),
                ("opening", opening_value),
            ],
            context=ctx,
        )

        live = BalanceSnapshot(
            client_id=client.client_id,
            balance=closing.value,
            recorded_at=now,
        )

        carried_in = await self._snapshots.derived_carried_loss(client.client_id, period)
        if carried_in is None:
            carried_in = client.carried_loss

        stats = compute_stats(
            trades=await self._trades.list_closed_trades(client.bot_id, period.start, now),
            balances=[*in_month, live],
            capital_events=await self._capital.list_in_range(
                client.client_id, period.start, now
            ),
            carried_loss_in=carried_in,
            fee_fraction=client.profit_share_pct,
            prior_closing_override=opening_value,
        )

        return MonthToDateView(
            client_id=client.client_id,
            name=client.name,
            period=period.key,
            stats=stats,
            opening_source=opening.source or OPENING_FROM_NONE,
            closing_source=closing.source,
            staleness=classify_staleness(
                state.updated_at if state else None, now, self._telemetry_config
            ),
            telemetry_updated_at=state.updated_at if state else None,
            possible_missing_capital=self._missing_capital(stats),
        )

    def _missing_capital(self, stats: MonthStats) -> bool:
        """Large MTD loss not explained by recorded capital flows."""
        opening = stats.opening_balance
        pnl = stats.gross_pnl
        if opening <= 0:
            return False
        return (
            pnl < -opening * self._accounting.missing_capital_loss_pct
            and abs(stats.net_new_capital) < abs(pnl) * self._accounting.missing_capital_ratio
        )
