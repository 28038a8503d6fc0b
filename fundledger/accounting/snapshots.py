"""Monthly snapshot store.

One row per (client, year, month). Recomputation overwrites the stat
columns only; fee payments and the report-sent marker survive it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from fundledger.accounting.period import Period
from fundledger.accounting.stats import OPENING_FROM_FIRST_SNAPSHOT, MonthStats
from fundledger.errors import AccountingError
from fundledger.money import ZERO, from_epoch, optional_decimal, to_decimal
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


class SnapshotStatus(str, Enum):
    """Lifecycle of a period close."""

    UNSTARTED = "UNSTARTED"
    COMPUTED = "COMPUTED"
    REPORT_SENT = "REPORT_SENT"


@dataclass
class MonthlySnapshot:
    """Persisted statement for one client and period."""

    client_id: str
    period: Period
    stats: MonthStats
    fee_paid: Decimal = ZERO
    fee_paid_at: datetime | None = None
    fee_payment_ref: str | None = None
    computed_at: datetime | None = None
    report_sent_at: datetime | None = None
    report_sent_to: str | None = None

    @property
    def status(self) -> SnapshotStatus:
        if self.report_sent_at is not None:
            return SnapshotStatus.REPORT_SENT
        return SnapshotStatus.COMPUTED

    @property
    def opening_balance(self) -> Decimal:
        return self.stats.opening_balance

    @property
    def closing_balance(self) -> Decimal:
        return self.stats.closing_balance

    @property
    def performance_fee(self) -> Decimal:
        return self.stats.performance_fee

    @property
    def fee_outstanding(self) -> Decimal:
        return max(ZERO, self.stats.performance_fee - self.fee_paid)

    def to_dict(self) -> dict:
        data = self.stats.to_dict()
        data.update(
            client_id=self.client_id,
            year=self.period.year,
            month=self.period.month,
            period=self.period.key,
            status=self.status.value,
            fee_paid=self.fee_paid,
            fee_outstanding=self.fee_outstanding,
            fee_paid_at=self.fee_paid_at,
            fee_payment_ref=self.fee_payment_ref,
            computed_at=self.computed_at,
            report_sent_at=self.report_sent_at,
            report_sent_to=self.report_sent_to,
        )
        return data


def stats_from_row(row: dict) -> MonthStats:
    return MonthStats(
        opening_balance=to_decimal(row["opening_balance"]),
        closing_balance=to_decimal(row["closing_balance"]),
        total_deposits=to_decimal(row["total_deposits"]),
        total_withdrawals=to_decimal(row["total_withdrawals"]),
        net_new_capital=to_decimal(row["net_new_capital"]),
        gross_pnl=to_decimal(row["gross_pnl"]),
        carried_loss_in=to_decimal(row["carried_loss_in"]),
        net_pnl=to_decimal(row["net_pnl"]),
        performance_fee=to_decimal(row["performance_fee"]),
        carried_loss_out=to_decimal(row["carried_loss_out"]),
        total_trades=int(row["total_trades"]),
        winning_trades=int(row["winning_trades"]),
        losing_trades=int(row["losing_trades"]),
        win_rate=to_decimal(row["win_rate"]),
        profit_factor=to_decimal(row["profit_factor"]),
        best_trade_pnl=to_decimal(row["best_trade_pnl"]),
        worst_trade_pnl=to_decimal(row["worst_trade_pnl"]),
        avg_win=to_decimal(row["avg_win"]),
        avg_loss=to_decimal(row["avg_loss"]),
        realized_pnl=to_decimal(row["realized_pnl"]),
        unrealized_pnl_change=to_decimal(row["unrealized_pnl_change"]),
        client_share=to_decimal(row["client_share"]),
        opening_source=row.get("opening_source") or OPENING_FROM_FIRST_SNAPSHOT,
    )


def snapshot_from_row(row: dict) -> MonthlySnapshot:
    return MonthlySnapshot(
        client_id=row["client_id"],
        period=Period(row["year"], row["month"]),
        stats=stats_from_row(row),
        fee_paid=optional_decimal(row.get("fee_paid")) or ZERO,
        fee_paid_at=from_epoch(row.get("fee_paid_at")),
        fee_payment_ref=row.get("fee_payment_ref"),
        computed_at=from_epoch(row.get("computed_at")),
        report_sent_at=from_epoch(row.get("report_sent_at")),
        report_sent_to=row.get("report_sent_to"),
    )


class MonthlySnapshotStore:
    """Idempotent persistence of period statements."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def upsert(
        self, client_id: str, period: Period, stats: MonthStats
    ) -> MonthlySnapshot:
        """Write the stat fields for (client, period) in one statement."""
        await self._repo.upsert_monthly_snapshot(
            client_id, period.year, period.month, stats
        )
        logger.debug("Snapshot upserted: %s %s", client_id, period)
        snapshot = await self.get(client_id, period)
        if snapshot is None:
            raise AccountingError(
                f"Snapshot {client_id} {period} missing right after upsert",
                code="SNAPSHOT_WRITE_LOST",
            )
        return snapshot

    async def get(self, client_id: str, period: Period) -> MonthlySnapshot | None:
        row = await self._repo.get_monthly_snapshot(client_id, period.year, period.month)
        return snapshot_from_row(row) if row else None

    async def status(self, client_id: str, period: Period) -> SnapshotStatus:
        snapshot = await self.get(client_id, period)
        if snapshot is None:
            return SnapshotStatus.UNSTARTED
        return snapshot.status

    async def mark_report_sent(
        self,
        client_id: str,
        period: Period,
        sent_at: datetime,
        recipient: str,
    ) -> bool:
        updated = await self._repo.mark_report_sent(
            client_id, period.year, period.month, sent_at, recipient
        )
        if not updated:
            logger.warning("No snapshot to mark as sent: %s %s", client_id, period)
        return updated

    async def latest_before(
        self, client_id: str, period: Period
    ) -> MonthlySnapshot | None:
        row = await self._repo.get_latest_snapshot_before(
            client_id, period.year, period.month
        )
        return snapshot_from_row(row) if row else None

    async def list_for_client(self, client_id: str) -> list[MonthlySnapshot]:
        """Chronological snapshots for one client."""
        rows = await self._repo.get_monthly_snapshots(client_id)
        return [snapshot_from_row(row) for row in rows]

    async def list_all(self) -> list[MonthlySnapshot]:
        """Every snapshot, grouped by client then period."""
        rows = await self._repo.get_monthly_snapshots()
        return [snapshot_from_row(row) for row in rows]

    async def list_for_period(self, period: Period) -> list[MonthlySnapshot]:
        rows = await self._repo.get_snapshots_for_period(period.year, period.month)
        return [snapshot_from_row(row) for row in rows]

    async def derived_carried_loss(
        self, client_id: str, period: Period
    ) -> Decimal | None:
        """Carried loss entering ``period`` according to snapshot history.

        None when the client has no earlier snapshot.
        """
        previous = await self.latest_before(client_id, period)
        if previous is None:
            return None
        return previous.stats.carried_loss_out
