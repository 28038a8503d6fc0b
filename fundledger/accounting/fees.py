"""Performance fee ledger: invoiced vs. paid."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Iterable

from fundledger.accounting.period import Period
from fundledger.accounting.snapshots import MonthlySnapshot, MonthlySnapshotStore
from fundledger.errors import NotFoundError
from fundledger.ledger.capital import parse_positive_amount
from fundledger.ledger.types import AuditEventType, AuditLogEntry
from fundledger.money import ZERO, utc_now
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FeePaymentResult:
    """State of one period's fee after a payment."""

    client_id: str
    period: str
    fee_invoiced: Decimal
    amount_paid: Decimal
    total_paid: Decimal
    outstanding: Decimal
    payment_method: str | None = None
    transaction_ref: str | None = None

    @property
    def fully_settled(self) -> bool:
        return self.outstanding <= 0

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "period": self.period,
            "fee_invoiced": self.fee_invoiced,
            "amount_paid": self.amount_paid,
            "total_paid": self.total_paid,
            "outstanding": self.outstanding,
            "fully_settled": self.fully_settled,
            "payment_method": self.payment_method,
            "transaction_ref": self.transaction_ref,
        }


@dataclass(frozen=True)
class FeeSummary:
    earned: Decimal
    paid: Decimal
    outstanding: Decimal

    def to_dict(self) -> dict:
        return {"earned": self.earned, "paid": self.paid, "outstanding": self.outstanding}


@dataclass(frozen=True)
class FeeRow:
    """One fee-bearing period and its payment state."""

    client_id: str
    period: str
    invoiced: Decimal
    paid: Decimal
    outstanding: Decimal
    paid_at: datetime | None
    payment_ref: str | None

    @property
    def settled(self) -> bool:
        return self.outstanding <= 0

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "period": self.period,
            "invoiced": self.invoiced,
            "paid": self.paid,
            "outstanding": self.outstanding,
            "settled": self.settled,
            "paid_at": self.paid_at,
            "payment_ref": self.payment_ref,
        }


def summarize(snapshots: Iterable[MonthlySnapshot]) -> FeeSummary:
    """Totals over snapshots. Outstanding is summed per period, never negative."""
    earned = ZERO
    paid = ZERO
    outstanding = ZERO
    for snapshot in snapshots:
        earned += snapshot.performance_fee
        paid += snapshot.fee_paid
        outstanding += snapshot.fee_outstanding
    return FeeSummary(earned=earned, paid=paid, outstanding=outstanding)


class FeeLedger:
    """Tracks performance fee payments against invoiced snapshots."""

    def __init__(self, repo: Repository, snapshots: MonthlySnapshotStore) -> None:
        self._repo = repo
        self._snapshots = snapshots

    async def record_payment(
        self,
        client_id: str,
        period: Period,
        amount_paid: object,
        method: str | None = None,
        ref: str | None = None,
        paid_at: datetime | None = None,
    ) -> FeePaymentResult:
        """Add a (possibly partial) payment to a period's fee.

        Raises:
            ValidationError: amount_paid is not a positive number.
            NotFoundError: client or snapshot does not exist.
        """
        amount = parse_positive_amount(amount_paid, field="amount_paid")

        client = await self._repo.get_client(client_id)
        if client is None:
            raise NotFoundError(f"Client not found: {client_id}", code="CLIENT_NOT_FOUND")

        snapshot = await self._snapshots.get(client_id, period)
        if snapshot is None:
            raise NotFoundError(
                f"No monthly snapshot for {client['name']} - {period.key}",
                code="SNAPSHOT_NOT_FOUND",
            )

        paid_at = paid_at or utc_now()
        already_paid = snapshot.fee_paid
        total_paid = already_paid + amount
        invoiced = snapshot.performance_fee
        outstanding = max(ZERO, invoiced - total_paid)

        await self._repo.update_fee_paid(
            client_id, period.year, period.month, total_paid, paid_at, ref
        )

        await self._repo.append_audit(
            AuditLogEntry(
                event_type=AuditEventType.FEE,
                client_id=client_id,
                amount=amount,
                description=(
                    f"Performance fee received from {client['name']} for {period.key} "
                    f"via {method or 'unknown'}"
                ),
                metadata={
                    "year": period.year,
                    "month": period.month,
                    "invoiced": invoiced,
                    "amount_paid": amount,
                    "paid_before": already_paid,
                    "total_paid": total_paid,
                    "outstanding_before": snapshot.fee_outstanding,
                    "outstanding": outstanding,
                    "payment_method": method,
                    "transaction_ref": ref,
                },
                created_at=paid_at,
            )
        )

        if total_paid > invoiced:
            logger.warning(
                "Fee overpaid for %s %s: invoiced=%s total_paid=%s",
                client_id,
                period,
                invoiced,
                total_paid,
            )

        logger.info(
            "Fee payment recorded: %s %s amount=%s total=%s outstanding=%s",
            client_id,
            period,
            amount,
            total_paid,
            outstanding,
        )

        return FeePaymentResult(
            client_id=client_id,
            period=period.key,
            fee_invoiced=invoiced,
            amount_paid=amount,
            total_paid=total_paid,
            outstanding=outstanding,
            payment_method=method,
            transaction_ref=ref,
        )

    async def client_summary(self, client_id: str) -> FeeSummary:
        """All-time earned, paid and outstanding for one client."""
        return summarize(await self._snapshots.list_for_client(client_id))

    async def fund_summary(self) -> FeeSummary:
        """Fund-wide totals over periods that charged a fee."""
        snapshots = await self._snapshots.list_all()
        return summarize(s for s in snapshots if s.performance_fee > 0)

    async def outstanding_rows(self, client_id: str | None = None) -> list[FeeRow]:
        """Every fee-bearing period with its payment state."""
        if client_id:
            snapshots = await self._snapshots.list_for_client(client_id)
        else:
            snapshots = await self._snapshots.list_all()

        return [
            FeeRow(
                client_id=s.client_id,
                period=s.period.key,
                invoiced=s.performance_fee,
                paid=s.fee_paid,
                outstanding=s.fee_outstanding,
                paid_at=s.fee_paid_at,
                payment_ref=s.fee_payment_ref,
            )
            for s in snapshots
            if s.performance_fee > 0
        ]
