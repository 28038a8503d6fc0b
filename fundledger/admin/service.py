"""Operator-facing operations: capital, fees, reconciliation, overview."""

import logging
from datetime import datetime

from fundledger.accounting.fees import FeeLedger, summarize
from fundledger.accounting.period import Period
from fundledger.accounting.reconciliation import ReconciliationChecker
from fundledger.accounting.snapshots import MonthlySnapshotStore
from fundledger.ledger.capital import CapitalEventLedger
from fundledger.ledger.clients import ClientDirectory
from fundledger.ledger.types import CapitalEvent, CapitalEventKind
from fundledger.money import ZERO
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


def capital_event_to_dict(event: CapitalEvent) -> dict:
    return {
        "id": event.event_id,
        "kind": event.kind.value,
        "amount": event.amount,
        "signed_amount": event.signed_amount,
        "occurred_at": event.occurred_at,
        "balance_before": event.balance_before,
        "balance_after": event.balance_after,
        "notes": event.notes,
        "recorded_by": event.recorded_by,
        "recorded_at": event.recorded_at,
    }


class AdminService:
    """Admin operations, addressed by client email."""

    def __init__(
        self,
        repo: Repository,
        clients: ClientDirectory,
        capital: CapitalEventLedger,
        fees: FeeLedger,
        snapshots: MonthlySnapshotStore,
        checker: ReconciliationChecker,
    ) -> None:
        self._repo = repo
        self._clients = clients
        self._capital = capital
        self._fees = fees
        self._snapshots = snapshots
        self._checker = checker

    async def record_capital_event(
        self,
        email: str,
        kind: CapitalEventKind | str,
        amount: object,
        occurred_at: datetime | None = None,
        notes: str | None = None,
        recorded_by: str = "admin",
    ) -> dict:
        client = await self._clients.get_by_email(email)
        event = await self._capital.record(
            client.client_id,
            kind,
            amount,
            occurred_at=occurred_at,
            notes=notes,
            recorded_by=recorded_by,
        )
        totals = await self._capital.totals(client.client_id)
        return {
            "client": client.name,
            "event": capital_event_to_dict(event),
            "totals": totals.to_dict(),
        }

    async def list_capital_events(self, email: str, limit: int = 50) -> dict:
        client = await self._clients.get_by_email(email)
        events = await self._capital.list_recent(client.client_id, limit)
        totals = await self._capital.totals(client.client_id)
        return {
            "client": client.name,
            "events": [capital_event_to_dict(e) for e in events],
            "totals": totals.to_dict(),
        }

    async def record_fee_payment(
        self,
        email: str,
        year: int,
        month: int,
        amount: object,
        method: str | None = None,
        ref: str | None = None,
    ) -> dict:
        period = Period(year, month)
        client = await self._clients.get_by_email(email)
        result = await self._fees.record_payment(
            client.client_id, period, amount, method=method, ref=ref
        )
        return {"client": client.name, **result.to_dict()}

    async def fee_history(self, email: str) -> dict:
        """Every snapshot for a client, newest first, with lifetime totals."""
        client = await self._clients.get_by_email(email)
        snapshots = await self._snapshots.list_for_client(client.client_id)
        fees = summarize(snapshots)

        totals = {
            "total_fees_invoiced": fees.earned,
            "total_fees_paid": fees.paid,
            "total_trading_pnl": sum((s.stats.gross_pnl for s in snapshots), ZERO),
            "total_deposited": sum((s.stats.total_deposits for s in snapshots), ZERO),
            "total_withdrawn": sum((s.stats.total_withdrawals for s in snapshots), ZERO),
            "current_carried_loss": client.carried_loss,
        }
        return {
            "client": client.name,
            "totals": totals,
            "outstanding": fees.outstanding,
            "snapshots": [s.to_dict() for s in reversed(snapshots)],
        }

    async def reconciliation_report(self, email: str | None = None) -> dict:
        """Continuity findings for one client or the whole fund."""
        if email:
            client = await self._clients.get_by_email(email)
            snapshots = await self._snapshots.list_for_client(client.client_id)
        else:
            snapshots = await self._snapshots.list_all()

        findings = self._checker.check_continuity(snapshots)
        return {
            "snapshots_checked": len(snapshots),
            "clients_checked": len({s.client_id for s in snapshots}),
            "ok": not findings,
            "findings": [
                {
                    **f.to_dict(),
                    "label": f"{Period.parse(f.previous_period).label} -> "
                    f"{Period.parse(f.period).label}",
                }
                for f in findings
            ],
        }

    async def fund_overview(self, period: Period) -> dict:
        """Fund-level aggregates for one closed period."""
        snapshots = await self._snapshots.list_for_period(period)
        fees = summarize(snapshots)
        return {
            "period": period.key,
            "label": period.label,
            "clients": len(snapshots),
            "reports_sent": sum(1 for s in snapshots if s.report_sent_at is not None),
            "aum": sum((s.closing_balance for s in snapshots), ZERO),
            "opening_aum": sum((s.opening_balance for s in snapshots), ZERO),
            "deposits": sum((s.stats.total_deposits for s in snapshots), ZERO),
            "withdrawals": sum((s.stats.total_withdrawals for s in snapshots), ZERO),
            "gross_pnl": sum((s.stats.gross_pnl for s in snapshots), ZERO),
            "fees_earned": fees.earned,
            "fees_paid": fees.paid,
            "fees_outstanding": fees.outstanding,
        }

    async def rebuild_carried_loss(self, email: str) -> dict:
        """Reset the cached carried loss from the latest snapshot."""
        client = await self._clients.get_by_email(email)
        snapshots = await self._snapshots.list_for_client(client.client_id)

        if snapshots:
            latest = snapshots[-1]
            rebuilt = latest.stats.carried_loss_out
            source_period = latest.period.key
        else:
            rebuilt = ZERO
            source_period = None

        if rebuilt != client.carried_loss:
            logger.warning(
                "Carried loss cache for %s was %s, rebuilt to %s from %s",
                client.client_id,
                client.carried_loss,
                rebuilt,
                source_period,
            )
        await self._repo.update_carried_loss(client.client_id, rebuilt)

        return {
            "client": client.name,
            "previous": client.carried_loss,
            "rebuilt": rebuilt,
            "source_period": source_period,
        }
