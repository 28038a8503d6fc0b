"""Monthly report pipeline.

Closes a period for every active client: compute, reconcile, persist,
notify. ``report_sent_at`` on the snapshot is the idempotency gate, so
the run can be repeated safely after a partial failure.
"""

import dataclasses
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

import aiosqlite

from fundledger.accounting.period import Period
from fundledger.accounting.reconciliation import ReconciliationChecker, ReconciliationFinding
from fundledger.accounting.snapshots import MonthlySnapshot, MonthlySnapshotStore
from fundledger.accounting.sources import first_available
from fundledger.accounting.stats import OPENING_FROM_FIRST_SNAPSHOT, MonthStats, compute_stats
from fundledger.errors import DataGapError, NotificationFailure
from fundledger.feeds.telemetry import ExchangeRateSource
from fundledger.ledger.balances import BalanceLedger
from fundledger.ledger.capital import CapitalEventLedger
from fundledger.ledger.clients import ClientDirectory
from fundledger.ledger.trades import TradeLedger
from fundledger.ledger.types import AuditEventType, AuditLogEntry, Client
from fundledger.monitor.logger import LogContext, get_accounting_logger
from fundledger.money import utc_now
from fundledger.notification.email_notifier import EmailNotifier, NotificationSink
from fundledger.persistence.repository import Repository
from fundledger.report.writer import ReportContext, ReportWriter

logger = logging.getLogger(__name__)


class ClientOutcome(str, Enum):
    REPORT_SENT = "REPORT_SENT"
    SKIPPED_ALREADY_SENT = "SKIPPED_ALREADY_SENT"
    SKIPPED_NO_RECIPIENT = "SKIPPED_NO_RECIPIENT"
    DATA_GAP = "DATA_GAP"
    NOTIFICATION_FAILED = "NOTIFICATION_FAILED"
    ERROR = "ERROR"


@dataclass
class ClientRunResult:
    """What happened to one client during a run."""

    client_id: str
    outcome: ClientOutcome
    stats: MonthStats | None = None
    carried_loss_source: str | None = None
    findings: list[ReconciliationFinding] = field(default_factory=list)
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "outcome": self.outcome.value,
            "opening_source": self.stats.opening_source if self.stats else None,
            "carried_loss_source": self.carried_loss_source,
            "net_pnl": self.stats.net_pnl if self.stats else None,
            "performance_fee": self.stats.performance_fee if self.stats else None,
            "carried_loss_out": self.stats.carried_loss_out if self.stats else None,
            "findings": [f.to_dict() for f in self.findings],
            "error": self.error,
        }


@dataclass
class PipelineResult:
    """Result of one monthly report run."""

    run_id: str
    period: Period
    clients: list[ClientRunResult] = field(default_factory=list)

    def _count(self, *outcomes: ClientOutcome) -> int:
        return sum(1 for c in self.clients if c.outcome in outcomes)

    @property
    def sent(self) -> int:
        return self._count(ClientOutcome.REPORT_SENT)

    @property
    def skipped(self) -> int:
        return self._count(
            ClientOutcome.SKIPPED_ALREADY_SENT, ClientOutcome.SKIPPED_NO_RECIPIENT
        )

    @property
    def data_gaps(self) -> int:
        return self._count(ClientOutcome.DATA_GAP)

    @property
    def notification_failures(self) -> int:
        return self._count(ClientOutcome.NOTIFICATION_FAILED)

    @property
    def errors(self) -> int:
        return self._count(ClientOutcome.ERROR)

    @property
    def findings(self) -> list[ReconciliationFinding]:
        return [f for c in self.clients for f in c.findings]

    def outcome_for(self, client_id: str) -> ClientOutcome | None:
        for c in self.clients:
            if c.client_id == client_id:
                return c.outcome
        return None

    def to_dict(self) -> dict:
        return {
            "run_id": self.run_id,
            "period": self.period.key,
            "sent": self.sent,
            "skipped": self.skipped,
            "data_gaps": self.data_gaps,
            "notification_failures": self.notification_failures,
            "errors": self.errors,
            "findings": [f.to_dict() for f in self.findings],
            "clients": [c.to_dict() for c in self.clients],
        }


class MonthlyReportPipeline:
    """Closes a period and delivers statements."""

    def __init__(
        self,
        repo: Repository,
        clients: ClientDirectory,
        balances: BalanceLedger,
        capital: CapitalEventLedger,
        trades: TradeLedger,
        snapshots: MonthlySnapshotStore,
        checker: ReconciliationChecker,
        writer: ReportWriter,
        sink: NotificationSink,
        rates: ExchangeRateSource | None = None,
        alerter: EmailNotifier | None = None,
        report_dir: Path | None = None,
    ) -> None:
        self._repo = repo
        self._clients = clients
        self._balances = balances
        self._capital = capital
        self._trades = trades
        self._snapshots = snapshots
        self._checker = checker
        self._writer = writer
        self._sink = sink
        self._rates = rates
        self._alerter = alerter
        self._report_dir = report_dir
        self._accounting_log = get_accounting_logger()

    async def run(self, period: Period | None = None, force: bool = False) -> PipelineResult:
        """
        Close ``period`` (default: previous calendar month) for all active clients.

        Per client:
        1. Skip without a recipient or when the report was already sent
        2. Compute stats from ledgers (data gap if no balances)
        3. Check the accounting identity (advisory)
        4. Upsert the snapshot
        5. Render and send, then mark sent and audit
        6. Refresh the cached carried loss
        """
        period = period or Period.previous_to(utc_now())
        run_id = f"RPT-{uuid.uuid4().hex[:12]}"
        result = PipelineResult(run_id=run_id, period=period)

        with LogContext(run_id):
            logger.info("Monthly report run %s for %s (force=%s)", run_id, period, force)

            for client in await self._clients.active():
                try:
                    client_result = await self._process_client(client, period, force)
                except DataGapError as e:
                    logger.warning(
                        "Data gap for %s %s, no report published "
                        "(likely telemetry sync outage): %s",
                        client.client_id,
                        period,
                        e,
                    )
                    client_result = ClientRunResult(
                        client_id=client.client_id,
                        outcome=ClientOutcome.DATA_GAP,
                        error=str(e),
                    )
                except Exception as e:
                    logger.exception("Monthly report failed for %s %s", client.client_id, period)
                    client_result = ClientRunResult(
                        client_id=client.client_id,
                        outcome=ClientOutcome.ERROR,
                        error=str(e),
                    )
                result.clients.append(client_result)

            logger.info(
                "Monthly report run %s complete: sent=%d skipped=%d data_gaps=%d "
                "notification_failures=%d errors=%d findings=%d",
                run_id,
                result.sent,
                result.skipped,
                result.data_gaps,
                result.notification_failures,
                result.errors,
                len(result.findings),
            )
            await self._alert_on_problems(result)

        return result

    async def _process_client(
        self, client: Client, period: Period, force: bool
    ) -> ClientRunResult:
        if not client.email:
            logger.info("Skipping %s: no email on file", client.client_id)
            return ClientRunResult(client.client_id, ClientOutcome.SKIPPED_NO_RECIPIENT)

        existing = await self._snapshots.get(client.client_id, period)
        if existing is not None and existing.report_sent_at is not None and not force:
            logger.info(
                "Skipping %s %s: report already sent at %s",
                client.client_id,
                period,
                existing.report_sent_at.isoformat(),
            )
            return ClientRunResult(
                client.client_id, ClientOutcome.SKIPPED_ALREADY_SENT, stats=existing.stats
            )

        stats, carried_source = await self._compute(client, period, existing)

        findings: list[ReconciliationFinding] = []
        observed = await self._balances.get_last_snapshot_before(client.client_id, period.end)
        finding = self._checker.check_identity(
            client.client_id, period, stats, observed.balance if observed else None
        )
        if finding is not None:
            findings.append(finding)

        snapshot = await self._snapshots.upsert(client.client_id, period, stats)
        self._accounting_log.info(
            "period closed",
            extra={
                "client_id": client.client_id,
                "period": period.key,
                "expected": str(stats.expected_closing),
                "actual": str(stats.closing_balance),
                "source": stats.opening_source,
            },
        )

        delivered = await self._deliver(client, period, snapshot)
        if not delivered:
            return ClientRunResult(
                client.client_id,
                ClientOutcome.NOTIFICATION_FAILED,
                stats=stats,
                carried_loss_source=carried_source,
                findings=findings,
            )

        await self._refresh_carried_loss(client, stats)

        return ClientRunResult(
            client.client_id,
            ClientOutcome.REPORT_SENT,
            stats=stats,
            carried_loss_source=carried_source,
            findings=findings,
        )

    async def _compute(
        self,
        client: Client,
        period: Period,
        existing: MonthlySnapshot | None,
    ) -> tuple[MonthStats, str]:
        ctx = f"[{client.client_id} {period}] "

        balances = await self._balances.get_snapshots_in_range(
            client.client_id, period.start, period.end
        )
        if not balances:
            raise DataGapError(
                f"No balance history for {client.client_id} in {period}",
                code="NO_BALANCES",
                client_id=client.client_id,
                period=period.key,
            )

        prior = await self._balances.get_last_snapshot_before(client.client_id, period.start)
        opening = first_available(
            "opening",
            [("prior_snapshot", prior.balance if prior else None)],
            context=ctx,
        )

        previous_carry = await self._snapshots.derived_carried_loss(client.client_id, period)
        carried = first_available(
            "carried_loss_in",
            [
                ("existing_snapshot", existing.stats.carried_loss_in if existing else None),
                ("previous_snapshot", previous_carry),
                ("client_cache", client.carried_loss),
            ],
            context=ctx,
        )

        stats = compute_stats(
            trades=await self._trades.list_closed_trades(client.bot_id, period.start, period.end),
            balances=balances,
            capital_events=await self._capital.list_in_range(
                client.client_id, period.start, period.end
            ),
            carried_loss_in=carried.value,
            fee_fraction=client.profit_share_pct,
            prior_closing_override=opening.value,
        )
        stats = dataclasses.replace(
            stats, opening_source=opening.source or OPENING_FROM_FIRST_SNAPSHOT
        )

        logger.info(
            "%sopening=%s (%s) closing=%s carried_loss_in=%s (%s) net_pnl=%s fee=%s",
            ctx,
            stats.opening_balance,
            stats.opening_source,
            stats.closing_balance,
            stats.carried_loss_in,
            carried.source,
            stats.net_pnl,
            stats.performance_fee,
        )
        return stats, carried.source

    async def _deliver(
        self, client: Client, period: Period, snapshot: MonthlySnapshot
    ) -> bool:
        """Render, send, mark sent and audit. False on delivery failure."""
        rate = None
        if self._rates is not None:
            rate = await self._rates.get_rate(client.fiat_currency)

        report = self._writer.render(
            ReportContext(
                client=client,
                period=period,
                stats=snapshot.stats,
                fee_fraction=client.profit_share_pct,
                trades=await self._trades.list_trades(client.bot_id, period.start, period.end),
                exchange_rate=rate,
            )
        )

        if self._report_dir is not None:
            self._writer.write(report, self._report_dir / period.key / f"{client.client_id}.md")

        try:
            await self._sink.send(client.email, report.subject, report.body)
        except NotificationFailure as e:
            logger.error(
                "REPORT NOT DELIVERED to %s for %s (snapshot kept, will retry next run): %s",
                client.email,
                period,
                e,
            )
            return False

        sent_at = utc_now()
        await self._snapshots.mark_report_sent(client.client_id, period, sent_at, client.email)
        await self._repo.append_audit(
            AuditLogEntry(
                event_type=AuditEventType.REPORT_SENT,
                client_id=client.client_id,
                amount=snapshot.stats.performance_fee,
                balance_before=snapshot.opening_balance,
                balance_after=snapshot.closing_balance,
                description=f"Monthly report for {period.label} sent to {client.email}",
                metadata={
                    "year": period.year,
                    "month": period.month,
                    "gross_pnl": snapshot.stats.gross_pnl,
                    "net_pnl": snapshot.stats.net_pnl,
                    "carried_loss_out": snapshot.stats.carried_loss_out,
                    "subject": report.subject,
                },
                created_at=sent_at,
            )
        )
        logger.info("Report sent to %s for %s", client.email, period)
        return True

    async def _refresh_carried_loss(self, client: Client, stats: MonthStats) -> None:
        """Update the cached carried loss. The snapshot stays authoritative."""
        try:
            await self._repo.update_carried_loss(client.client_id, stats.carried_loss_out)
        except aiosqlite.Error as e:
            logger.critical(
                "Failed to update carried_loss for %s to %s; cache is stale until "
                "rebuilt from snapshots: %s",
                client.client_id,
                stats.carried_loss_out,
                e,
            )

    async def _alert_on_problems(self, result: PipelineResult) -> None:
        if self._alerter is None:
            return
        if not (result.notification_failures or result.errors or result.data_gaps):
            return

        lines = [
            f"Monthly report run {result.run_id} for {result.period}",
            "",
            f"Sent: {result.sent}",
            f"Skipped: {result.skipped}",
            f"Data gaps: {result.data_gaps}",
            f"Notification failures: {result.notification_failures}",
            f"Errors: {result.errors}",
            "",
        ]
        for c in result.clients:
            if c.outcome in (
                ClientOutcome.DATA_GAP,
                ClientOutcome.NOTIFICATION_FAILED,
                ClientOutcome.ERROR,
            ):
                lines.append(f"  - {c.client_id}: {c.outcome.value} {c.error or ''}".rstrip())

        await self._alerter.send_admin_alert(
            f"Monthly report problems for {result.period}", "\n".join(lines)
        )
