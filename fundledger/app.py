"""Application wiring."""

import logging

from fundledger.accounting.fees import FeeLedger
from fundledger.accounting.month_to_date import MonthToDateService
from fundledger.accounting.pipeline import MonthlyReportPipeline
from fundledger.accounting.reconciliation import ReconciliationChecker
from fundledger.accounting.snapshots import MonthlySnapshotStore
from fundledger.admin.service import AdminService
from fundledger.config import Settings
from fundledger.feeds.daily_snapshot import DailySnapshotJob
from fundledger.feeds.telemetry import ExchangeRateSource, RepositoryTelemetryFeed
from fundledger.ledger.balances import BalanceLedger
from fundledger.ledger.capital import CapitalEventLedger
from fundledger.ledger.clients import ClientDirectory
from fundledger.ledger.trades import TradeLedger
from fundledger.monitor.logger import setup_logging
from fundledger.notification.email_notifier import EmailNotifier
from fundledger.persistence.database import Database
from fundledger.persistence.repository import Repository
from fundledger.report.writer import ReportWriter

logger = logging.getLogger(__name__)


class Application:
    """Builds the services on top of one database connection."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings

        self._db: Database | None = None
        self._repo: Repository | None = None
        self._email_notifier: EmailNotifier | None = None
        self._pipeline: MonthlyReportPipeline | None = None
        self._daily_snapshots: DailySnapshotJob | None = None
        self._month_to_date: MonthToDateService | None = None
        self._admin: AdminService | None = None
        self._fees: FeeLedger | None = None

    @property
    def repo(self) -> Repository:
        return self._require(self._repo)

    @property
    def pipeline(self) -> MonthlyReportPipeline:
        return self._require(self._pipeline)

    @property
    def daily_snapshots(self) -> DailySnapshotJob:
        return self._require(self._daily_snapshots)

    @property
    def month_to_date(self) -> MonthToDateService:
        return self._require(self._month_to_date)

    @property
    def admin(self) -> AdminService:
        return self._require(self._admin)

    @property
    def fees(self) -> FeeLedger:
        return self._require(self._fees)

    async def start(self, configure_logging: bool = True) -> None:
        """Connect the database and build services."""
        if configure_logging:
            setup_logging(
                self._settings.logging.log_dir,
                self._settings.logging.level,
                self._settings.logging.json_format,
            )

        self._db = Database(self._settings.database.path)
        await self._db.connect()
        self._repo = Repository(self._db)

        self._email_notifier = EmailNotifier(self._settings.email)
        if self._settings.email.enabled:
            logger.info("Email delivery enabled via %s", self._settings.email.smtp_host)
        else:
            logger.info("Email delivery disabled; reports will not be marked sent")

        telemetry = RepositoryTelemetryFeed(self._repo)
        clients = ClientDirectory(self._repo)
        balances = BalanceLedger(self._repo)
        capital = CapitalEventLedger(self._repo, telemetry)
        trades = TradeLedger(self._repo)
        snapshots = MonthlySnapshotStore(self._repo)
        checker = ReconciliationChecker(self._settings.accounting)

        self._fees = FeeLedger(self._repo, snapshots)

        self._pipeline = MonthlyReportPipeline(
            repo=self._repo,
            clients=clients,
            balances=balances,
            capital=capital,
            trades=trades,
            snapshots=snapshots,
            checker=checker,
            writer=ReportWriter(self._settings.report),
            sink=self._email_notifier,
            rates=ExchangeRateSource(self._repo),
            alerter=self._email_notifier,
            report_dir=self._settings.report.report_dir,
        )

        self._daily_snapshots = DailySnapshotJob(self._repo, balances, telemetry)

        self._month_to_date = MonthToDateService(
            clients=clients,
            balances=balances,
            capital=capital,
            trades=trades,
            snapshots=snapshots,
            telemetry=telemetry,
            accounting=self._settings.accounting,
            telemetry_config=self._settings.telemetry,
        )

        self._admin = AdminService(
            repo=self._repo,
            clients=clients,
            capital=capital,
            fees=self._fees,
            snapshots=snapshots,
            checker=checker,
        )

    async def stop(self) -> None:
        """Close the database connection."""
        if self._db:
            await self._db.disconnect()
            self._db = None

    @staticmethod
    def _require(component):
        if component is None:
            raise RuntimeError("Application not started")
        return component
