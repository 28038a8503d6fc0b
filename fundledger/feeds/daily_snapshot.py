"""Daily balance snapshot job."""

import logging
from dataclasses import dataclass, field
from datetime import datetime

import aiosqlite

from fundledger.accounting.sources import first_available
from fundledger.feeds.telemetry import TelemetryFeed
from fundledger.ledger.balances import BalanceLedger
from fundledger.ledger.types import AuditEventType, AuditLogEntry, BalanceSnapshot
from fundledger.money import to_decimal, utc_now
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


@dataclass
class DailySnapshotResult:
    """Outcome of one snapshot run."""

    recorded: int = 0
    skipped: int = 0
    errors: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "recorded": self.recorded,
            "skipped": self.skipped,
            "errors": list(self.errors),
        }


class DailySnapshotJob:
    """Copies live account value into balance history once a day."""

    def __init__(
        self,
        repo: Repository,
        balances: BalanceLedger,
        telemetry: TelemetryFeed,
    ) -> None:
        self._repo = repo
        self._balances = balances
        self._telemetry = telemetry

    async def run(self, now: datetime | None = None) -> DailySnapshotResult:
        now = now or utc_now()
        result = DailySnapshotResult()

        for row in await self._repo.get_active_clients():
            client_id = row["client_id"]
            bot_id = row.get("bot_id")
            if not bot_id:
                result.skipped += 1
                continue

            try:
                recorded = await self._snapshot_client(client_id, bot_id, now)
            except aiosqlite.Error as e:
                logger.error("Balance snapshot failed for %s: %s", client_id, e)
                result.errors.append(f"{client_id}: {e}")
                continue

            if recorded is None:
                result.errors.append(f"{client_id}: no balance in telemetry for bot {bot_id}")
            else:
                result.recorded += 1

        logger.info(
            "Daily snapshot complete: recorded=%d skipped=%d errors=%d",
            result.recorded,
            result.skipped,
            len(result.errors),
        )
        return result

    async def _snapshot_client(
        self, client_id: str, bot_id: str, now: datetime
    ) -> BalanceSnapshot | None:
        state = await self._telemetry.get_state(bot_id)
        resolved = first_available(
            "balance",
            [
                ("total_equity", state.total_equity if state else None),
                ("current_amount", state.current_amount if state else None),
            ],
            context=f"[{client_id}] ",
        )
        if not resolved.found:
            logger.warning("No live balance for %s (bot %s), skipping", client_id, bot_id)
            return None

        latest = await self._repo.get_latest_balance(client_id)
        before = to_decimal(latest["balance"]) if latest else None

        snapshot = await self._balances.append(
            BalanceSnapshot(
                client_id=client_id,
                balance=resolved.value,
                equity=state.total_equity,
                recorded_at=now,
            )
        )

        await self._repo.append_audit(
            AuditLogEntry(
                event_type=AuditEventType.BALANCE_SNAPSHOT,
                client_id=client_id,
                amount=resolved.value - before if before is not None else None,
                balance_before=before,
                balance_after=resolved.value,
                description=f"Daily balance snapshot from {resolved.source}",
                metadata={
                    "bot_id": bot_id,
                    "source": resolved.source,
                    "snapshot_id": snapshot.snapshot_id,
                    "telemetry_updated_at": state.updated_at.isoformat(),
                },
                created_at=now,
            )
        )
        return snapshot
