"""Balance history reader."""

import logging
from datetime import datetime

from fundledger.ledger.types import BalanceSnapshot
from fundledger.money import from_epoch, optional_decimal, to_decimal
from fundledger.persistence.repository import Repository

logger = logging.getLogger(__name__)


def balance_from_row(row: dict) -> BalanceSnapshot:
    return BalanceSnapshot(
        client_id=row["client_id"],
        balance=to_decimal(row["balance"]),
        equity=optional_decimal(row.get("equity")),
        recorded_at=from_epoch(row["recorded_at"]),
        snapshot_id=row.get("id"),
    )


class BalanceLedger:
    """Read-only view over point-in-time balance snapshots."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def get_snapshots_in_range(
        self, client_id: str, start: datetime, end: datetime
    ) -> list[BalanceSnapshot]:
        """Snapshots with start <= recorded_at < end, oldest first.

        Same-timestamp snapshots keep insertion order.
        """
        rows = await self._repo.get_balance_snapshots(client_id, start, end)
        return [balance_from_row(row) for row in rows]

    async def get_last_snapshot_before(
        self, client_id: str, cutoff: datetime
    ) -> BalanceSnapshot | None:
        row = await self._repo.get_last_balance_before(client_id, cutoff)
        return balance_from_row(row) if row else None

    async def get_latest_snapshot(self, client_id: str) -> BalanceSnapshot | None:
        row = await self._repo.get_latest_balance(client_id)
        return balance_from_row(row) if row else None

    async def append(self, snapshot: BalanceSnapshot) -> BalanceSnapshot:
        """Store a new snapshot. History is append-only."""
        snapshot.snapshot_id = await self._repo.save_balance_snapshot(snapshot)
        logger.debug(
            "Balance snapshot %s for %s: %s",
            snapshot.snapshot_id,
            snapshot.client_id,
            snapshot.balance,
        )
        return snapshot
