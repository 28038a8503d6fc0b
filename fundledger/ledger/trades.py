"""Trade log reader."""

from datetime import datetime

from fundledger.ledger.types import Trade
from fundledger.money import from_epoch, optional_decimal, to_decimal
from fundledger.persistence.repository import Repository


def trade_from_row(row: dict) -> Trade:
    return Trade(
        bot_id=row["bot_id"],
        trade_id=row.get("trade_id"),
        timestamp=from_epoch(row["timestamp"]),
        symbol=row["symbol"],
        side=row["side"],
        price=to_decimal(row["price"]),
        quantity=to_decimal(row["quantity"]),
        amount=to_decimal(row["amount"]),
        pnl=optional_decimal(row.get("pnl")),
        pnl_percent=optional_decimal(row.get("pnl_percent")),
        reason=row.get("reason"),
    )


class TradeLedger:
    """Read-only view over bot executions."""

    def __init__(self, repo: Repository) -> None:
        self._repo = repo

    async def list_trades(
        self, bot_id: str | None, start: datetime, end: datetime
    ) -> list[Trade]:
        """All executions in [start, end), for display."""
        if not bot_id:
            return []
        rows = await self._repo.get_trades(bot_id, start, end)
        return [trade_from_row(row) for row in rows]

    async def list_closed_trades(
        self, bot_id: str | None, start: datetime, end: datetime
    ) -> list[Trade]:
        """SELL executions with a realized P&L in [start, end)."""
        trades = await self.list_trades(bot_id, start, end)
        return [t for t in trades if t.is_closed]
