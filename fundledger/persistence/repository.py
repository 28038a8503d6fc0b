"""Data access layer for fund accounting entities."""

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from fundledger.money import money_column, to_epoch, utc_now
from fundledger.persistence.database import Database

if TYPE_CHECKING:
    from fundledger.accounting.stats import MonthStats
    from fundledger.ledger.types import (
        AuditLogEntry,
        BalanceSnapshot,
        CapitalEvent,
        Client,
        ExchangeRate,
        LiveBotState,
        Trade,
    )

logger = logging.getLogger(__name__)

_SNAPSHOT_STAT_COLUMNS = (
    "opening_balance",
    "closing_balance",
    "opening_source",
    "total_deposits",
    "total_withdrawals",
    "net_new_capital",
    "gross_pnl",
    "carried_loss_in",
    "net_pnl",
    "performance_fee",
    "carried_loss_out",
    "realized_pnl",
    "unrealized_pnl_change",
    "client_share",
    "total_trades",
    "winning_trades",
    "losing_trades",
    "win_rate",
    "profit_factor",
    "best_trade_pnl",
    "worst_trade_pnl",
    "avg_win",
    "avg_loss",
)


class Repository:
    """Data access layer for all accounting entities."""

    def __init__(self, db: Database) -> None:
        self._db = db

    # --- Client operations ---

    async def save_client(self, client: "Client") -> None:
        """Insert or update a client."""
        await self._db.write(
            """
            INSERT INTO clients
            (client_id, name, email, bot_id, profit_share_pct, carried_loss,
             initial_capital, fiat_currency, is_active, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(client_id) DO UPDATE SET
                name = excluded.name,
                email = excluded.email,
                bot_id = excluded.bot_id,
                profit_share_pct = excluded.profit_share_pct,
                carried_loss = excluded.carried_loss,
                initial_capital = excluded.initial_capital,
                fiat_currency = excluded.fiat_currency,
                is_active = excluded.is_active
            """,
            (
                client.client_id,
                client.name,
                client.email,
                client.bot_id,
                money_column(client.profit_share_pct),
                money_column(client.carried_loss),
                money_column(client.initial_capital),
                client.fiat_currency,
                1 if client.is_active else 0,
                to_epoch(client.created_at),
            ),
        )

    async def get_client(self, client_id: str) -> dict | None:
        """Get a client by ID."""
        row = await self._db.fetchone(
            "SELECT * FROM clients WHERE client_id = ?",
            (client_id,),
        )
        return dict(row) if row else None

    async def get_client_by_email(self, email: str) -> dict | None:
        """Get a client by contact address (case-insensitive)."""
        row = await self._db.fetchone(
            "SELECT * FROM clients WHERE lower(email) = lower(?)",
            (email,),
        )
        return dict(row) if row else None

    async def get_active_clients(self) -> list[dict]:
        """Get all active clients."""
        rows = await self._db.fetchall(
            "SELECT * FROM clients WHERE is_active = 1 ORDER BY created_at ASC, client_id ASC"
        )
        return [dict(row) for row in rows]

    async def update_carried_loss(self, client_id: str, carried_loss: Decimal) -> None:
        """Update the cached carried loss for a client."""
        await self._db.write(
            "UPDATE clients SET carried_loss = ? WHERE client_id = ?",
            (money_column(carried_loss), client_id),
        )

    async def deactivate_client(self, client_id: str) -> None:
        """Soft-delete a client."""
        await self._db.write(
            "UPDATE clients SET is_active = 0 WHERE client_id = ?",
            (client_id,),
        )

    # --- Balance history operations ---

    async def save_balance_snapshot(self, snapshot: "BalanceSnapshot") -> int:
        """Append a balance snapshot, return its row id."""
        return await self._db.insert(
            """
            INSERT INTO balance_history (client_id, balance, equity, recorded_at)
            VALUES (?, ?, ?, ?)
            """,
            (
                snapshot.client_id,
                money_column(snapshot.balance),
                money_column(snapshot.equity),
                to_epoch(snapshot.recorded_at),
            ),
        )

    async def get_balance_snapshots(
        self, client_id: str, start: datetime, end: datetime
    ) -> list[dict]:
        """Get snapshots with start <= recorded_at < end, oldest first."""
        rows = await self._db.fetchall(
            """
            SELECT * FROM balance_history
            WHERE client_id = ? AND recorded_at >= ? AND recorded_at < ?
            ORDER BY recorded_at ASC, id ASC
            """,
            (client_id, to_epoch(start), to_epoch(end)),
        )
        return [dict(row) for row in rows]

    async def get_last_balance_before(
        self, client_id: str, cutoff: datetime
    ) -> dict | None:
        """Get the latest snapshot strictly before cutoff."""
        row = await self._db.fetchone(
            """
            SELECT * FROM balance_history
            WHERE client_id = ? AND recorded_at < ?
            ORDER BY recorded_at DESC, id DESC LIMIT 1
            """,
            (client_id, to_epoch(cutoff)),
        )
        return dict(row) if row else None

    async def get_latest_balance(self, client_id: str) -> dict | None:
        """Get the most recent snapshot for a client."""
        row = await self._db.fetchone(
            """
            SELECT * FROM balance_history WHERE client_id = ?
            ORDER BY recorded_at DESC, id DESC LIMIT 1
            """,
            (client_id,),
        )
        return dict(row) if row else None

    # --- Capital event operations ---

    async def save_capital_event(self, event: "CapitalEvent") -> int:
        """Insert a capital event, return its row id."""
        return await self._db.insert(
            """
            INSERT INTO capital_events
            (client_id, event_type, amount, balance_before, balance_after,
             notes, occurred_at, recorded_at, recorded_by)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                event.client_id,
                event.kind.value,
                money_column(event.amount),
                money_column(event.balance_before),
                money_column(event.balance_after),
                event.notes,
                to_epoch(event.occurred_at),
                to_epoch(event.recorded_at),
                event.recorded_by,
            ),
        )

    async def get_capital_events(
        self,
        client_id: str,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[dict]:
        """Get capital events ordered by occurrence, optionally in [start, end)."""
        sql = "SELECT * FROM capital_events WHERE client_id = ?"
        params: list = [client_id]
        if start is not None:
            sql += " AND occurred_at >= ?"
            params.append(to_epoch(start))
        if end is not None:
            sql += " AND occurred_at < ?"
            params.append(to_epoch(end))
        sql += " ORDER BY occurred_at ASC, id ASC"
        rows = await self._db.fetchall(sql, tuple(params))
        return [dict(row) for row in rows]

    async def get_recent_capital_events(
        self, client_id: str, limit: int = 50
    ) -> list[dict]:
        """Get the most recent capital events, newest first."""
        rows = await self._db.fetchall(
            """
            SELECT * FROM capital_events WHERE client_id = ?
            ORDER BY occurred_at DESC, id DESC LIMIT ?
            """,
            (client_id, limit),
        )
        return [dict(row) for row in rows]

    # --- Trade operations ---

    async def save_trade(self, trade: "Trade") -> int:
        """Insert a trade execution."""
        return await self._db.insert(
            """
            INSERT INTO trade_log
            (bot_id, trade_id, timestamp, symbol, side, price, quantity,
             amount, pnl, pnl_percent, reason)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                trade.bot_id,
                trade.trade_id,
                to_epoch(trade.timestamp),
                trade.symbol,
                trade.side,
                money_column(trade.price),
                money_column(trade.quantity),
                money_column(trade.amount),
                money_column(trade.pnl),
                money_column(trade.pnl_percent),
                trade.reason,
            ),
        )

    async def get_trades(
        self, bot_id: str, start: datetime, end: datetime
    ) -> list[dict]:
        """Get trades with start <= timestamp < end, oldest first."""
        rows = await self._db.fetchall(
            """
            SELECT * FROM trade_log
            WHERE bot_id = ? AND timestamp >= ? AND timestamp < ?
            ORDER BY timestamp ASC, id ASC
            """,
            (bot_id, to_epoch(start), to_epoch(end)),
        )
        return [dict(row) for row in rows]

    # --- Bot state operations ---

    async def save_bot_state(self, state: "LiveBotState") -> None:
        """Insert or replace the live state row for a bot."""
        await self._db.write(
            """
            INSERT OR REPLACE INTO bot_state
            (bot_id, current_amount, total_equity, position, symbol, leverage, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (
                state.bot_id,
                money_column(state.current_amount),
                money_column(state.total_equity),
                state.position,
                state.symbol,
                money_column(state.leverage),
                to_epoch(state.updated_at),
            ),
        )

    async def get_bot_state(self, bot_id: str) -> dict | None:
        """Get the live state row for a bot."""
        row = await self._db.fetchone(
            "SELECT * FROM bot_state WHERE bot_id = ?",
            (bot_id,),
        )
        return dict(row) if row else None

    # --- Monthly snapshot operations ---

    async def upsert_monthly_snapshot(
        self,
        client_id: str,
        year: int,
        month: int,
        stats: "MonthStats",
        computed_at: datetime | None = None,
    ) -> None:
        """Insert or overwrite the stat columns for (client, year, month).

        Fee payment and report-sent columns are left untouched on conflict.
        """
        if computed_at is None:
            computed_at = utc_now()

        values = [_stat_value(getattr(stats, col)) for col in _SNAPSHOT_STAT_COLUMNS]
        columns = ", ".join(_SNAPSHOT_STAT_COLUMNS)
        placeholders = ", ".join("?" for _ in _SNAPSHOT_STAT_COLUMNS)
        updates = ",\n                ".join(
            f"{col} = excluded.{col}" for col in _SNAPSHOT_STAT_COLUMNS
        )

        await self._db.write(
            f"""
            INSERT INTO monthly_snapshots
            (client_id, year, month, {columns}, computed_at)
            VALUES (?, ?, ?, {placeholders}, ?)
            ON CONFLICT(client_id, year, month) DO UPDATE SET
                {updates},
                computed_at = excluded.computed_at
            """,
            (client_id, year, month, *values, to_epoch(computed_at)),
        )

    async def get_monthly_snapshot(
        self, client_id: str, year: int, month: int
    ) -> dict | None:
        """Get the snapshot for one client and period."""
        row = await self._db.fetchone(
            """
            SELECT * FROM monthly_snapshots
            WHERE client_id = ? AND year = ? AND month = ?
            """,
            (client_id, year, month),
        )
        return dict(row) if row else None

    async def get_latest_snapshot_before(
        self, client_id: str, year: int, month: int
    ) -> dict | None:
        """Get the most recent snapshot for a period earlier than (year, month)."""
        row = await self._db.fetchone(
            """
            SELECT * FROM monthly_snapshots
            WHERE client_id = ? AND (year < ? OR (year = ? AND month < ?))
            ORDER BY year DESC, month DESC LIMIT 1
            """,
            (client_id, year, year, month),
        )
        return dict(row) if row else None

    async def get_monthly_snapshots(self, client_id: str | None = None) -> list[dict]:
        """Get snapshots in chronological order, optionally for one client."""
        if client_id:
            rows = await self._db.fetchall(
                """
                SELECT * FROM monthly_snapshots WHERE client_id = ?
                ORDER BY year ASC, month ASC
                """,
                (client_id,),
            )
        else:
            rows = await self._db.fetchall(
                """
                SELECT * FROM monthly_snapshots
                ORDER BY client_id ASC, year ASC, month ASC
                """
            )
        return [dict(row) for row in rows]

    async def get_snapshots_for_period(self, year: int, month: int) -> list[dict]:
        """Get every client's snapshot for one period."""
        rows = await self._db.fetchall(
            """
            SELECT * FROM monthly_snapshots WHERE year = ? AND month = ?
            ORDER BY client_id ASC
            """,
            (year, month),
        )
        return [dict(row) for row in rows]

    async def mark_report_sent(
        self,
        client_id: str,
        year: int,
        month: int,
        sent_at: datetime,
        recipient: str,
    ) -> bool:
        """Set the report-sent marker. Returns False if no row matched."""
        updated = await self._db.write(
            """
            UPDATE monthly_snapshots SET
                report_sent_at = ?,
                report_sent_to = ?
            WHERE client_id = ? AND year = ? AND month = ?
            """,
            (to_epoch(sent_at), recipient, client_id, year, month),
        )
        return updated > 0

    async def update_fee_paid(
        self,
        client_id: str,
        year: int,
        month: int,
        fee_paid: Decimal,
        paid_at: datetime,
        payment_ref: str | None,
    ) -> None:
        """Record the cumulative fee paid for a snapshot."""
        await self._db.write(
            """
            UPDATE monthly_snapshots SET
                fee_paid = ?,
                fee_paid_at = ?,
                fee_payment_ref = ?
            WHERE client_id = ? AND year = ? AND month = ?
            """,
            (
                money_column(fee_paid),
                to_epoch(paid_at),
                payment_ref,
                client_id,
                year,
                month,
            ),
        )

    # --- Audit log operations ---

    async def append_audit(self, entry: "AuditLogEntry") -> int:
        """Append an audit entry. Entries are never updated or deleted."""
        return await self._db.insert(
            """
            INSERT INTO audit_log
            (client_id, event_type, amount, balance_before, balance_after,
             description, metadata, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                entry.client_id,
                entry.event_type.value,
                money_column(entry.amount),
                money_column(entry.balance_before),
                money_column(entry.balance_after),
                entry.description,
                json.dumps(entry.metadata, default=str) if entry.metadata else None,
                to_epoch(entry.created_at),
            ),
        )

    async def get_audit_log(
        self, client_id: str | None = None, limit: int = 100
    ) -> list[dict]:
        """Get recent audit entries, newest first."""
        if client_id:
            rows = await self._db.fetchall(
                """
                SELECT * FROM audit_log WHERE client_id = ?
                ORDER BY created_at DESC, id DESC LIMIT ?
                """,
                (client_id, limit),
            )
        else:
            rows = await self._db.fetchall(
                "SELECT * FROM audit_log ORDER BY created_at DESC, id DESC LIMIT ?",
                (limit,),
            )
        return [dict(row) for row in rows]

    # --- Exchange rate operations ---

    async def save_exchange_rate(self, rate: "ExchangeRate") -> int:
        """Store a fetched exchange rate."""
        return await self._db.insert(
            """
            INSERT INTO exchange_rates
            (asset, fiat, lower_bound, upper_bound, mid_rate, fetched_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                rate.asset,
                rate.fiat,
                money_column(rate.lower_bound),
                money_column(rate.upper_bound),
                money_column(rate.mid_rate),
                to_epoch(rate.fetched_at),
            ),
        )

    async def get_latest_exchange_rate(
        self, fiat: str, asset: str = "USDT"
    ) -> dict | None:
        """Get the most recent rate for a fiat currency."""
        row = await self._db.fetchone(
            """
            SELECT * FROM exchange_rates WHERE asset = ? AND fiat = ?
            ORDER BY fetched_at DESC, id DESC LIMIT 1
            """,
            (asset, fiat),
        )
        return dict(row) if row else None


def _stat_value(value: object) -> object:
    """Decimals go to TEXT columns; ints and strings pass through."""
    if isinstance(value, Decimal):
        return str(value)
    return value
