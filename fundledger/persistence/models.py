"""Database schema definitions.

Money columns are TEXT holding exact decimal strings. Timestamps are
INTEGER epoch seconds (UTC).
"""

SCHEMA = [
    # Fund participants
    """
    CREATE TABLE IF NOT EXISTS clients (
        client_id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT,
        bot_id TEXT,
        profit_share_pct TEXT NOT NULL,
        carried_loss TEXT NOT NULL DEFAULT '0',
        initial_capital TEXT NOT NULL DEFAULT '0',
        fiat_currency TEXT,
        is_active INTEGER NOT NULL DEFAULT 1,
        created_at INTEGER NOT NULL
    )
    """,
    """
    CREATE UNIQUE INDEX IF NOT EXISTS idx_clients_email
    ON clients(email)
    """,
    # Point-in-time account values
    """
    CREATE TABLE IF NOT EXISTS balance_history (
        id INTEGER PRIMARY KEY,
        client_id TEXT NOT NULL REFERENCES clients(client_id),
        balance TEXT NOT NULL,
        equity TEXT,
        recorded_at INTEGER NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_balance_history_client
    ON balance_history(client_id, recorded_at, id)
    """,
    # Deposits and withdrawals
    """
    CREATE TABLE IF NOT EXISTS capital_events (
        id INTEGER PRIMARY KEY,
        client_id TEXT NOT NULL REFERENCES clients(client_id),
        event_type TEXT NOT NULL CHECK (event_type IN ('DEPOSIT', 'WITHDRAWAL')),
        amount TEXT NOT NULL,
        balance_before TEXT,
        balance_after TEXT,
        notes TEXT,
        occurred_at INTEGER NOT NULL,
        recorded_at INTEGER NOT NULL,
        recorded_by TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_capital_events_client
    ON capital_events(client_id, occurred_at, id)
    """,
    # Executions reported by the trading bots, keyed by bot id
    """
    CREATE TABLE IF NOT EXISTS trade_log (
        id INTEGER PRIMARY KEY,
        bot_id TEXT NOT NULL,
        trade_id TEXT,
        timestamp INTEGER NOT NULL,
        symbol TEXT NOT NULL,
        side TEXT NOT NULL,
        price TEXT NOT NULL,
        quantity TEXT NOT NULL,
        amount TEXT NOT NULL,
        pnl TEXT,
        pnl_percent TEXT,
        reason TEXT
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_trade_log_bot
    ON trade_log(bot_id, timestamp, id)
    """,
    # Live bot state, one row per bot, written by the external sync process
    """
    CREATE TABLE IF NOT EXISTS bot_state (
        bot_id TEXT PRIMARY KEY,
        current_amount TEXT,
        total_equity TEXT,
        position TEXT,
        symbol TEXT,
        leverage TEXT,
        updated_at INTEGER NOT NULL
    )
    """,
    # Monthly fund accounting, one row per client and calendar month
    """
    CREATE TABLE IF NOT EXISTS monthly_snapshots (
        id INTEGER PRIMARY KEY,
        client_id TEXT NOT NULL REFERENCES clients(client_id),
        year INTEGER NOT NULL,
        month INTEGER NOT NULL CHECK (month BETWEEN 1 AND 12),
        opening_balance TEXT NOT NULL,
        closing_balance TEXT NOT NULL,
        opening_source TEXT,
        total_deposits TEXT NOT NULL,
        total_withdrawals TEXT NOT NULL,
        net_new_capital TEXT NOT NULL,
        gross_pnl TEXT NOT NULL,
        carried_loss_in TEXT NOT NULL,
        net_pnl TEXT NOT NULL,
        performance_fee TEXT NOT NULL,
        carried_loss_out TEXT NOT NULL,
        realized_pnl TEXT NOT NULL,
        unrealized_pnl_change TEXT NOT NULL,
        client_share TEXT NOT NULL,
        total_trades INTEGER NOT NULL,
        winning_trades INTEGER NOT NULL,
        losing_trades INTEGER NOT NULL,
        win_rate TEXT NOT NULL,
        profit_factor TEXT NOT NULL,
        best_trade_pnl TEXT NOT NULL,
        worst_trade_pnl TEXT NOT NULL,
        avg_win TEXT NOT NULL,
        avg_loss TEXT NOT NULL,
        fee_paid TEXT NOT NULL DEFAULT '0',
        fee_paid_at INTEGER,
        fee_payment_ref TEXT,
        computed_at INTEGER NOT NULL,
        report_sent_at INTEGER,
        report_sent_to TEXT,
        UNIQUE(client_id, year, month)
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_monthly_snapshots_period
    ON monthly_snapshots(year, month)
    """,
    # Append-only record of every state-changing action
    """
    CREATE TABLE IF NOT EXISTS audit_log (
        id INTEGER PRIMARY KEY,
        client_id TEXT,
        event_type TEXT NOT NULL,
        amount TEXT,
        balance_before TEXT,
        balance_after TEXT,
        description TEXT,
        metadata TEXT,
        created_at INTEGER NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_audit_log_client
    ON audit_log(client_id, created_at DESC)
    """,
    # USDT to fiat rates, written by the external rate fetcher
    """
    CREATE TABLE IF NOT EXISTS exchange_rates (
        id INTEGER PRIMARY KEY,
        asset TEXT NOT NULL,
        fiat TEXT NOT NULL,
        lower_bound TEXT NOT NULL,
        upper_bound TEXT NOT NULL,
        mid_rate TEXT NOT NULL,
        fetched_at INTEGER NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_exchange_rates_fiat
    ON exchange_rates(asset, fiat, fetched_at DESC)
    """,
]

# Bumped whenever SCHEMA changes shape; stored in PRAGMA user_version
SCHEMA_VERSION = 1
