"""Test fixtures for fundledger."""

from tests.fixtures.ledger_data import (
    RecordingSink,
    StubTelemetry,
    deposit,
    make_balance,
    make_client,
    make_trade,
    seed_balances,
    seed_client,
    utc,
    withdrawal,
)

__all__ = [
    "RecordingSink",
    "StubTelemetry",
    "deposit",
    "make_balance",
    "make_client",
    "make_trade",
    "seed_balances",
    "seed_client",
    "utc",
    "withdrawal",
]
