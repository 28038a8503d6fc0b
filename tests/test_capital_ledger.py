"""Tests for the capital event ledger."""

import json
from decimal import Decimal

import pytest

from fundledger.errors import NotFoundError, ValidationError
from fundledger.ledger.capital import CapitalEventLedger
from fundledger.ledger.types import CapitalEventKind, LiveBotState
from tests.fixtures import StubTelemetry, seed_balances, seed_client, utc


class TestRecord:
    @pytest.fixture
    def telemetry(self):
        return StubTelemetry()

    @pytest.fixture
    def ledger(self, repo, telemetry):
        return CapitalEventLedger(repo, telemetry)

    @pytest.mark.asyncio
    async def test_deposit_with_audit_from_latest_snapshot(self, repo, ledger):
        await seed_client(repo)
        await seed_balances(repo, [(utc(2026, 3, 1), "1000")])

        event = await ledger.record("c1", "deposit", "500", occurred_at=utc(2026, 3, 15))

        assert event.kind == CapitalEventKind.DEPOSIT
        assert event.amount == Decimal("500")
        assert event.balance_before == Decimal("1000")
        assert event.balance_after == Decimal("1500")
        assert event.event_id is not None

        audit = await repo.get_audit_log("c1")
        assert len(audit) == 1
        assert audit[0]["event_type"] == "DEPOSIT"
        assert Decimal(audit[0]["amount"]) == Decimal("500")
        assert json.loads(audit[0]["metadata"])["balance_source"] == "latest_snapshot"

    @pytest.mark.asyncio
    async def test_withdrawal_prefers_live_equity(self, repo, ledger, telemetry):
        await seed_client(repo)
        await seed_balances(repo, [(utc(2026, 3, 1), "1000")])
        telemetry.states["bot-1"] = LiveBotState(
            bot_id="bot-1",
            updated_at=utc(2026, 3, 15),
            current_amount=Decimal("1180"),
            total_equity=Decimal("1200"),
        )

        event = await ledger.record("c1", CapitalEventKind.WITHDRAWAL, Decimal("200"))

        assert event.balance_before == Decimal("1200")
        assert event.balance_after == Decimal("1000")
        assert event.signed_amount == Decimal("-200")

        audit = await repo.get_audit_log("c1")
        assert Decimal(audit[0]["amount"]) == Decimal("-200")

    @pytest.mark.asyncio
    async def test_no_balance_source_leaves_estimate_empty(self, repo, ledger):
        await seed_client(repo)

        event = await ledger.record("c1", "DEPOSIT", "100")

        assert event.balance_before is None
        assert event.balance_after is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", ["0", "-5", "abc", "NaN", "Infinity", None])
    async def test_rejects_bad_amount_without_writing(self, repo, ledger, amount):
        await seed_client(repo)

        with pytest.raises(ValidationError):
            await ledger.record("c1", "deposit", amount)

        assert await repo.get_capital_events("c1") == []
        assert await repo.get_audit_log("c1") == []

    @pytest.mark.asyncio
    async def test_rejects_unknown_kind(self, repo, ledger):
        await seed_client(repo)

        with pytest.raises(ValidationError) as exc_info:
            await ledger.record("c1", "transfer", "100")

        assert exc_info.value.field == "kind"

    @pytest.mark.asyncio
    async def test_unknown_client(self, ledger):
        with pytest.raises(NotFoundError):
            await ledger.record("nobody", "deposit", "100")


class TestQueries:
    @pytest.fixture
    def ledger(self, repo):
        return CapitalEventLedger(repo)

    @pytest.mark.asyncio
    async def test_list_in_range_and_totals(self, repo, ledger):
        await seed_client(repo)
        await ledger.record("c1", "deposit", "1000", occurred_at=utc(2026, 2, 10))
        await ledger.record("c1", "deposit", "500", occurred_at=utc(2026, 3, 20))
        await ledger.record("c1", "withdrawal", "200", occurred_at=utc(2026, 3, 5))

        march = await ledger.list_in_range("c1", utc(2026, 3, 1), utc(2026, 4, 1))

        assert [e.amount for e in march] == [Decimal("200"), Decimal("500")]

        totals = await ledger.totals("c1")
        assert totals.deposited == Decimal("1500")
        assert totals.withdrawn == Decimal("200")
        assert totals.net == Decimal("1300")

    @pytest.mark.asyncio
    async def test_list_recent_newest_first(self, repo, ledger):
        await seed_client(repo)
        await ledger.record("c1", "deposit", "1", occurred_at=utc(2026, 1, 1))
        await ledger.record("c1", "deposit", "2", occurred_at=utc(2026, 2, 1))
        await ledger.record("c1", "deposit", "3", occurred_at=utc(2026, 3, 1))

        recent = await ledger.list_recent("c1", limit=2)

        assert [e.amount for e in recent] == [Decimal("3"), Decimal("2")]
