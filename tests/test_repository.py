"""Tests for the SQLite repository."""

from decimal import Decimal

import pytest

from fundledger.accounting.stats import compute_stats
from fundledger.ledger.types import AuditEventType, AuditLogEntry
from fundledger.money import ZERO
from fundledger.persistence.database import Database
from fundledger.persistence.models import SCHEMA_VERSION
from fundledger.persistence.repository import Repository
from tests.fixtures import make_balance, make_client, seed_balances, seed_client, utc


def sample_stats(opening: str = "1000", closing: str = "1100"):
    return compute_stats(
        trades=[],
        balances=[
            make_balance(opening, utc(2026, 3, 1)),
            make_balance(closing, utc(2026, 3, 31)),
        ],
        capital_events=[],
        carried_loss_in=ZERO,
        fee_fraction=Decimal("0.5"),
    )


class TestClients:
    @pytest.mark.asyncio
    async def test_round_trip_keeps_decimals(self, repo):
        await seed_client(repo, make_client(profit_share_pct="0.35", carried_loss="12.34"))

        row = await repo.get_client("c1")

        assert Decimal(row["profit_share_pct"]) == Decimal("0.35")
        assert Decimal(row["carried_loss"]) == Decimal("12.34")

    @pytest.mark.asyncio
    async def test_lookup_by_email_is_case_insensitive(self, repo):
        await seed_client(repo)

        row = await repo.get_client_by_email("ALICE@example.com")

        assert row["client_id"] == "c1"

    @pytest.mark.asyncio
    async def test_deactivated_clients_are_not_active(self, repo):
        await seed_client(repo)
        await seed_client(repo, make_client("c2", email="bob@example.com", name="Bob"))

        await repo.deactivate_client("c1")

        active = await repo.get_active_clients()
        assert [r["client_id"] for r in active] == ["c2"]
        assert await repo.get_client("c1") is not None


class TestBalances:
    @pytest.mark.asyncio
    async def test_range_is_half_open(self, repo):
        await seed_client(repo)
        await seed_balances(repo, [
            (utc(2026, 2, 28, 23, 59), "990"),
            (utc(2026, 3, 1), "1000"),
            (utc(2026, 3, 31, 23, 59), "1100"),
            (utc(2026, 4, 1), "1200"),
        ])

        rows = await repo.get_balance_snapshots("c1", utc(2026, 3, 1), utc(2026, 4, 1))

        assert [r["balance"] for r in rows] == ["1000", "1100"]

    @pytest.mark.asyncio
    async def test_last_before_breaks_ties_by_insertion(self, repo):
        await seed_client(repo)
        same = utc(2026, 2, 28, 12)
        await seed_balances(repo, [(same, "950"), (same, "960")])

        row = await repo.get_last_balance_before("c1", utc(2026, 3, 1))

        assert row["balance"] == "960"

    @pytest.mark.asyncio
    async def test_last_before_excludes_cutoff(self, repo):
        await seed_client(repo)
        await seed_balances(repo, [(utc(2026, 3, 1), "1000")])

        assert await repo.get_last_balance_before("c1", utc(2026, 3, 1)) is None


class TestMonthlySnapshots:
    @pytest.mark.asyncio
    async def test_upsert_keeps_one_row_per_key(self, repo):
        await seed_client(repo)

        await repo.upsert_monthly_snapshot("c1", 2026, 3, sample_stats(closing="1100"))
        await repo.upsert_monthly_snapshot("c1", 2026, 3, sample_stats(closing="1200"))

        rows = await repo.get_monthly_snapshots("c1")
        assert len(rows) == 1
        assert rows[0]["closing_balance"] == "1200"

    @pytest.mark.asyncio
    async def test_upsert_preserves_fee_and_report_fields(self, repo):
        await seed_client(repo)
        await repo.upsert_monthly_snapshot("c1", 2026, 3, sample_stats())
        await repo.update_fee_paid("c1", 2026, 3, Decimal("20"), utc(2026, 4, 3), "tx-1")
        await repo.mark_report_sent("c1", 2026, 3, utc(2026, 4, 1, 1), "alice@example.com")

        await repo.upsert_monthly_snapshot("c1", 2026, 3, sample_stats(closing="1300"))

        row = await repo.get_monthly_snapshot("c1", 2026, 3)
        assert row["closing_balance"] == "1300"
        assert row["fee_paid"] == "20"
        assert row["fee_payment_ref"] == "tx-1"
        assert row["report_sent_to"] == "alice@example.com"
        assert row["report_sent_at"] is not None

    @pytest.mark.asyncio
    async def test_latest_before_crosses_year(self, repo):
        await seed_client(repo)
        await repo.upsert_monthly_snapshot("c1", 2025, 11, sample_stats())
        await repo.upsert_monthly_snapshot("c1", 2025, 12, sample_stats())
        await repo.upsert_monthly_snapshot("c1", 2026, 1, sample_stats())

        row = await repo.get_latest_snapshot_before("c1", 2026, 1)

        assert (row["year"], row["month"]) == (2025, 12)

    @pytest.mark.asyncio
    async def test_mark_report_sent_without_row(self, repo):
        await seed_client(repo)

        assert await repo.mark_report_sent("c1", 2026, 3, utc(2026, 4, 1), "x@y.z") is False


class TestAuditLog:
    @pytest.mark.asyncio
    async def test_append_and_read_newest_first(self, repo):
        await seed_client(repo)
        await repo.append_audit(AuditLogEntry(
            event_type=AuditEventType.DEPOSIT,
            client_id="c1",
            amount=Decimal("100"),
            description="first",
            created_at=utc(2026, 3, 1),
        ))
        await repo.append_audit(AuditLogEntry(
            event_type=AuditEventType.FEE,
            client_id="c1",
            amount=Decimal("5"),
            description="second",
            metadata={"invoiced": Decimal("5")},
            created_at=utc(2026, 3, 2),
        ))

        rows = await repo.get_audit_log("c1")

        assert [r["description"] for r in rows] == ["second", "first"]
        assert '"invoiced": "5"' in rows[0]["metadata"]


class TestDatabase:
    @pytest.mark.asyncio
    async def test_schema_version_is_stamped(self, db):
        row = await db.fetchone("PRAGMA user_version")
        assert row[0] == SCHEMA_VERSION

    @pytest.mark.asyncio
    async def test_reopen_keeps_data(self, tmp_path):
        first = Database(tmp_path / "reopen.db")
        await first.connect()
        await Repository(first).save_client(make_client())
        await first.disconnect()

        second = Database(tmp_path / "reopen.db")
        await second.connect()
        try:
            assert (await Repository(second).get_client("c1"))["name"] == "Alice"
        finally:
            await second.disconnect()

    @pytest.mark.asyncio
    async def test_use_before_connect_raises(self, tmp_path):
        with pytest.raises(RuntimeError):
            await Database(tmp_path / "x.db").fetchone("SELECT 1")
