"""Tests for statement rendering."""

from decimal import Decimal

import pytest

from fundledger.accounting.period import Period
from fundledger.accounting.stats import compute_stats
from fundledger.config import ReportConfig
from fundledger.ledger.types import ExchangeRate
from fundledger.money import ZERO
from fundledger.report.writer import ReportContext, ReportWriter
from tests.fixtures import make_balance, make_client, make_trade, utc

MARCH = Period(2026, 3)


def context(closing: str, carried_in: str = "0", trades=None, rate=None) -> ReportContext:
    stats = compute_stats(
        trades=trades or [],
        balances=[make_balance("1000", utc(2026, 3, 1)), make_balance(closing, utc(2026, 3, 31))],
        capital_events=[],
        carried_loss_in=Decimal(carried_in),
        fee_fraction=Decimal("0.5"),
    )
    return ReportContext(
        client=make_client(),
        period=MARCH,
        stats=stats,
        fee_fraction=Decimal("0.5"),
        trades=trades or [],
        exchange_rate=rate,
    )


@pytest.fixture
def writer():
    return ReportWriter(ReportConfig(
        fund_name="Test Fund",
        payment_instructions="Send USDT (TRC20) to the address on file.",
    ))


class TestSubject:
    def test_profitable_month(self, writer):
        report = writer.render(context("1234.56"))

        assert report.subject == "Your March 2026 Report - Performance Fee Due: $117.28 USDT"

    def test_loss_month(self, writer):
        report = writer.render(context("900"))

        assert report.subject == "Your March 2026 Report - Account Statement"

    def test_profit_absorbed_by_carried_loss(self, writer):
        report = writer.render(context("1100", carried_in="150"))

        assert report.subject == "Your March 2026 Report - Account Statement"


class TestBody:
    def test_fee_block_and_payment_instructions(self, writer):
        body = writer.render(context("1200", carried_in="50")).body

        assert "# Test Fund - March 2026 Statement" in body
        assert "Less: Carried Loss from Prior Month | -$50.00" in body
        assert "Performance Fee (50.0%) | **$75.00**" in body
        assert "by April 06, 2026" in body
        assert "Send USDT (TRC20)" in body

    def test_loss_carry_block(self, writer):
        body = writer.render(context("900", carried_in="20")).body

        assert "No Performance Fee This Month" in body
        assert "Total Loss Carried Forward | -$120.00" in body
        assert "$120.00 will be recovered" in body
        assert "Payment Instructions" not in body

    def test_trade_history_and_infinite_profit_factor(self, writer):
        trades = [make_trade("25", utc(2026, 3, 5, 14, 30)), make_trade(None, utc(2026, 3, 6), side="BUY")]

        body = writer.render(context("1100", trades=trades)).body

        assert "| Profit Factor | ∞ |" in body
        assert "| 2026-03-05 14:30 | BTCUSDT | SELL |" in body
        assert "| BUY |" in body

    def test_no_trades(self, writer):
        body = writer.render(context("1000")).body

        assert "No trades this month." in body

    def test_fiat_equivalent(self, writer):
        rate = ExchangeRate(
            fiat="BDT",
            lower_bound=Decimal("120"),
            upper_bound=Decimal("124"),
            mid_rate=Decimal("122"),
            fetched_at=utc(2026, 3, 31),
        )

        body = writer.render(context("1100", rate=rate)).body

        assert "## BDT Equivalent" in body
        assert "Closing Balance: BDT 134,200.00" in body
        assert "Performance Fee: BDT 6,100.00" in body

    def test_write_to_disk(self, writer, tmp_path):
        report = writer.render(context("1100"))

        path = writer.write(report, tmp_path / "out" / "c1.md")

        assert path.read_text(encoding="utf-8").startswith(report.subject)


def test_zero_opening_has_no_return_line(writer):
    ctx = context("1000")
    ctx.stats = compute_stats(
        trades=[],
        balances=[],
        capital_events=[],
        carried_loss_in=ZERO,
        fee_fraction=Decimal("0.5"),
    )

    body = writer.render(ctx).body

    assert "| Return |" not in body
