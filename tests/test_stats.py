"""Tests for the period statistics calculator."""

import random
from decimal import Decimal

import pytest

from fundledger.accounting.stats import (
    OPENING_FROM_FIRST_SNAPSHOT,
    OPENING_FROM_NONE,
    OPENING_FROM_OVERRIDE,
    compute_stats,
    compute_trade_stats,
)
from fundledger.money import INFINITY, ZERO
from tests.fixtures import deposit, make_balance, make_trade, utc, withdrawal

HALF = Decimal("0.5")


def balances(*points: tuple[int, str]):
    """Balances on the given March 2026 days."""
    return [make_balance(amount, utc(2026, 3, day)) for day, amount in points]


class TestCapitalAdjustedPnl:
    """Gross P&L excludes external cash flows."""

    def test_deposit_is_not_profit(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "1600")),
            capital_events=[deposit("500", utc(2026, 3, 15))],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.opening_balance == Decimal("1000")
        assert stats.closing_balance == Decimal("1600")
        assert stats.net_new_capital == Decimal("500")
        assert stats.gross_pnl == Decimal("100")
        assert stats.net_pnl == Decimal("100")
        assert stats.performance_fee == Decimal("50")
        assert stats.carried_loss_out == ZERO
        assert stats.client_share == Decimal("50")

    def test_withdrawal_is_not_loss(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "900")),
            capital_events=[withdrawal("200", utc(2026, 3, 10))],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.total_withdrawals == Decimal("200")
        assert stats.net_new_capital == Decimal("-200")
        assert stats.gross_pnl == Decimal("100")

    def test_mixed_flows(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "1250")),
            capital_events=[
                deposit("300", utc(2026, 3, 5)),
                withdrawal("100", utc(2026, 3, 20)),
            ],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.total_deposits == Decimal("300")
        assert stats.total_withdrawals == Decimal("100")
        assert stats.net_new_capital == stats.total_deposits - stats.total_withdrawals
        assert stats.gross_pnl == Decimal("50")

    def test_identity_holds(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (12, "1111.11"), (31, "1333.33")),
            capital_events=[deposit("250.50", utc(2026, 3, 5))],
            carried_loss_in=Decimal("10"),
            fee_fraction=HALF,
        )

        assert stats.expected_closing == stats.closing_balance

    def test_no_rounding_inside_calculator(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "100.001"), (31, "100.004")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=Decimal("0.3"),
        )

        assert stats.gross_pnl == Decimal("0.003")
        assert stats.performance_fee == Decimal("0.0009")


class TestCarriedLoss:
    """Losses must be recovered before a fee is charged."""

    def test_loss_month_carries_forward(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "800")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.gross_pnl == Decimal("-200")
        assert stats.performance_fee == ZERO
        assert stats.carried_loss_out == Decimal("200")
        assert stats.client_share == Decimal("-200")
        assert not stats.is_profitable

    def test_profit_smaller_than_carried_loss(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "1300")),
            capital_events=[],
            carried_loss_in=Decimal("500"),
            fee_fraction=HALF,
        )

        assert stats.gross_pnl == Decimal("300")
        assert stats.net_pnl == Decimal("-200")
        assert stats.performance_fee == ZERO
        assert stats.carried_loss_out == Decimal("200")

    def test_profit_exceeding_carried_loss(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "1800")),
            capital_events=[],
            carried_loss_in=Decimal("500"),
            fee_fraction=HALF,
        )

        assert stats.net_pnl == Decimal("300")
        assert stats.performance_fee == Decimal("150")
        assert stats.carried_loss_out == ZERO
        assert stats.client_share == Decimal("150")

    def test_exact_breakeven_charges_no_fee(self):
        stats = compute_stats(
            trades=[],
            balances=balances((1, "1000"), (31, "1500")),
            capital_events=[],
            carried_loss_in=Decimal("500"),
            fee_fraction=HALF,
        )

        assert stats.net_pnl == ZERO
        assert stats.performance_fee == ZERO
        assert stats.carried_loss_out == ZERO


class TestOpeningAndClosing:
    """Opening and closing selection."""

    def test_override_wins_over_first_snapshot(self):
        stats = compute_stats(
            trades=[],
            balances=balances((2, "1010"), (31, "1100")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
            prior_closing_override=Decimal("1000"),
        )

        assert stats.opening_balance == Decimal("1000")
        assert stats.opening_source == OPENING_FROM_OVERRIDE
        assert stats.gross_pnl == Decimal("100")

    def test_first_snapshot_without_override(self):
        stats = compute_stats(
            trades=[],
            balances=balances((2, "1010"), (31, "1100")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.opening_balance == Decimal("1010")
        assert stats.opening_source == OPENING_FROM_FIRST_SNAPSHOT

    def test_unsorted_balances_are_ordered(self):
        stats = compute_stats(
            trades=[],
            balances=balances((31, "1200"), (1, "1000"), (15, "1100")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.opening_balance == Decimal("1000")
        assert stats.closing_balance == Decimal("1200")

    def test_same_timestamp_keeps_input_order(self):
        same = utc(2026, 3, 31)
        stats = compute_stats(
            trades=[],
            balances=[
                make_balance("1000", utc(2026, 3, 1)),
                make_balance("1100", same),
                make_balance("1150", same),
            ],
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.closing_balance == Decimal("1150")

    def test_no_balances_falls_back_to_zero(self):
        stats = compute_stats(
            trades=[],
            balances=[],
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.opening_balance == ZERO
        assert stats.closing_balance == ZERO
        assert stats.opening_source == OPENING_FROM_NONE
        assert stats.return_pct is None


class TestTradeStats:
    """Win/loss statistics over closed trades."""

    def test_mixed_trades(self):
        ts = utc(2026, 3, 10)
        trades = [
            make_trade("100", ts),
            make_trade("-50", ts),
            make_trade("30", ts),
            make_trade(None, ts),
            make_trade("999", ts, side="BUY"),
            make_trade("0", ts),
        ]

        stats = compute_trade_stats(trades)

        assert stats.total_trades == 4
        assert stats.winning_trades == 2
        assert stats.losing_trades == 1
        assert stats.win_rate == Decimal(2) / Decimal(4) * 100
        assert stats.profit_factor == Decimal("130") / Decimal("50")
        assert stats.best_trade_pnl == Decimal("100")
        assert stats.worst_trade_pnl == Decimal("-50")
        assert stats.avg_win == Decimal("65")
        assert stats.avg_loss == Decimal("50")
        assert stats.realized_pnl == Decimal("80")

    def test_side_is_case_insensitive(self):
        stats = compute_trade_stats([make_trade("10", utc(2026, 3, 1), side="sell")])

        assert stats.total_trades == 1

    def test_only_wins_gives_infinite_profit_factor(self):
        ts = utc(2026, 3, 10)
        stats = compute_trade_stats([make_trade("10", ts), make_trade("20", ts)])

        assert stats.profit_factor == INFINITY
        assert stats.avg_loss == ZERO

    def test_no_trades(self):
        stats = compute_trade_stats([])

        assert stats.total_trades == 0
        assert stats.win_rate == ZERO
        assert stats.profit_factor == ZERO
        assert stats.best_trade_pnl == ZERO
        assert stats.worst_trade_pnl == ZERO

    def test_unrealized_change_is_gross_minus_realized(self):
        stats = compute_stats(
            trades=[make_trade("60", utc(2026, 3, 10))],
            balances=balances((1, "1000"), (31, "1100")),
            capital_events=[],
            carried_loss_in=ZERO,
            fee_fraction=HALF,
        )

        assert stats.realized_pnl == Decimal("60")
        assert stats.unrealized_pnl_change == Decimal("40")


@pytest.mark.parametrize(
    "fraction, expected_fee",
    [("0.5", "50"), ("0.3", "30"), ("0", "0"), ("1", "100")],
)
def test_fee_fraction(fraction, expected_fee):
    stats = compute_stats(
        trades=[],
        balances=balances((1, "1000"), (31, "1100")),
        capital_events=[],
        carried_loss_in=ZERO,
        fee_fraction=Decimal(fraction),
    )

    assert stats.performance_fee == Decimal(expected_fee)
    assert stats.performance_fee >= 0


def _cents(rng: random.Random, upper: int) -> Decimal:
    return Decimal(rng.randint(0, upper * 100)).scaleb(-2)


def random_period_inputs(seed: int) -> dict:
    """Random but reproducible inputs for one March 2026 period."""
    rng = random.Random(seed)

    points = [(1, _cents(rng, 50_000))]
    for day in sorted(rng.sample(range(2, 28), rng.randint(0, 3))):
        points.append((day, _cents(rng, 50_000)))
    points.append((28, _cents(rng, 50_000)))

    events = []
    for _ in range(rng.randint(0, 3)):
        build = deposit if rng.random() < 0.5 else withdrawal
        events.append(build(str(_cents(rng, 10_000) + Decimal("0.01")), utc(2026, 3, rng.randint(1, 27))))

    return {
        "trades": [],
        "balances": [make_balance(str(amount), utc(2026, 3, day)) for day, amount in points],
        "capital_events": events,
        "carried_loss_in": _cents(rng, 5_000) if rng.random() < 0.6 else ZERO,
        "fee_fraction": Decimal(rng.randint(0, 100)).scaleb(-2),
        "prior_closing_override": _cents(rng, 50_000) if rng.random() < 0.3 else None,
    }


@pytest.mark.parametrize("seed", range(200))
def test_identity_and_fee_rules_hold_for_random_inputs(seed):
    inputs = random_period_inputs(seed)

    stats = compute_stats(**inputs)

    assert stats.expected_closing == stats.closing_balance
    assert stats.net_pnl == stats.gross_pnl - inputs["carried_loss_in"]
    if stats.net_pnl > 0:
        assert stats.carried_loss_out == ZERO
        assert stats.performance_fee == stats.net_pnl * inputs["fee_fraction"]
    else:
        assert stats.performance_fee == ZERO
        assert stats.carried_loss_out == abs(stats.net_pnl)
    assert stats.performance_fee + stats.client_share == stats.net_pnl
    assert stats.performance_fee >= 0
    assert stats.carried_loss_out >= 0


@pytest.mark.parametrize(
    "opening, closing, carried_in",
    [
        ("1000", "1000", "0"),
        ("1000", "1100", "100"),
        ("1000", "900", "0"),
        ("0", "0", "0"),
    ],
)
def test_non_positive_net_pnl_charges_no_fee(opening, closing, carried_in):
    stats = compute_stats(
        trades=[],
        balances=balances((1, opening), (31, closing)),
        capital_events=[],
        carried_loss_in=Decimal(carried_in),
        fee_fraction=HALF,
    )

    assert stats.expected_closing == stats.closing_balance
    assert stats.performance_fee == ZERO
    assert stats.carried_loss_out == abs(stats.net_pnl)
