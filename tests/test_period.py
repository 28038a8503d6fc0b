"""Tests for calendar-month periods."""

import pytest

from fundledger.accounting.period import Period
from fundledger.errors import ValidationError
from tests.fixtures import utc


class TestPeriod:
    def test_bounds_are_half_open(self):
        period = Period(2026, 3)

        assert period.start == utc(2026, 3, 1)
        assert period.end == utc(2026, 4, 1)
        assert period.contains(utc(2026, 3, 31, 23, 59))
        assert not period.contains(utc(2026, 4, 1))

    def test_year_rollover(self):
        assert Period(2026, 12).next() == Period(2027, 1)
        assert Period(2026, 1).previous() == Period(2025, 12)
        assert Period(2026, 12).end == utc(2027, 1, 1)

    def test_previous_to_is_last_closed_month(self):
        assert Period.previous_to(utc(2026, 4, 1, 3)) == Period(2026, 3)
        assert Period.previous_to(utc(2026, 1, 15)) == Period(2025, 12)

    def test_parse_and_key(self):
        period = Period.parse("2026-03")

        assert period == Period(2026, 3)
        assert period.key == "2026-03"
        assert str(period) == "2026-03"
        assert period.label == "March 2026"

    def test_months_after(self):
        assert Period(2026, 3).months_after(Period(2026, 2)) == 1
        assert Period(2026, 1).months_after(Period(2025, 12)) == 1
        assert Period(2026, 4).months_after(Period(2026, 2)) == 2

    def test_ordering(self):
        assert sorted([Period(2026, 2), Period(2025, 12), Period(2026, 1)]) == [
            Period(2025, 12),
            Period(2026, 1),
            Period(2026, 2),
        ]

    @pytest.mark.parametrize("text", ["2026-13", "2026-00", "March", "2026/03", ""])
    def test_invalid(self, text):
        with pytest.raises(ValidationError):
            Period.parse(text)

    def test_end_of_century_rolls_over(self):
        assert Period(2100, 12).end == utc(2101, 1, 1)
        assert Period(2100, 12).next() == Period(2101, 1)

    def test_parse_rejects_implausible_year(self):
        with pytest.raises(ValidationError) as exc_info:
            Period.parse("1999-12")

        assert exc_info.value.field == "period"
