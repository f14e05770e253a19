"""Tests for month/day gap-filling."""

from datetime import date

import pytest

from conftest import make_quote
from models.analytics_models import MonthBucket
from proanbud.analytics.calendar_fill import (
    day_label,
    fill_daily_gaps,
    fill_monthly_gaps,
    month_index,
    shift_month,
    trailing_months,
)
from proanbud.lib.errors import MALFORMED_RECORD, UnknownMonthError

TODAY = date(2024, 9, 30)


class TestMonthNames:
    def test_index(self):
        assert month_index("jan") == 0
        assert month_index("Mai") == 4
        assert month_index("des.") == 11

    def test_unknown_month_raises(self):
        with pytest.raises(UnknownMonthError) as exc:
            month_index("may")
        assert exc.value.category == MALFORMED_RECORD

    def test_shift_across_year(self):
        assert shift_month((2024, 1), -1) == (2023, 12)
        assert shift_month((2023, 12), 1) == (2024, 1)

    def test_day_label(self):
        assert day_label(date(2024, 9, 24)) == "24. sep"


class TestFillMonthlyGaps:
    def test_empty_gives_trailing_six(self):
        series = fill_monthly_gaps([], today=TODAY)
        assert series == trailing_months(6, TODAY)
        assert len(series) == 6

    def test_continuous_and_overlaid(self):
        existing = [
            MonthBucket(month="jan", year=2024, quote_count=2, value_quoted=10),
            MonthBucket(month="jun", year=2024, quote_count=1, value_quoted=5),
        ]
        series = fill_monthly_gaps(existing, today=TODAY)

        keys = [(m.year, month_index(m.month) + 1) for m in series]
        assert keys == [(2024, m) for m in range(1, 10)]
        assert series[0].quote_count == 2
        assert series[5].quote_count == 1
        assert sum(m.quote_count for m in series) == 3

    def test_spans_year_boundary(self):
        series = fill_monthly_gaps([MonthBucket(month="nov", year=2023)], today=TODAY)
        assert (series[0].month, series[0].year) == ("nov", 2023)
        assert (series[-1].month, series[-1].year) == ("sep", 2024)
        assert len(series) == 11

    def test_future_bucket_kept(self):
        future = MonthBucket(month="des", year=2024, quote_count=1)
        series = fill_monthly_gaps([future], today=TODAY)
        assert (series[-1].month, series[-1].year) == ("des", 2024)
        assert series[-1].quote_count == 1

    def test_unknown_month_dropped(self):
        series = fill_monthly_gaps([MonthBucket(month="xyz", year=2024, quote_count=9)], today=TODAY)
        assert len(series) == 6
        assert sum(m.quote_count for m in series) == 0

    def test_input_not_mutated(self):
        bucket = MonthBucket(month="sep", year=2024, quote_count=1)
        series = fill_monthly_gaps([bucket], today=TODAY)
        series[-1].quote_count = 99
        assert bucket.quote_count == 1


class TestFillDailyGaps:
    def test_window_length_and_labels(self):
        days = fill_daily_gaps([], 7, today=TODAY)
        assert len(days) == 7
        assert days[0].full_date == "2024-09-24"
        assert days[0].date == "24. sep"
        assert days[-1].full_date == "2024-09-30"

    def test_quotes_outside_window_ignored(self):
        quotes = [
            make_quote("in", 100, "won", quote_date=date(2024, 9, 29)),
            make_quote("old", 100, "won", quote_date=date(2024, 8, 1)),
        ]
        days = fill_daily_gaps(quotes, 7, today=TODAY)
        assert sum(d.quote_count for d in days) == 1
        assert days[-2].revenue_won == 100
