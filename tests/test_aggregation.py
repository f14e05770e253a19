"""Tests for the analytics fold."""

import random
from datetime import date

from conftest import make_quote
from proanbud.analytics.aggregation import aggregate, win_rate

TODAY = date(2024, 9, 30)


def _comparable(summary):
    return summary.model_dump(exclude={"last_updated"})


class TestWinRate:
    def test_empty_is_zero(self):
        assert win_rate(0, 0) == 0

    def test_one_of_three(self):
        assert win_rate(1, 3) == 33

    def test_two_of_three(self):
        assert win_rate(2, 3) == 67

    def test_half_rounds_up(self):
        assert win_rate(1, 8) == 13  # 12.5
        assert win_rate(1, 200) == 1  # 0.5

    def test_all_won(self):
        assert win_rate(4, 4) == 100


class TestAggregate:
    def test_kitchen_quotes(self):
        quotes = [
            make_quote("a", 100000, "won"),
            make_quote("b", 200000, "won"),
            make_quote("c", 50000, "lost"),
        ]
        summary = aggregate(quotes, customer_count=2, today=TODAY)

        assert summary.total_quotes == 3
        assert summary.won_quotes == 2
        assert summary.total_revenue == 300000
        assert summary.win_rate == 67
        assert len(summary.per_job_type_stats) == 1
        stats = summary.per_job_type_stats[0]
        assert stats.job_type == "Kjøkken"
        assert stats.quote_count == 3
        assert stats.won_count == 2
        assert stats.win_rate == 67
        assert stats.total_value == 350000
        assert stats.won_value == 300000

    def test_no_quotes(self):
        summary = aggregate([], customer_count=5, today=TODAY)

        assert summary.total_customers == 5
        assert summary.total_quotes == 0
        assert summary.won_quotes == 0
        assert summary.total_revenue == 0
        assert summary.win_rate == 0
        assert summary.per_job_type_stats == []
        assert [(m.month, m.year) for m in summary.monthly_series] == [
            ("apr", 2024), ("mai", 2024), ("jun", 2024),
            ("jul", 2024), ("aug", 2024), ("sep", 2024),
        ]
        assert all(m.quote_count == 0 and m.revenue_won == 0 for m in summary.monthly_series)

    def test_idempotent(self):
        quotes = [make_quote("a", 1000, "won"), make_quote("b", 500, "pending")]
        first = aggregate(quotes, 1, today=TODAY)
        second = aggregate(quotes, 1, today=TODAY)
        assert _comparable(first) == _comparable(second)

    def test_order_independent(self):
        quotes = [
            make_quote(f"q{i}", amount=1000 * i, status=random.choice(["won", "lost", "pending"]),
                       job_type=random.choice(["Bad", "Kjøkken", "Tak"]),
                       quote_date=date(2024, random.randint(1, 9), 1))
            for i in range(30)
        ]
        shuffled = quotes[:]
        random.shuffle(shuffled)
        assert _comparable(aggregate(quotes, 3, today=TODAY)) == _comparable(aggregate(shuffled, 3, today=TODAY))

    def test_blank_job_type_is_unknown(self):
        summary = aggregate([make_quote(job_type="  ")], 0, today=TODAY)
        assert summary.per_job_type_stats[0].job_type == "Unknown"

    def test_job_types_sorted_by_value(self):
        quotes = [
            make_quote("a", 100, job_type="Bad"),
            make_quote("b", 900, job_type="Tak"),
            make_quote("c", 100, job_type="Anneks"),
        ]
        summary = aggregate(quotes, 0, today=TODAY)
        assert [s.job_type for s in summary.per_job_type_stats] == ["Tak", "Anneks", "Bad"]

    def test_monthly_buckets(self):
        quotes = [
            make_quote("a", 100, "won", quote_date=date(2024, 1, 5)),
            make_quote("b", 50, "lost", quote_date=date(2024, 1, 20)),
        ]
        summary = aggregate(quotes, 0, today=TODAY)
        series = summary.monthly_series
        assert (series[0].month, series[0].year) == ("jan", 2024)
        assert series[0].quote_count == 2
        assert series[0].value_quoted == 150
        assert series[0].revenue_won == 100
        assert len(series) == 9
        assert summary.last_updated > 0
