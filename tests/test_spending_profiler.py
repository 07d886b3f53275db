"""Tests for the spending pattern profiler."""
from datetime import date, datetime

import pytest

from finpattern.ml.spending_profiler import SpendingPatternProfiler, growth_trend_from_totals
from finpattern.schemas import AnalysisStatus
from conftest import make_transaction


@pytest.fixture
def profiler():
    return SpendingPatternProfiler()


class TestAmountRange:

    @pytest.mark.parametrize("amount, bucket", [
        (0, "small"),
        (49.99, "small"),
        (50, "medium"),
        (75, "medium"),
        (199.99, "medium"),
        (200, "large"),
        (999.99, "large"),
        (1000, "xlarge"),
        (250000, "xlarge"),
        (-75, "medium"),
    ])
    def test_bucket_boundaries(self, profiler, amount, bucket):
        ranges = profiler.analyze_by_amount_range([make_transaction(1, 1, amount, date(2024, 1, 1))])
        assert ranges[bucket].count == 1
        assert sum(r.count for r in ranges.values()) == 1

    def test_totals_and_order(self, profiler):
        transactions = [
            make_transaction(1, 1, 20, date(2024, 1, 1)),
            make_transaction(2, 1, 30, date(2024, 1, 1)),
            make_transaction(3, 1, 1500, date(2024, 1, 1)),
        ]
        ranges = profiler.analyze_by_amount_range(transactions)
        assert list(ranges) == ["small", "medium", "large", "xlarge"]
        assert ranges["small"].total == 50.0
        assert ranges["xlarge"].total == 1500.0
        assert ranges["xlarge"].max is None


def test_day_of_week_uses_monday_as_zero(profiler):
    transactions = [
        make_transaction(1, 1, 10, date(2024, 1, 1)),   # Monday
        make_transaction(2, 1, 15, date(2024, 1, 8)),   # Monday
        make_transaction(3, 1, 40, date(2024, 1, 7)),   # Sunday
    ]
    days = profiler.analyze_by_day_of_week(transactions)
    assert list(days) == [0, 6]
    assert days[0].count == 2
    assert days[0].total == 25.0
    assert days[6].count == 1


class TestTimeOfDay:

    def test_unsupported_without_timestamps(self, profiler):
        profile = profiler.analyze_by_time_of_day([make_transaction(1, 1, 10, date(2024, 1, 1))])
        assert profile.status == AnalysisStatus.UNSUPPORTED
        assert profile.by_hour == {}
        assert profile.reason

    def test_hours_from_timestamps(self, profiler):
        transactions = [
            make_transaction(1, 1, 10, date(2024, 1, 1), timestamp=datetime(2024, 1, 1, 9, 30)),
            make_transaction(2, 1, 20, date(2024, 1, 2), timestamp=datetime(2024, 1, 2, 9, 5)),
            make_transaction(3, 1, 30, date(2024, 1, 3)),
        ]
        profile = profiler.analyze_by_time_of_day(transactions)
        assert profile.status == AnalysisStatus.OK
        assert profile.by_hour[9].count == 2
        assert profile.by_hour[9].total == 30.0


class TestFrequency:

    def test_average_variance_and_most_active(self, profiler):
        days = {1: 2, 2: 1, 3: 2, 4: 3}
        transactions = []
        tid = 1
        for month, count in days.items():
            for day in range(count):
                transactions.append(make_transaction(tid, 1, 10, date(2024, month, day + 1)))
                tid += 1

        frequency = profiler.analyze_frequency_patterns(transactions)
        assert frequency.average_transactions_per_month == 2.0
        assert frequency.frequency_variance == 0.5
        assert [(m.month, m.count) for m in frequency.most_active_months] == [
            ("2024-04", 3), ("2024-01", 2), ("2024-03", 2),
        ]

    def test_empty_history(self, profiler):
        frequency = profiler.analyze_frequency_patterns([])
        assert frequency.average_transactions_per_month == 0.0
        assert frequency.most_active_months == ()


class TestGrowthTrend:

    def test_two_points_increasing(self):
        trend = growth_trend_from_totals([100, 200])
        assert trend.trend == "increasing"
        assert trend.slope == pytest.approx(100.0)
        assert trend.intercept == pytest.approx(100.0)
        assert trend.growth_rate == pytest.approx(100 / 150 * 100)

    def test_single_point_is_insufficient(self):
        trend = growth_trend_from_totals([100])
        assert trend.trend == "insufficient_data"
        assert trend.slope is None

    def test_flat_series_reports_decreasing(self):
        assert growth_trend_from_totals([50, 50, 50]).trend == "decreasing"

    def test_zero_mean_has_zero_growth_rate(self):
        assert growth_trend_from_totals([0, 0]).growth_rate == 0.0

    def test_from_transactions_uses_expenses(self, profiler):
        transactions = [
            make_transaction(1, 1, 100, date(2024, 1, 1)),
            make_transaction(2, 1, 900, date(2024, 1, 2), type="income"),
            make_transaction(3, 1, 200, date(2024, 2, 1)),
        ]
        trend = profiler.analyze_growth_trends(transactions)
        assert trend.trend == "increasing"
        assert trend.slope == pytest.approx(100.0)


def test_category_profiles(profiler):
    transactions = [
        make_transaction(1, 3, 10, date(2024, 1, 1), description="Coffee"),
        make_transaction(2, 3, 20, date(2024, 1, 2), description=""),
        make_transaction(3, 3, 30, date(2024, 2, 5), description="Coffee shop"),
        make_transaction(4, 1, 5, date(2024, 2, 5)),
    ]
    profiles = profiler.build_category_profiles(transactions)

    assert list(profiles) == [1, 3]
    profile = profiles[3]
    assert profile.transaction_count == 3
    assert profile.amount_mean == pytest.approx(20.0)
    assert profile.amount_std == pytest.approx((200 / 3) ** 0.5)
    assert (profile.amount_min, profile.amount_max) == (10.0, 30.0)
    assert profile.monthly_frequency_mean == 1.5
    assert profile.active_months == 2
    assert sum(profile.weekday_distribution) == pytest.approx(1.0)
    assert profile.descriptions == ("Coffee", "Coffee shop")


def test_full_profile_shape(profiler, history):
    patterns = profiler.analyze_spending_patterns(history)
    assert set(patterns.by_day_of_week) == set(range(7))
    assert patterns.by_time_of_day.status == AnalysisStatus.UNSUPPORTED
    assert patterns.growth_trends.trend in ("increasing", "decreasing")
