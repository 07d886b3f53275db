"""Tests for month grouping and the statistical helpers."""
from datetime import date

import pytest

from finpattern.ml.timeseries import (
    aligned_monthly_totals,
    categories_in_order,
    group_by_month,
    linear_trend,
    mean_and_std,
    month_key,
    monthly_expense_totals,
    pearson_correlation,
)
from conftest import make_transaction


def test_month_key_is_zero_padded():
    assert month_key(date(2024, 3, 5)) == "2024-03"
    assert month_key(date(987, 11, 1)) == "0987-11"


def test_group_by_month_is_chronological():
    transactions = [
        make_transaction(1, 1, 10, date(2024, 3, 1)),
        make_transaction(2, 1, 10, date(2023, 12, 1)),
        make_transaction(3, 1, 10, date(2024, 3, 20)),
    ]
    grouped = group_by_month(transactions)
    assert list(grouped) == ["2023-12", "2024-03"]
    assert [t.id for t in grouped["2024-03"]] == [1, 3]


def test_monthly_expense_totals_excludes_income_and_transfers():
    transactions = [
        make_transaction(1, 1, 100, date(2024, 1, 5)),
        make_transaction(2, 1, 500, date(2024, 1, 6), type="income"),
        make_transaction(3, 1, -50, date(2024, 2, 6)),
        make_transaction(4, 1, 80, date(2024, 3, 6), type="transfer"),
    ]
    # A month with only a transfer still appears, with a zero total
    assert monthly_expense_totals(transactions) == [100.0, 50.0, 0.0]


def test_aligned_monthly_totals_zero_fills_missing_months():
    transactions = [
        make_transaction(1, 1, 10, date(2024, 1, 5)),
        make_transaction(2, 2, 20, date(2024, 2, 5)),
        make_transaction(3, 1, 30, date(2024, 3, 5)),
    ]
    months = ["2024-01", "2024-02", "2024-03"]
    assert aligned_monthly_totals(transactions, 1, months) == [10.0, 0.0, 30.0]


def test_categories_in_order_of_first_appearance():
    transactions = [
        make_transaction(1, 5, 10, date(2024, 1, 5)),
        make_transaction(2, 2, 10, date(2024, 1, 5)),
        make_transaction(3, 5, 10, date(2024, 1, 5)),
    ]
    assert categories_in_order(transactions) == [5, 2]


def test_mean_and_std_of_empty_series():
    assert mean_and_std([]) == (0.0, 0.0)


def test_mean_and_std_is_population_std():
    mean, std = mean_and_std([2, 4, 4, 4, 5, 5, 7, 9])
    assert mean == 5.0
    assert std == 2.0


class TestLinearTrend:

    def test_two_points(self):
        fit = linear_trend([100, 200])
        assert fit.slope == pytest.approx(100.0)
        assert fit.intercept == pytest.approx(100.0)
        assert fit.r_squared == pytest.approx(1.0)

    def test_single_point_has_no_fit(self):
        assert linear_trend([100]) is None
        assert linear_trend([]) is None

    def test_flat_series(self):
        fit = linear_trend([3, 3, 3])
        assert fit.slope == 0.0
        assert fit.intercept == pytest.approx(3.0)
        assert fit.r_squared == 0.0

    def test_noisy_series_r_squared_in_range(self):
        fit = linear_trend([10, 30, 20, 40, 30])
        assert fit.slope > 0
        assert 0.0 < fit.r_squared < 1.0


class TestPearsonCorrelation:

    def test_perfect_inverse(self):
        assert pearson_correlation([10, 20, 30], [30, 20, 10]) == pytest.approx(-1.0)

    def test_perfect_positive(self):
        assert pearson_correlation([1, 2, 3, 4], [2, 4, 6, 8]) == pytest.approx(1.0)

    def test_mismatched_lengths(self):
        assert pearson_correlation([1, 2, 3], [1, 2]) == 0.0

    def test_empty_series(self):
        assert pearson_correlation([], []) == 0.0

    def test_constant_series(self):
        assert pearson_correlation([5, 5, 5], [1, 2, 3]) == 0.0
