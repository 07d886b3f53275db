"""Tests for trend and balance forecasts."""
from datetime import datetime, timezone

import pytest

from finpattern.ml.trend_forecaster import BALANCE_CATEGORY_ID, TrendForecaster
from finpattern.schemas import ForecastType, MonthlyIndicator, TrendDirection
from conftest import monthly_series

GENERATED_AT = datetime(2024, 4, 1, tzinfo=timezone.utc)


@pytest.fixture
def forecaster():
    return TrendForecaster()


@pytest.fixture
def transactions():
    return (
        monthly_series(1, [100, 200, 300], year=2024, start_id=100)
        + monthly_series(2, [300, 200, 100], year=2024, start_id=200)
        + monthly_series(3, [100, 100, 100], year=2024, start_id=300)
        + monthly_series(4, [500], year=2024, start_id=400)
    )


@pytest.fixture
def balances():
    return [
        MonthlyIndicator(month="2024-01", confirmed_expenses=800, balance=1000),
        MonthlyIndicator(month="2024-02", confirmed_expenses=900, balance=1200),
        MonthlyIndicator(month="2024-03", confirmed_expenses=700, balance=1100),
    ]


def forecast_for(forecasts, category_id):
    return next(f for f in forecasts if f.category_id == category_id)


def test_only_significant_trends_are_forecast(forecaster, transactions, balances):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances, generated_at=GENERATED_AT)
    assert sorted(f.category_id for f in forecasts) == [0, 1, 2]


def test_increasing_projection(forecaster, transactions, balances):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances, generated_at=GENERATED_AT)
    increasing = forecast_for(forecasts, 1)

    assert increasing.forecast_type == ForecastType.CATEGORY_SPENDING
    assert increasing.trend_direction == TrendDirection.INCREASING
    assert increasing.predicted_values == pytest.approx([400, 500, 600])
    assert increasing.confidence == pytest.approx(0.8)
    assert increasing.time_horizon == 3
    assert increasing.seasonal_adjustments == []
    assert increasing.generated_at == GENERATED_AT


def test_decreasing_projection_is_floored_at_zero(forecaster, transactions, balances):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances, months=4)
    decreasing = forecast_for(forecasts, 2)

    assert decreasing.trend_direction == TrendDirection.DECREASING
    assert decreasing.predicted_values == [0.0, 0.0, 0.0, 0.0]
    values = decreasing.predicted_values
    assert all(a >= b for a, b in zip(values, values[1:]))


def test_balance_forecast(forecaster, transactions, balances):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances)
    balance = forecast_for(forecasts, BALANCE_CATEGORY_ID)

    assert balance.forecast_type == ForecastType.BALANCE_PROJECTION
    assert balance.predicted_values == pytest.approx([1150, 1200, 1250])
    assert balance.trend_direction == TrendDirection.INCREASING
    assert balance.confidence == pytest.approx(0.7)


def test_sorted_by_confidence_with_categories_first_on_ties(forecaster, transactions, balances):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances)
    assert [f.category_id for f in forecasts] == [1, 2, 0]


def test_balance_forecast_always_present(forecaster):
    forecasts = forecaster.generate_trend_forecasts([], [])
    assert len(forecasts) == 1
    assert forecasts[0].category_id == BALANCE_CATEGORY_ID
    assert forecasts[0].predicted_values == [0.0, 0.0, 0.0]
    assert forecasts[0].confidence == 0.0


def test_single_indicator_has_zero_delta(forecaster):
    forecasts = forecaster.generate_trend_forecasts(
        [], [MonthlyIndicator(confirmed_expenses=10, balance=750)], months=2
    )
    assert forecasts[0].predicted_values == [750.0, 750.0]
    assert forecasts[0].trend_direction == TrendDirection.STABLE


@pytest.mark.parametrize("months", [0, -1, 1000])
def test_invalid_horizon_uses_default(forecaster, transactions, balances, months):
    forecasts = forecaster.generate_trend_forecasts(transactions, balances, months=months)
    assert all(f.time_horizon == 3 for f in forecasts)
    assert all(len(f.predicted_values) == 3 for f in forecasts)


def test_calculate_trend_needs_two_points(forecaster):
    assert forecaster.calculate_trend([42]).is_significant is False
    assert forecaster.calculate_trend([10, 10.05]).is_significant is False
    assert forecaster.calculate_trend([10, 20]).is_significant is True
