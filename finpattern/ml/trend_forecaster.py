"""
Trend Forecaster.

Projects near-future per-category spending from a linear trend over
monthly totals, and the overall balance from the average month-over-month
change in the monthly indicators.
"""

import logging
from datetime import datetime, timezone
from typing import List, NamedTuple, Optional, Sequence

import numpy as np

from finpattern.core.config import Settings, settings as default_settings
from finpattern.ml.timeseries import (
    LinearFit,
    categories_in_order,
    linear_trend,
    monthly_expense_totals,
)
from finpattern.schemas import (
    ForecastType,
    MonthlyIndicator,
    Transaction,
    TrendDirection,
    TrendForecast,
)

logger = logging.getLogger(__name__)

BALANCE_CATEGORY_ID = 0


class TrendAssessment(NamedTuple):
    is_significant: bool
    direction: TrendDirection
    confidence: float
    fit: Optional[LinearFit]


class TrendForecaster:
    """Linear trend projections per category plus a balance projection."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.min_points = self.settings.TREND_MIN_POINTS
        self.significance_slope = self.settings.TREND_SIGNIFICANCE_SLOPE
        self.confidence_decay = self.settings.FORECAST_CONFIDENCE_DECAY

    def generate_trend_forecasts(
        self,
        transactions: Sequence[Transaction],
        indicators: Sequence[MonthlyIndicator],
        months: Optional[int] = None,
        generated_at: Optional[datetime] = None
    ) -> List[TrendForecast]:
        """
        Forecast every category with a significant trend, plus the balance.

        Args:
            transactions: Historical transactions
            indicators: Monthly indicators in chronological order
            months: Forecast horizon in months (default FORECAST_DEFAULT_MONTHS)
            generated_at: Timestamp stamped on results (defaults to now, UTC)

        Returns:
            Forecasts sorted by confidence, highest first. The balance
            forecast (category id 0) is always present.
        """
        months = self._validate_horizon(months)
        generated_at = generated_at or datetime.now(timezone.utc)

        forecasts = []
        for category_id in categories_in_order(transactions):
            series = self.prepare_category_time_series(transactions, category_id)
            trend = self.calculate_trend(series)

            if not trend.is_significant:
                logger.debug(f"No significant trend for category {category_id}")
                continue

            forecasts.append(TrendForecast(
                category_id=category_id,
                forecast_type=ForecastType.CATEGORY_SPENDING,
                time_horizon=months,
                predicted_values=self.project_category_trend(series, trend, months),
                trend_direction=trend.direction,
                confidence=min(trend.confidence * self.confidence_decay, 1.0),
                seasonal_adjustments=[],
                assumptions=[
                    "Based on the historical linear trend of monthly spend",
                    "Does not account for external events",
                ],
                generated_at=generated_at,
            ))

        forecasts.append(self.forecast_balance(indicators, months, generated_at))

        # Stable sort keeps category order for equal confidence
        forecasts.sort(key=lambda f: f.confidence, reverse=True)

        logger.info(
            f"Generated {len(forecasts)} forecasts over {months} months "
            f"({len(forecasts) - 1} categories with significant trends)"
        )
        return forecasts

    @staticmethod
    def prepare_category_time_series(
        transactions: Sequence[Transaction],
        category_id: int
    ) -> List[float]:
        return monthly_expense_totals(t for t in transactions if t.category_id == category_id)

    def calculate_trend(self, series: Sequence[float]) -> TrendAssessment:
        """
        Fit a linear trend and judge its significance.

        Confidence is the fit's R^2, so it reflects how well a line explains
        the series rather than the size of the slope.
        """
        if len(series) < self.min_points:
            return TrendAssessment(False, TrendDirection.STABLE, 0.0, None)

        fit = linear_trend(series)
        if fit.slope > 0:
            direction = TrendDirection.INCREASING
        elif fit.slope < 0:
            direction = TrendDirection.DECREASING
        else:
            direction = TrendDirection.STABLE

        return TrendAssessment(
            is_significant=abs(fit.slope) > self.significance_slope,
            direction=direction,
            confidence=fit.r_squared,
            fit=fit,
        )

    @staticmethod
    def project_category_trend(
        series: Sequence[float],
        trend: TrendAssessment,
        months: int
    ) -> List[float]:
        """Continue the fitted slope from the last observed value, floored at 0."""
        last_value = series[-1] if len(series) else 0.0
        slope = trend.fit.slope if trend.fit else 0.0
        return [max(last_value + slope * step, 0.0) for step in range(1, months + 1)]

    def forecast_balance(
        self,
        indicators: Sequence[MonthlyIndicator],
        months: int,
        generated_at: datetime
    ) -> TrendForecast:
        """Project the balance by its average month-over-month change."""
        recent_balance = indicators[-1].balance if indicators else 0.0

        if len(indicators) >= 2:
            balances = np.array([i.balance for i in indicators], dtype=float)
            average_change = float(np.diff(balances).mean())
            confidence = self.settings.BALANCE_FORECAST_CONFIDENCE
        else:
            average_change = 0.0
            confidence = 0.0

        if average_change > 0:
            direction = TrendDirection.INCREASING
        elif average_change < 0:
            direction = TrendDirection.DECREASING
        else:
            direction = TrendDirection.STABLE

        return TrendForecast(
            category_id=BALANCE_CATEGORY_ID,
            forecast_type=ForecastType.BALANCE_PROJECTION,
            time_horizon=months,
            predicted_values=[recent_balance + average_change * step for step in range(1, months + 1)],
            trend_direction=direction,
            confidence=confidence,
            seasonal_adjustments=[],
            assumptions=["Based on the average monthly balance change"],
            generated_at=generated_at,
        )

    def _validate_horizon(self, months: Optional[int]) -> int:
        default = self.settings.FORECAST_DEFAULT_MONTHS
        if months is None:
            return default
        if months < 1 or months > self.settings.FORECAST_MAX_MONTHS:
            logger.warning(f"Invalid forecast horizon: {months}, using default {default}")
            return default
        return months
