"""
Seasonality Analyzer.

Detects per-category monthly cycles: calendar months whose average spend
sits more than one standard deviation above (peak) or below (low) the
category's overall monthly mean.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Sequence

import numpy as np

from finpattern.core.config import Settings, settings as default_settings
from finpattern.ml.timeseries import (
    categories_in_order,
    mean_and_std,
    month_of_key,
    monthly_expense_series,
)
from finpattern.schemas import (
    AnalysisStatus,
    MonthlyIndicator,
    SeasonalityResult,
    SeasonalPattern,
    Transaction,
)

logger = logging.getLogger(__name__)


class SeasonalityAnalyzer:
    """Finds categories whose spend follows the calendar."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.min_months = self.settings.SEASONALITY_MIN_MONTHS
        self.cycle_length = self.settings.SEASONALITY_CYCLE_LENGTH

    def detect_seasonal_patterns(
        self,
        transactions: Sequence[Transaction],
        indicators: Sequence[MonthlyIndicator]
    ) -> List[SeasonalPattern]:
        """
        Detect seasonal patterns for every category in the transaction set.

        Categories with fewer than SEASONALITY_MIN_MONTHS active months are
        skipped. Returns patterns sorted by impact score, highest first.
        """
        patterns = []
        average_monthly = self.average_monthly_spending(indicators)

        for category_id in categories_in_order(transactions):
            category_transactions = [t for t in transactions if t.category_id == category_id]
            series = monthly_expense_series(category_transactions)

            seasonality = self.detect_seasonality(
                [total for _, total in series],
                [month_of_key(key) for key, _ in series]
            )

            if seasonality.status == AnalysisStatus.INSUFFICIENT_DATA:
                logger.debug(
                    f"Skipping seasonality for category {category_id}: "
                    f"{len(series)} < {self.min_months} months"
                )
                continue

            if not seasonality.is_seasonal:
                continue

            patterns.append(SeasonalPattern(
                category_id=category_id,
                type="monthly",
                cycle_length=seasonality.cycle_length,
                peak_months=seasonality.peak_months,
                low_months=seasonality.low_months,
                amplitude=seasonality.amplitude,
                confidence=seasonality.confidence,
                impact_score=self.calculate_impact_score(category_transactions, average_monthly),
            ))

        patterns.sort(key=lambda p: p.impact_score, reverse=True)
        logger.info(f"Detected {len(patterns)} seasonal patterns")
        return patterns

    def detect_seasonality(
        self,
        monthly_amounts: Sequence[float],
        calendar_months: Optional[Sequence[int]] = None
    ) -> SeasonalityResult:
        """
        Decide whether one monthly series is seasonal.

        Args:
            monthly_amounts: Monthly totals in chronological order
            calendar_months: Calendar month (1-12) of each total. Defaults to
                             a contiguous series starting in January.
        """
        n = len(monthly_amounts)
        if n < self.min_months:
            return SeasonalityResult(
                is_seasonal=False,
                status=AnalysisStatus.INSUFFICIENT_DATA,
                cycle_length=self.cycle_length,
            )

        if calendar_months is None:
            calendar_months = [(i % self.cycle_length) + 1 for i in range(n)]

        mean, std = mean_and_std(monthly_amounts)

        buckets: Dict[int, List[float]] = defaultdict(list)
        for month, amount in zip(calendar_months, monthly_amounts):
            buckets[month].append(amount)

        peaks = []
        lows = []
        for month in range(1, self.cycle_length + 1):
            if month not in buckets:
                continue
            month_mean = float(np.mean(buckets[month]))
            if month_mean > mean + std:
                peaks.append(month)
            elif month_mean < mean - std:
                lows.append(month)

        is_seasonal = bool(peaks or lows)
        amplitude = float(max(monthly_amounts) - min(monthly_amounts))

        if is_seasonal and mean > 0:
            confidence = min(amplitude / mean, 1.0)
        else:
            confidence = 0.0

        return SeasonalityResult(
            is_seasonal=is_seasonal,
            cycle_length=self.cycle_length,
            peak_months=peaks,
            low_months=lows,
            amplitude=amplitude,
            confidence=confidence,
        )

    @staticmethod
    def average_monthly_spending(indicators: Sequence[MonthlyIndicator]) -> float:
        if not indicators:
            return 0.0
        return float(np.mean([i.confirmed_expenses for i in indicators]))

    @staticmethod
    def calculate_impact_score(
        transactions: Sequence[Transaction],
        average_monthly_spending: float
    ) -> float:
        """Category spend relative to average monthly spend, as 0-100."""
        total = sum(t.magnitude for t in transactions if t.is_expense)
        if average_monthly_spending <= 0 or total <= 0:
            return 0.0
        return min(total / average_monthly_spending, 1.0) * 100
