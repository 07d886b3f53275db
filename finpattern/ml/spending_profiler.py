"""
Spending Pattern Profiler.

Builds descriptive views of a transaction history (weekday, time of day,
amount range, monthly frequency, growth) and the per-category profiles the
anomaly detector and classifier score against.
"""

import logging
from collections import Counter, defaultdict
from typing import Dict, Iterable, Optional, Sequence, Tuple

import numpy as np

from finpattern.core.config import Settings, settings as default_settings
from finpattern.ml.timeseries import (
    categories_in_order,
    group_by_month,
    linear_trend,
    mean_and_std,
    monthly_expense_totals,
)
from finpattern.schemas import (
    AmountRange,
    AnalysisStatus,
    BucketStats,
    CategoryProfile,
    FrequencyProfile,
    GrowthTrend,
    MonthActivity,
    SpendingPatterns,
    TimeOfDayProfile,
    Transaction,
)

logger = logging.getLogger(__name__)

AMOUNT_RANGE_NAMES = ("small", "medium", "large", "xlarge")


class SpendingPatternProfiler:
    """Descriptive statistics over a transaction history."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def analyze_spending_patterns(self, transactions: Sequence[Transaction]) -> SpendingPatterns:
        return SpendingPatterns(
            by_day_of_week=self.analyze_by_day_of_week(transactions),
            by_time_of_day=self.analyze_by_time_of_day(transactions),
            by_amount_range=self.analyze_by_amount_range(transactions),
            by_frequency=self.analyze_frequency_patterns(transactions),
            growth_trends=self.analyze_growth_trends(transactions),
        )

    @staticmethod
    def analyze_by_day_of_week(transactions: Sequence[Transaction]) -> Dict[int, BucketStats]:
        """Count and total per weekday, Monday=0 through Sunday=6."""
        return bucket_stats((t.date.weekday(), t.magnitude) for t in transactions)

    @staticmethod
    def analyze_by_time_of_day(transactions: Sequence[Transaction]) -> TimeOfDayProfile:
        """
        Count and total per hour of day.

        Only transactions carrying a timestamp contribute. When none do, the
        profile is reported as unsupported rather than empty-but-ok.
        """
        hours = bucket_stats(
            (t.timestamp.hour, t.magnitude) for t in transactions if t.timestamp is not None
        )

        if not hours:
            return TimeOfDayProfile(
                status=AnalysisStatus.UNSUPPORTED,
                reason="no time-of-day data: transactions carry calendar dates only",
            )

        return TimeOfDayProfile(status=AnalysisStatus.OK, by_hour=hours)

    def analyze_by_amount_range(self, transactions: Sequence[Transaction]) -> Dict[str, AmountRange]:
        """Bucket magnitudes into small/medium/large/xlarge; first matching bucket wins."""
        lower, middle, upper = self.settings.AMOUNT_RANGE_BOUNDS
        ranges = {
            "small": AmountRange(min=0.0, max=lower),
            "medium": AmountRange(min=lower, max=middle),
            "large": AmountRange(min=middle, max=upper),
            "xlarge": AmountRange(min=upper, max=None),
        }

        counts: Counter = Counter()
        totals: Dict[str, float] = defaultdict(float)
        for t in transactions:
            value = t.magnitude
            for name in AMOUNT_RANGE_NAMES:
                if ranges[name].contains(value):
                    counts[name] += 1
                    totals[name] += value
                    break

        return {
            name: bucket.model_copy(update={"count": counts[name], "total": totals[name]})
            for name, bucket in ranges.items()
        }

    def analyze_frequency_patterns(self, transactions: Sequence[Transaction]) -> FrequencyProfile:
        monthly = group_by_month(transactions)
        if not monthly:
            return FrequencyProfile()

        frequencies = np.array([len(items) for items in monthly.values()], dtype=float)

        # sorted() is stable, so equal counts keep chronological order
        most_active = sorted(monthly.items(), key=lambda item: len(item[1]), reverse=True)
        most_active = most_active[:self.settings.MOST_ACTIVE_MONTHS]

        return FrequencyProfile(
            average_transactions_per_month=float(frequencies.mean()),
            frequency_variance=float(frequencies.var()),
            most_active_months=[
                MonthActivity(month=month, count=len(items)) for month, items in most_active
            ],
        )

    @staticmethod
    def analyze_growth_trends(transactions: Sequence[Transaction]) -> GrowthTrend:
        return growth_trend_from_totals(monthly_expense_totals(transactions))

    def build_category_profiles(self, transactions: Sequence[Transaction]) -> Dict[int, CategoryProfile]:
        """Per-category amount, frequency and weekday statistics."""
        profiles = {}
        for category_id in sorted(categories_in_order(transactions)):
            items = [t for t in transactions if t.category_id == category_id]
            amounts = [t.magnitude for t in items]
            amount_mean, amount_std = mean_and_std(amounts)

            monthly_counts = [len(month_items) for month_items in group_by_month(items).values()]
            frequency_mean, frequency_std = mean_and_std(monthly_counts)

            weekday_counts = Counter(t.date.weekday() for t in items)
            weekday_distribution = [weekday_counts.get(day, 0) / len(items) for day in range(7)]

            profiles[category_id] = CategoryProfile(
                category_id=category_id,
                transaction_count=len(items),
                amount_mean=amount_mean,
                amount_std=amount_std,
                amount_min=float(min(amounts)),
                amount_max=float(max(amounts)),
                monthly_frequency_mean=frequency_mean,
                monthly_frequency_std=frequency_std,
                active_months=len(monthly_counts),
                weekday_distribution=weekday_distribution,
                descriptions=[t.description for t in items if t.description.strip()],
            )

        logger.debug(f"Built {len(profiles)} category profiles")
        return profiles


def growth_trend_from_totals(monthly_totals: Sequence[float]) -> GrowthTrend:
    """OLS growth over monthly totals; fewer than two points is insufficient data."""
    fit = linear_trend(monthly_totals)
    if fit is None:
        return GrowthTrend(trend=AnalysisStatus.INSUFFICIENT_DATA.value)

    mean = float(np.mean(monthly_totals))
    growth_rate = (fit.slope / mean) * 100 if mean != 0 else 0.0

    return GrowthTrend(
        trend="increasing" if fit.slope > 0 else "decreasing",
        slope=fit.slope,
        intercept=fit.intercept,
        growth_rate=growth_rate,
    )


def bucket_stats(keyed_amounts: Iterable[Tuple[int, float]]) -> Dict[int, BucketStats]:
    """Count and total per key, keys in ascending order."""
    counts: Counter = Counter()
    totals: Dict[int, float] = defaultdict(float)
    for key, amount in keyed_amounts:
        counts[key] += 1
        totals[key] += amount
    return {key: BucketStats(count=counts[key], total=totals[key]) for key in sorted(counts)}
