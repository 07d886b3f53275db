"""Pearson correlation between categories' monthly spend."""

import logging
from itertools import combinations
from typing import Dict, Optional, Sequence

from finpattern.core.config import settings as default_settings
from finpattern.ml.timeseries import (
    aligned_monthly_totals,
    categories_in_order,
    group_by_month,
    pearson_correlation,
)
from finpattern.schemas import Transaction

logger = logging.getLogger(__name__)


def pair_key(first: int, second: int) -> str:
    low, high = sorted((first, second))
    return f"{low}-{high}"


def calculate_category_correlations(
    transactions: Sequence[Transaction],
    threshold: Optional[float] = None
) -> Dict[str, float]:
    """
    Correlate every unordered pair of categories.

    Series are aligned on the months present in the whole transaction set,
    so a category with no activity in a month contributes 0 for it. Only
    pairs with |r| above the threshold are returned, keyed "low-high".
    """
    if threshold is None:
        threshold = default_settings.CORRELATION_THRESHOLD

    months = list(group_by_month(transactions))
    category_ids = sorted(categories_in_order(transactions))
    series = {
        category_id: aligned_monthly_totals(transactions, category_id, months)
        for category_id in category_ids
    }

    correlations = {}
    for first, second in combinations(category_ids, 2):
        r = pearson_correlation(series[first], series[second])
        if abs(r) > threshold:
            correlations[pair_key(first, second)] = r

    logger.debug(
        f"Correlated {len(category_ids)} categories over {len(months)} months: "
        f"{len(correlations)} significant pairs"
    )
    return correlations
