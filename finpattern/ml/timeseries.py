"""
Month grouping and small statistical helpers shared by the analyzers.

All functions are pure and return plain floats; degenerate inputs (empty
series, zero variance, zero denominators) yield 0 instead of NaN or inf.
"""

import datetime as dt
from collections import defaultdict
from typing import Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple

import numpy as np

from finpattern.schemas import Transaction


class LinearFit(NamedTuple):
    slope: float
    intercept: float
    r_squared: float


def month_key(date: dt.date) -> str:
    """Return the YYYY-MM key for a date."""
    return f"{date.year:04d}-{date.month:02d}"


def month_of_key(key: str) -> int:
    """Calendar month (1-12) of a YYYY-MM key."""
    return int(key[5:7])


def group_by_month(transactions: Iterable[Transaction]) -> Dict[str, List[Transaction]]:
    """Group transactions by YYYY-MM, keys in chronological order."""
    grouped: Dict[str, List[Transaction]] = defaultdict(list)
    for t in transactions:
        grouped[month_key(t.date)].append(t)
    return {key: grouped[key] for key in sorted(grouped)}


def monthly_expense_series(transactions: Iterable[Transaction]) -> List[Tuple[str, float]]:
    """
    Expense magnitude totals per active month, chronologically ordered.

    Months are those in which the transactions occur at all; income and
    transfers count as zero towards a month's total.
    """
    series = []
    for key, items in group_by_month(transactions).items():
        series.append((key, float(sum(t.magnitude for t in items if t.is_expense))))
    return series


def monthly_expense_totals(transactions: Iterable[Transaction]) -> List[float]:
    return [total for _, total in monthly_expense_series(transactions)]


def aligned_monthly_totals(
    transactions: Iterable[Transaction],
    category_id: int,
    months: Sequence[str]
) -> List[float]:
    """Magnitude totals for one category over a shared month axis, zero-filled."""
    totals: Dict[str, float] = defaultdict(float)
    for t in transactions:
        if t.category_id == category_id:
            totals[month_key(t.date)] += t.magnitude
    return [float(totals.get(month, 0.0)) for month in months]


def categories_in_order(transactions: Iterable[Transaction]) -> List[int]:
    """Distinct category ids in order of first appearance."""
    seen: Dict[int, None] = {}
    for t in transactions:
        seen.setdefault(t.category_id, None)
    return list(seen)


def mean_and_std(values: Sequence[float]) -> Tuple[float, float]:
    """Population mean and standard deviation; (0, 0) for an empty series."""
    if len(values) == 0:
        return 0.0, 0.0
    arr = np.asarray(values, dtype=float)
    return float(arr.mean()), float(arr.std())


def linear_trend(values: Sequence[float]) -> Optional[LinearFit]:
    """
    Ordinary least squares of values against a 0-based index.

    Returns None for fewer than two points. r_squared is 0 when the series
    has no variance.
    """
    n = len(values)
    if n < 2:
        return None

    y = np.asarray(values, dtype=float)
    x = np.arange(n, dtype=float)

    sum_x = x.sum()
    sum_y = y.sum()
    sum_xy = (x * y).sum()
    sum_xx = (x * x).sum()

    denominator = n * sum_xx - sum_x * sum_x
    slope = (n * sum_xy - sum_x * sum_y) / denominator if denominator != 0 else 0.0
    intercept = (sum_y - slope * sum_x) / n

    ss_tot = float(((y - y.mean()) ** 2).sum())
    if ss_tot == 0:
        r_squared = 0.0
    else:
        residuals = y - (slope * x + intercept)
        r_squared = 1.0 - float((residuals ** 2).sum()) / ss_tot
        r_squared = min(max(r_squared, 0.0), 1.0)

    return LinearFit(float(slope), float(intercept), r_squared)


def pearson_correlation(x: Sequence[float], y: Sequence[float]) -> float:
    """Pearson r in [-1, 1]; 0 for mismatched lengths, empty or constant series."""
    if len(x) != len(y) or len(x) == 0:
        return 0.0

    a = np.asarray(x, dtype=float)
    b = np.asarray(y, dtype=float)
    n = len(a)

    numerator = n * (a * b).sum() - a.sum() * b.sum()
    variance_term = (n * (a * a).sum() - a.sum() ** 2) * (n * (b * b).sum() - b.sum() ** 2)
    if variance_term <= 0:
        return 0.0

    r = float(numerator / np.sqrt(variance_term))
    return min(max(r, -1.0), 1.0)
