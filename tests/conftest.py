"""
Shared fixtures: a deterministic 2023 transaction history.

Category 1 (Groceries): 7 transactions on days 2-8 of every month, so every
weekday is equally common; amounts average 100.
Category 2 (Transport): 20 consecutive Mondays from 2023-01-02, 50 each.
Category 3 (Travel): one transaction on the 10th of every month, 200 except
20 in July, which makes July a low month.
"""
from datetime import date, datetime, timedelta, timezone

import pytest

from finpattern.ml.pattern_detector import PatternDetector
from finpattern.schemas import Category, MonthlyIndicator, Transaction

ANALYZED_AT = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_transaction(tid, category_id, amount, when, type="expense", description="", timestamp=None):
    return Transaction(
        id=tid,
        category_id=category_id,
        amount=amount,
        date=when,
        type=type,
        description=description,
        timestamp=timestamp,
    )


def monthly_series(category_id, totals, year=2023, start_id=1000, description=""):
    """One transaction per month on the 15th, starting in January."""
    transactions = []
    for index, total in enumerate(totals):
        when = date(year + index // 12, index % 12 + 1, 15)
        transactions.append(make_transaction(start_id + index, category_id, total, when, description=description))
    return transactions


def build_history():
    transactions = []
    tid = 1

    grocery_amounts = [90, 110, 90, 110, 90, 110, 100]
    for month in range(1, 13):
        for offset, amount in enumerate(grocery_amounts):
            transactions.append(make_transaction(
                tid, 1, amount, date(2023, month, 2 + offset),
                description="Supermarket Extra weekly shop",
            ))
            tid += 1

    monday = date(2023, 1, 2)
    for week in range(20):
        transactions.append(make_transaction(
            tid, 2, 50, monday + timedelta(days=7 * week),
            description="Uber trip downtown",
        ))
        tid += 1

    for month in range(1, 13):
        transactions.append(make_transaction(
            tid, 3, 20 if month == 7 else 200, date(2023, month, 10),
            description="Airline ticket",
        ))
        tid += 1

    return transactions


@pytest.fixture
def history():
    return build_history()


@pytest.fixture
def indicators():
    return [
        MonthlyIndicator(month=f"2023-{month:02d}", confirmed_expenses=1000.0, balance=5000.0 + 100 * month)
        for month in range(1, 13)
    ]


@pytest.fixture
def categories():
    return [
        Category(id=1, name="Groceries", type="expense"),
        Category(id=2, name="Transport", type="expense"),
        Category(id=3, name="Travel", type="expense"),
        Category(id=4, name="Salary", type="income"),
    ]


@pytest.fixture
def detector():
    return PatternDetector()


@pytest.fixture
def analysis(detector, history, indicators):
    return detector.analyze_patterns(history, indicators, user_id="user-1", analyzed_at=ANALYZED_AT)
