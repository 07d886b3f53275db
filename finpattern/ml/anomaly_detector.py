"""
Transaction Anomaly Detector.

Scores each transaction against the learned pattern analysis along four
independent factors (amount, timing, frequency, season). Each detector
returns a typed DetectorResult; anomalous factors are weighted and summed
into a 0-100 severity.
"""

import logging
from calendar import day_name, month_name
from collections import Counter
from datetime import datetime, timezone
from types import MappingProxyType
from typing import List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from finpattern.core.config import Settings, settings as default_settings
from finpattern.ml.timeseries import month_key
from finpattern.schemas import (
    AnomalyType,
    CategoryProfile,
    DetectorResult,
    DetectorStatus,
    FactorType,
    PatternAnalysis,
    SeasonalPattern,
    SpendingAnomaly,
    Transaction,
)

logger = logging.getLogger(__name__)


class AnomalyRule(BaseModel):
    """Threshold and weight for one anomaly factor."""
    model_config = ConfigDict(frozen=True)

    factor: FactorType
    threshold: float
    weight: float
    description: str


def build_anomaly_rules(settings: Settings) -> Mapping[FactorType, AnomalyRule]:
    rules = (
        AnomalyRule(
            factor=FactorType.AMOUNT,
            threshold=settings.ANOMALY_AMOUNT_STD_THRESHOLD,
            weight=settings.ANOMALY_AMOUNT_WEIGHT,
            description="Amount far above or below the category norm",
        ),
        AnomalyRule(
            factor=FactorType.TIMING,
            threshold=settings.ANOMALY_TIMING_PROBABILITY_THRESHOLD,
            weight=settings.ANOMALY_TIMING_WEIGHT,
            description="Unusual day for this category",
        ),
        AnomalyRule(
            factor=FactorType.FREQUENCY,
            threshold=settings.ANOMALY_FREQUENCY_RATIO_THRESHOLD,
            weight=settings.ANOMALY_FREQUENCY_WEIGHT,
            description="Abnormal number of transactions in the month",
        ),
        AnomalyRule(
            factor=FactorType.SEASONAL,
            threshold=1.0,  # standard deviations above the category mean
            weight=settings.ANOMALY_SEASONAL_WEIGHT,
            description="Above-normal spend in a historically low month",
        ),
    )
    return MappingProxyType({rule.factor: rule for rule in rules})


# Checked in order; the first factor present decides the anomaly type
ANOMALY_TYPE_PRIORITY = (
    (FactorType.AMOUNT, AnomalyType.AMOUNT),
    (FactorType.FREQUENCY, AnomalyType.FREQUENCY),
    (FactorType.TIMING, AnomalyType.TIMING),
)

FACTOR_ACTIONS = {
    FactorType.AMOUNT: "Compare it with similar purchases in this category",
    FactorType.FREQUENCY: "Check for duplicate or repeated charges this month",
    FactorType.TIMING: "Confirm that you made this purchase on this day",
    FactorType.SEASONAL: "Decide whether this is a one-off expense or a new habit",
}


def classify_anomaly_type(factor_types: Sequence[FactorType]) -> AnomalyType:
    for factor, anomaly_type in ANOMALY_TYPE_PRIORITY:
        if factor in factor_types:
            return anomaly_type
    return AnomalyType.GENERAL


class SpendingAnomalyDetector:
    """
    Detects anomalous transactions against a PatternAnalysis snapshot.

    The detector holds only its immutable rule set; every call works on
    its own arguments, so one instance can serve concurrent callers.
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.rules = build_anomaly_rules(self.settings)
        self.min_history = self.settings.ANOMALY_MIN_HISTORY
        self.percentage_threshold = self.settings.ANOMALY_PERCENTAGE_THRESHOLD
        self.timing_min_samples = self.settings.ANOMALY_TIMING_MIN_SAMPLES

        logger.debug(
            f"Initialized SpendingAnomalyDetector with rules: "
            f"{', '.join(f'{r.factor.value}={r.threshold}x{r.weight}' for r in self.rules.values())}"
        )

    def detect_anomalies(
        self,
        recent_transactions: Sequence[Transaction],
        historical_pattern: PatternAnalysis,
        detected_at: Optional[datetime] = None
    ) -> List[SpendingAnomaly]:
        """
        Evaluate every recent transaction independently.

        Args:
            recent_transactions: Transactions to score
            historical_pattern: Snapshot produced by analyze_patterns
            detected_at: Timestamp stamped on results (defaults to now, UTC)

        Returns:
            Anomalies sorted by severity, highest first. Transactions with no
            anomalous factor produce no entry.
        """
        detected_at = detected_at or datetime.now(timezone.utc)

        # Per category and month counts within this batch, for the frequency check
        month_counts = Counter(
            (t.category_id, month_key(t.date)) for t in recent_transactions
        )

        anomalies = []
        for transaction in recent_transactions:
            anomaly = self.evaluate_transaction_anomaly(
                transaction,
                historical_pattern,
                month_counts[(transaction.category_id, month_key(transaction.date))],
                detected_at,
            )
            if anomaly is not None:
                anomalies.append(anomaly)

        anomalies.sort(key=lambda a: a.severity_score, reverse=True)

        logger.info(
            f"Anomaly detection complete: {len(anomalies)} anomalies in "
            f"{len(recent_transactions)} transactions"
        )
        return anomalies

    def evaluate_transaction_anomaly(
        self,
        transaction: Transaction,
        pattern: PatternAnalysis,
        month_count: int,
        detected_at: datetime
    ) -> Optional[SpendingAnomaly]:
        profile = pattern.category_profiles.get(transaction.category_id)
        seasonal_pattern = pattern.seasonal_pattern_for(transaction.category_id)

        results = [
            self.detect_amount_anomaly(transaction, profile),
            self.detect_timing_anomaly(transaction, profile),
            self.detect_frequency_anomaly(transaction, profile, month_count),
            self.detect_seasonal_anomaly(transaction, profile, seasonal_pattern),
        ]

        anomalous = [r for r in results if r.is_anomalous]
        unsupported = [r.factor for r in results if r.status == DetectorStatus.UNSUPPORTED]

        if not anomalous:
            if unsupported:
                logger.debug(
                    f"Transaction {transaction.id}: no anomaly, unsupported checks: "
                    f"{', '.join(f.value for f in unsupported)}"
                )
            return None

        severity_score = sum(r.severity * self.rules[r.factor].weight for r in anomalous)
        severity_score = min(max(severity_score, 0.0), 100.0)
        factor_types = [r.factor for r in anomalous]
        reasons = [r.reason for r in anomalous]

        anomaly = SpendingAnomaly(
            transaction_id=transaction.id,
            anomaly_type=classify_anomaly_type(factor_types),
            severity_score=severity_score,
            confidence=self.calculate_anomaly_confidence(len(anomalous), severity_score),
            factors=reasons,
            factor_types=factor_types,
            unsupported_checks=unsupported,
            description=self.generate_anomaly_description(transaction, anomalous),
            suggested_actions=self.generate_suggested_actions(factor_types),
            detected_at=detected_at,
        )

        logger.debug(
            f"Anomaly detected: transaction {transaction.id} "
            f"({anomaly.anomaly_type.value}, severity {severity_score:.1f})"
        )
        return anomaly

    def detect_amount_anomaly(
        self,
        transaction: Transaction,
        profile: Optional[CategoryProfile]
    ) -> DetectorResult:
        rule = self.rules[FactorType.AMOUNT]

        if profile is None or profile.transaction_count < self.min_history:
            return DetectorResult.unsupported(
                FactorType.AMOUNT,
                f"fewer than {self.min_history} historical transactions in category"
            )

        value = transaction.magnitude
        mean = profile.amount_mean
        deviation = abs(value - mean)

        if profile.amount_std > 0:
            z_score = deviation / profile.amount_std
            if z_score < rule.threshold:
                return DetectorResult.not_anomalous(FactorType.AMOUNT)
            return DetectorResult.anomalous(
                FactorType.AMOUNT,
                f"amount {value:.2f} is {z_score:.1f} standard deviations "
                f"from the category mean of {mean:.2f}",
                z_score / (rule.threshold * 2),
            )

        # No variance - fall back to a percentage threshold
        if mean <= 0:
            return DetectorResult.unsupported(
                FactorType.AMOUNT, "category history has no spend to compare against"
            )

        percentage_change = deviation / mean * 100
        if percentage_change < self.percentage_threshold:
            return DetectorResult.not_anomalous(FactorType.AMOUNT)
        return DetectorResult.anomalous(
            FactorType.AMOUNT,
            f"amount {value:.2f} differs by {percentage_change:.0f}% "
            f"from the usual {mean:.2f} in this category",
            percentage_change / (self.percentage_threshold * 2),
        )

    def detect_timing_anomaly(
        self,
        transaction: Transaction,
        profile: Optional[CategoryProfile]
    ) -> DetectorResult:
        rule = self.rules[FactorType.TIMING]

        if profile is None or profile.transaction_count < self.timing_min_samples:
            return DetectorResult.unsupported(
                FactorType.TIMING,
                f"fewer than {self.timing_min_samples} historical transactions in category"
            )

        weekday = transaction.date.weekday()
        probability = profile.weekday_distribution[weekday]
        if probability >= rule.threshold:
            return DetectorResult.not_anomalous(FactorType.TIMING)

        return DetectorResult.anomalous(
            FactorType.TIMING,
            f"unusual timing: {day_name[weekday]} accounts for {probability:.0%} "
            f"of this category's transactions",
            1.0 - probability / rule.threshold,
        )

    def detect_frequency_anomaly(
        self,
        transaction: Transaction,
        profile: Optional[CategoryProfile],
        month_count: int
    ) -> DetectorResult:
        rule = self.rules[FactorType.FREQUENCY]

        if profile is None or profile.monthly_frequency_mean <= 0:
            return DetectorResult.unsupported(
                FactorType.FREQUENCY, "no monthly frequency history for category"
            )

        normal = profile.monthly_frequency_mean
        ratio = month_count / normal

        if ratio < rule.threshold or month_count <= normal + profile.monthly_frequency_std:
            return DetectorResult.not_anomalous(FactorType.FREQUENCY)

        return DetectorResult.anomalous(
            FactorType.FREQUENCY,
            f"abnormal frequency: {month_count} transactions in {month_key(transaction.date)} "
            f"against a normal {normal:.1f} per month",
            ratio / (rule.threshold * 2),
        )

    def detect_seasonal_anomaly(
        self,
        transaction: Transaction,
        profile: Optional[CategoryProfile],
        seasonal_pattern: Optional[SeasonalPattern]
    ) -> DetectorResult:
        rule = self.rules[FactorType.SEASONAL]

        if seasonal_pattern is None or profile is None:
            return DetectorResult.unsupported(
                FactorType.SEASONAL, "no established seasonal pattern for category"
            )

        month = transaction.date.month
        if month not in seasonal_pattern.low_months:
            return DetectorResult.not_anomalous(FactorType.SEASONAL)

        value = transaction.magnitude
        limit = profile.amount_mean + profile.amount_std * rule.threshold
        if value <= limit:
            return DetectorResult.not_anomalous(FactorType.SEASONAL)

        return DetectorResult.anomalous(
            FactorType.SEASONAL,
            f"out of season: {value:.2f} spent in {month_name[month]}, "
            f"historically a low month for this category",
            seasonal_pattern.confidence,
        )

    @staticmethod
    def calculate_anomaly_confidence(factor_count: int, severity_score: float) -> float:
        return min(factor_count * 0.3 + severity_score / 100, 1.0)

    def generate_anomaly_description(
        self,
        transaction: Transaction,
        results: Sequence[DetectorResult]
    ) -> str:
        """Rule descriptions as the headline, detector reasons as the detail."""
        label = transaction.description.strip() or "an undescribed transaction"
        headline = "; ".join(self.rules[r.factor].description for r in results)
        return (
            f"Transaction of {transaction.magnitude:.2f} for {label}: {headline}. "
            f"Details: {', '.join(r.reason for r in results)}"
        )

    @staticmethod
    def generate_suggested_actions(factor_types: Sequence[FactorType]) -> List[str]:
        actions = ["Verify that the transaction is correct"]
        actions.extend(FACTOR_ACTIONS[f] for f in factor_types)
        actions.append("Consider adjusting the budget for this category")
        return actions
