"""
Financial Pattern Detector.

Entry point of the engine. analyze_patterns builds a PatternAnalysis
snapshot from the full history; the snapshot is then reused by
detect_anomalies, classify_transaction and generate_trend_forecasts.

The detector keeps no state between calls beyond its immutable settings,
so a single instance may be shared by concurrent callers.
"""

import logging
import time
from datetime import datetime, timezone
from typing import List, Optional, Sequence, Union

import numpy as np
from pydantic import BaseModel

from finpattern.core.config import Settings, settings as default_settings
from finpattern.ml.anomaly_detector import SpendingAnomalyDetector
from finpattern.ml.correlation import calculate_category_correlations
from finpattern.ml.metrics import metrics
from finpattern.ml.seasonality import SeasonalityAnalyzer
from finpattern.ml.spending_profiler import SpendingPatternProfiler
from finpattern.ml.timeseries import categories_in_order, linear_trend, monthly_expense_totals
from finpattern.ml.transaction_classifier import TransactionClassifier
from finpattern.ml.trend_forecaster import TrendForecaster
from finpattern.schemas import (
    CategoryLike,
    CategoryPrediction,
    IndicatorLike,
    PatternAnalysis,
    PendingTransaction,
    PredictiveModelDescriptor,
    SeasonalPattern,
    SpendingAnomaly,
    TransactionLike,
    TrendForecast,
    coerce_categories,
    coerce_indicators,
    coerce_transactions,
)

logger = logging.getLogger(__name__)


class PatternDetector:
    """
    Local pattern detection over a user's transaction history.

    Features:
    1. Seasonal pattern detection per category
    2. Spending profiles (weekday, time of day, amount range, frequency, growth)
    3. Category correlations
    4. Transaction anomaly scoring
    5. Category suggestions for new transactions
    6. Trend and balance forecasts
    """

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.seasonality = SeasonalityAnalyzer(self.settings)
        self.profiler = SpendingPatternProfiler(self.settings)
        self.anomaly_detector = SpendingAnomalyDetector(self.settings)
        self.classifier = TransactionClassifier(self.settings)
        self.forecaster = TrendForecaster(self.settings)

        logger.info("Initialized PatternDetector")

    def analyze_patterns(
        self,
        transactions: Sequence[TransactionLike],
        indicators: Sequence[IndicatorLike],
        user_id: Optional[str] = None,
        analyzed_at: Optional[datetime] = None
    ) -> PatternAnalysis:
        """
        Build the pattern analysis snapshot for a transaction history.

        Args:
            transactions: Full transaction history (models or mappings)
            indicators: Monthly indicators in chronological order
            user_id: Optional owner of the history, carried on the snapshot
            analyzed_at: Timestamp of the analysis (defaults to now, UTC)
        """
        started = time.perf_counter()
        try:
            history = coerce_transactions(transactions)
            monthly_indicators = coerce_indicators(indicators)
            analyzed_at = analyzed_at or datetime.now(timezone.utc)

            logger.info(f"Analyzing patterns over {len(history)} transactions")

            seasonal_patterns = self.seasonality.detect_seasonal_patterns(history, monthly_indicators)

            analysis = PatternAnalysis(
                seasonal_patterns=seasonal_patterns,
                spending_patterns=self.profiler.analyze_spending_patterns(history),
                category_correlations=calculate_category_correlations(
                    history, self.settings.CORRELATION_THRESHOLD
                ),
                category_profiles=self.profiler.build_category_profiles(history),
                predictive_models=self.build_predictive_models(history, analyzed_at),
                confidence_score=self.calculate_overall_confidence(seasonal_patterns),
                analyzed_at=analyzed_at,
                user_id=user_id,
            )
        except Exception:
            metrics.record_run("analyze_patterns", 0, time.perf_counter() - started, user_id, success=False)
            raise

        metrics.record_run(
            "analyze_patterns",
            len(analysis.seasonal_patterns),
            time.perf_counter() - started,
            user_id,
        )
        logger.info(
            f"Pattern analysis complete: {len(analysis.seasonal_patterns)} seasonal patterns, "
            f"{len(analysis.category_correlations)} correlations, "
            f"confidence {analysis.confidence_score:.2f}"
        )
        return analysis

    def detect_anomalies(
        self,
        recent_transactions: Sequence[TransactionLike],
        historical_pattern: PatternAnalysis,
        detected_at: Optional[datetime] = None
    ) -> List[SpendingAnomaly]:
        started = time.perf_counter()
        try:
            anomalies = self.anomaly_detector.detect_anomalies(
                coerce_transactions(recent_transactions), historical_pattern, detected_at
            )
        except Exception:
            metrics.record_run(
                "detect_anomalies", 0, time.perf_counter() - started,
                historical_pattern.user_id, success=False
            )
            raise

        metrics.record_run(
            "detect_anomalies", len(anomalies), time.perf_counter() - started, historical_pattern.user_id
        )
        return anomalies

    def classify_transaction(
        self,
        transaction: Union[PendingTransaction, TransactionLike],
        patterns: PatternAnalysis,
        categories: Sequence[CategoryLike]
    ) -> List[CategoryPrediction]:
        """Top category suggestions for a transaction given as a model or mapping."""
        started = time.perf_counter()
        try:
            if not isinstance(transaction, PendingTransaction):
                if isinstance(transaction, BaseModel):
                    transaction = transaction.model_dump()
                transaction = PendingTransaction.model_validate(dict(transaction))
            predictions = self.classifier.classify_transaction(
                transaction, patterns, coerce_categories(categories)
            )
        except Exception:
            metrics.record_run(
                "classify_transaction", 0, time.perf_counter() - started,
                patterns.user_id, success=False
            )
            raise

        metrics.record_run(
            "classify_transaction", len(predictions), time.perf_counter() - started, patterns.user_id
        )
        return predictions

    def generate_trend_forecasts(
        self,
        transactions: Sequence[TransactionLike],
        indicators: Sequence[IndicatorLike],
        months: Optional[int] = None,
        generated_at: Optional[datetime] = None
    ) -> List[TrendForecast]:
        started = time.perf_counter()
        try:
            forecasts = self.forecaster.generate_trend_forecasts(
                coerce_transactions(transactions),
                coerce_indicators(indicators),
                months,
                generated_at,
            )
        except Exception:
            metrics.record_run("generate_trend_forecasts", 0, time.perf_counter() - started, success=False)
            raise

        metrics.record_run("generate_trend_forecasts", len(forecasts), time.perf_counter() - started)
        return forecasts

    def build_predictive_models(self, transactions, analyzed_at: datetime) -> PredictiveModelDescriptor:
        """Describe the per-category linear trend models the forecaster relies on."""
        fit_qualities = []
        for category_id in categories_in_order(transactions):
            fit = linear_trend(
                monthly_expense_totals(t for t in transactions if t.category_id == category_id)
            )
            if fit is not None:
                fit_qualities.append(fit.r_squared)

        return PredictiveModelDescriptor(
            spending_model="linear_trend",
            trained_categories=len(fit_qualities),
            mean_fit_quality=float(np.mean(fit_qualities)) if fit_qualities else 0.0,
            last_trained=analyzed_at,
        )

    def calculate_overall_confidence(self, seasonal_patterns: Sequence[SeasonalPattern]) -> float:
        if not seasonal_patterns:
            return 0.0
        seasonal_confidence = float(np.mean([p.confidence for p in seasonal_patterns]))
        return min(max(seasonal_confidence * self.settings.OVERALL_CONFIDENCE_FACTOR, 0.0), 1.0)
