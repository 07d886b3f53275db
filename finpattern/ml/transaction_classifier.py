"""
Transaction Category Classifier.

Suggests a category for a new transaction by comparing it with each
category's history: description similarity (TF-IDF cosine), how typical
the amount is, and how usual the weekday is.
"""

import datetime as dt
import logging
from calendar import day_name
from typing import Dict, List, Optional, Sequence

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.metrics.pairwise import cosine_similarity

from finpattern.core.config import Settings, settings as default_settings
from finpattern.schemas import (
    Category,
    CategoryPrediction,
    PatternAnalysis,
    PendingTransaction,
)

logger = logging.getLogger(__name__)


class TransactionClassifier:
    """Ranks candidate categories for an uncategorized transaction."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings
        self.text_weight = self.settings.CLASSIFIER_TEXT_WEIGHT
        self.amount_weight = self.settings.CLASSIFIER_AMOUNT_WEIGHT
        self.timing_weight = self.settings.CLASSIFIER_TIMING_WEIGHT

    def classify_transaction(
        self,
        transaction: PendingTransaction,
        patterns: PatternAnalysis,
        categories: Sequence[Category],
        today: Optional[dt.date] = None
    ) -> List[CategoryPrediction]:
        """
        Predict the most likely categories for a transaction.

        Args:
            transaction: The transaction to classify
            patterns: Snapshot produced by analyze_patterns
            categories: Candidate categories
            today: Date assumed when the transaction has none

        Returns:
            Up to CLASSIFIER_TOP_K predictions, highest confidence first.
        """
        candidates = [c for c in categories if self._type_compatible(c, transaction)]
        when = transaction.date or today or dt.date.today()

        text_scores = self.analyze_text_similarity(transaction.description, patterns, candidates)
        amount_scores = self.analyze_amount_patterns(transaction.amount, patterns, candidates)
        timing_scores = self.analyze_timing_patterns(when, patterns, candidates)

        predictions = []
        for category in candidates:
            text_score = text_scores.get(category.id, 0.0)
            amount_score = amount_scores.get(category.id, 0.0)
            timing_score = timing_scores.get(category.id, 0.0)

            final_score = (
                text_score * self.text_weight
                + amount_score * self.amount_weight
                + timing_score * self.timing_weight
            )

            if final_score < self.settings.CLASSIFIER_MIN_CONFIDENCE:
                continue

            predictions.append(CategoryPrediction(
                category_id=category.id,
                category_name=category.name,
                confidence=min(max(final_score, 0.0), 1.0),
                reasoning=self.generate_classification_reasoning(
                    text_score, amount_score, timing_score, when
                ),
                text_score=text_score,
                amount_score=amount_score,
                timing_score=timing_score,
            ))

        predictions.sort(key=lambda p: p.confidence, reverse=True)
        predictions = predictions[:self.settings.CLASSIFIER_TOP_K]

        logger.info(
            f"Classified transaction against {len(candidates)} categories: "
            f"{len(predictions)} predictions"
        )
        return predictions

    def analyze_text_similarity(
        self,
        description: str,
        patterns: PatternAnalysis,
        categories: Sequence[Category]
    ) -> Dict[int, float]:
        """Best cosine similarity between the description and each category's history."""
        if not description.strip():
            return {}

        owners = []
        documents = []
        for category in categories:
            profile = patterns.category_profiles.get(category.id)
            if profile is None:
                continue
            for text in profile.descriptions:
                owners.append(category.id)
                documents.append(text)

        if not documents:
            return {}

        vectorizer = TfidfVectorizer(strip_accents="unicode", lowercase=True, ngram_range=(1, 2))
        try:
            matrix = vectorizer.fit_transform(documents + [description])
        except ValueError as e:
            # Raised when no document yields a usable token
            logger.debug(f"Text similarity unavailable: {e}")
            return {}

        similarities = cosine_similarity(matrix[-1], matrix[:-1])[0]

        scores: Dict[int, float] = {}
        for category_id, similarity in zip(owners, similarities):
            similarity = min(max(float(similarity), 0.0), 1.0)
            scores[category_id] = max(scores.get(category_id, 0.0), similarity)
        return scores

    @staticmethod
    def analyze_amount_patterns(
        amount: float,
        patterns: PatternAnalysis,
        categories: Sequence[Category]
    ) -> Dict[int, float]:
        """Gaussian closeness of the amount to each category's typical amount."""
        if amount == 0:
            return {}

        value = abs(amount)
        scores = {}
        for category in categories:
            profile = patterns.category_profiles.get(category.id)
            if profile is None:
                continue
            if profile.amount_std > 0:
                scale = profile.amount_std
            else:
                scale = max(profile.amount_mean * 0.1, 1.0)
            z_score = (value - profile.amount_mean) / scale
            scores[category.id] = float(np.exp(-0.5 * z_score ** 2))
        return scores

    @staticmethod
    def analyze_timing_patterns(
        date: dt.date,
        patterns: PatternAnalysis,
        categories: Sequence[Category]
    ) -> Dict[int, float]:
        """Weekday frequency relative to the category's busiest weekday."""
        weekday = date.weekday()
        scores = {}
        for category in categories:
            profile = patterns.category_profiles.get(category.id)
            if profile is None:
                continue
            busiest = max(profile.weekday_distribution)
            if busiest <= 0:
                continue
            scores[category.id] = profile.weekday_distribution[weekday] / busiest
        return scores

    def generate_classification_reasoning(
        self,
        text_score: float,
        amount_score: float,
        timing_score: float,
        date: dt.date
    ) -> str:
        threshold = self.settings.CLASSIFIER_REASON_THRESHOLD
        factors = []
        if text_score > threshold:
            factors.append("similar description")
        if amount_score > threshold:
            factors.append("typical amount")
        if timing_score > threshold:
            factors.append(f"usual timing ({day_name[date.weekday()]})")

        if not factors:
            return "Suggested category based on weak combined signals"
        return f"Suggested category based on: {', '.join(factors)}"

    @staticmethod
    def _type_compatible(category: Category, transaction: PendingTransaction) -> bool:
        if category.type is None or transaction.type is None:
            return True
        return category.type == transaction.type
