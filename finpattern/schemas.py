"""
Data models for the pattern engine.

Input models (transactions, categories, monthly indicators) are frozen
snapshots owned by the caller. Result models are produced per run and are
never updated in place.
"""

import datetime as dt
from enum import Enum
from types import MappingProxyType
from typing import Annotated, Any, Dict, List, Mapping, Optional, Sequence, Tuple, TypeVar, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, WrapSerializer, field_validator


class TransactionType(str, Enum):
    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class AnalysisStatus(str, Enum):
    """Outcome of an analysis that may lack the data it needs."""
    OK = "ok"
    INSUFFICIENT_DATA = "insufficient_data"
    UNSUPPORTED = "unsupported"


class FactorType(str, Enum):
    """Tag returned by each anomaly detector alongside its reason."""
    AMOUNT = "amount"
    TIMING = "timing"
    FREQUENCY = "frequency"
    SEASONAL = "seasonal"


class DetectorStatus(str, Enum):
    ANOMALOUS = "anomalous"
    NOT_ANOMALOUS = "not_anomalous"
    UNSUPPORTED = "unsupported"


class AnomalyType(str, Enum):
    AMOUNT = "amount_anomaly"
    FREQUENCY = "frequency_anomaly"
    TIMING = "timing_anomaly"
    GENERAL = "general_anomaly"


class ForecastType(str, Enum):
    CATEGORY_SPENDING = "category_spending"
    BALANCE_PROJECTION = "balance_projection"


K = TypeVar("K")
V = TypeVar("V")


def _read_only(value: Dict) -> Mapping:
    return MappingProxyType(value)


def _dump_as_dict(value: Mapping, handler):
    return handler(dict(value))


# Read-only once validated; dumps as a plain dict
FrozenDict = Annotated[Dict[K, V], AfterValidator(_read_only), WrapSerializer(_dump_as_dict)]


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


class Transaction(BaseModel):
    """A historical transaction supplied by the caller."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    id: Union[int, str]
    category_id: int
    amount: float
    date: dt.date
    type: TransactionType = TransactionType.EXPENSE
    description: str = ""
    timestamp: Optional[dt.datetime] = Field(
        default=None,
        description="Optional moment of the transaction, when time-of-day is known"
    )

    @field_validator("description", mode="before")
    @classmethod
    def none_description_to_empty(cls, v):
        return "" if v is None else v

    @property
    def magnitude(self) -> float:
        """Spend magnitude; callers may store expenses with either sign."""
        return abs(self.amount)

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE


class PendingTransaction(BaseModel):
    """A new, not yet categorized transaction handed to the classifier."""
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    description: str = ""
    amount: float = 0.0
    date: Optional[dt.date] = None
    type: Optional[TransactionType] = None

    @field_validator("description", mode="before")
    @classmethod
    def none_description_to_empty(cls, v):
        return "" if v is None else v


class Category(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    type: Optional[TransactionType] = None


class MonthlyIndicator(BaseModel):
    model_config = ConfigDict(frozen=True, allow_inf_nan=False)

    month: Optional[str] = Field(default=None, description="YYYY-MM")
    confirmed_expenses: float = 0.0
    balance: float = 0.0


# ---------------------------------------------------------------------------
# Seasonality
# ---------------------------------------------------------------------------


class SeasonalityResult(BaseModel):
    """Seasonality verdict for one monthly series."""
    model_config = ConfigDict(frozen=True)

    is_seasonal: bool
    status: AnalysisStatus = AnalysisStatus.OK
    cycle_length: int = 12
    peak_months: List[int] = Field(default_factory=list)
    low_months: List[int] = Field(default_factory=list)
    amplitude: float = 0.0
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)


class SeasonalPattern(BaseModel):
    model_config = ConfigDict(frozen=True)

    category_id: int
    type: str = "monthly"
    cycle_length: int = 12
    peak_months: Tuple[int, ...] = ()
    low_months: Tuple[int, ...] = ()
    amplitude: float
    confidence: float = Field(ge=0.0, le=1.0)
    impact_score: float = Field(ge=0.0, le=100.0)


# ---------------------------------------------------------------------------
# Spending profile
# ---------------------------------------------------------------------------


class BucketStats(BaseModel):
    model_config = ConfigDict(frozen=True)

    count: int = 0
    total: float = 0.0


class TimeOfDayProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: AnalysisStatus
    by_hour: FrozenDict[int, BucketStats] = Field(default_factory=dict, validate_default=True)
    reason: Optional[str] = None


class AmountRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    min: float
    max: Optional[float] = Field(default=None, description="None means unbounded")
    count: int = 0
    total: float = 0.0

    def contains(self, value: float) -> bool:
        return value >= self.min and (self.max is None or value < self.max)


class MonthActivity(BaseModel):
    model_config = ConfigDict(frozen=True)

    month: str
    count: int


class FrequencyProfile(BaseModel):
    model_config = ConfigDict(frozen=True)

    average_transactions_per_month: float = 0.0
    frequency_variance: float = 0.0
    most_active_months: Tuple[MonthActivity, ...] = ()


class GrowthTrend(BaseModel):
    model_config = ConfigDict(frozen=True)

    trend: str = Field(description="increasing, decreasing or insufficient_data")
    slope: Optional[float] = None
    intercept: Optional[float] = None
    growth_rate: Optional[float] = Field(default=None, description="Percent per month")


class SpendingPatterns(BaseModel):
    model_config = ConfigDict(frozen=True)

    by_day_of_week: FrozenDict[int, BucketStats] = Field(default_factory=dict, validate_default=True)
    by_time_of_day: TimeOfDayProfile
    by_amount_range: FrozenDict[str, AmountRange] = Field(default_factory=dict, validate_default=True)
    by_frequency: FrequencyProfile = Field(default_factory=FrequencyProfile)
    growth_trends: GrowthTrend


class CategoryProfile(BaseModel):
    """Learned statistics for one category, reused by detectors and the classifier."""
    model_config = ConfigDict(frozen=True)

    category_id: int
    transaction_count: int
    amount_mean: float
    amount_std: float
    amount_min: float
    amount_max: float
    monthly_frequency_mean: float
    monthly_frequency_std: float
    active_months: int
    weekday_distribution: Tuple[float, ...] = (0.0,) * 7
    descriptions: Tuple[str, ...] = ()


class PredictiveModelDescriptor(BaseModel):
    model_config = ConfigDict(frozen=True)

    spending_model: str = "linear_trend"
    trained_categories: int = 0
    mean_fit_quality: float = Field(default=0.0, ge=0.0, le=1.0)
    last_trained: dt.datetime


class PatternAnalysis(BaseModel):
    """
    Snapshot of everything learned in one analysis run.

    Frozen all the way down: nested models are frozen, mappings are
    read-only proxies and sequences are tuples.
    """
    model_config = ConfigDict(frozen=True)

    seasonal_patterns: Tuple[SeasonalPattern, ...] = ()
    spending_patterns: SpendingPatterns
    category_correlations: FrozenDict[str, float] = Field(default_factory=dict, validate_default=True)
    category_profiles: FrozenDict[int, CategoryProfile] = Field(default_factory=dict, validate_default=True)
    predictive_models: PredictiveModelDescriptor
    confidence_score: float = Field(ge=0.0, le=1.0)
    analyzed_at: dt.datetime
    user_id: Optional[str] = None

    def seasonal_pattern_for(self, category_id: int) -> Optional[SeasonalPattern]:
        for pattern in self.seasonal_patterns:
            if pattern.category_id == category_id:
                return pattern
        return None


# ---------------------------------------------------------------------------
# Anomalies, predictions, forecasts
# ---------------------------------------------------------------------------


class DetectorResult(BaseModel):
    model_config = ConfigDict(frozen=True)

    factor: FactorType
    status: DetectorStatus
    reason: str = ""
    severity: float = Field(default=0.0, ge=0.0, le=1.0)

    @classmethod
    def anomalous(cls, factor: FactorType, reason: str, severity: float) -> "DetectorResult":
        return cls(
            factor=factor,
            status=DetectorStatus.ANOMALOUS,
            reason=reason,
            severity=min(max(severity, 0.0), 1.0),
        )

    @classmethod
    def not_anomalous(cls, factor: FactorType) -> "DetectorResult":
        return cls(factor=factor, status=DetectorStatus.NOT_ANOMALOUS)

    @classmethod
    def unsupported(cls, factor: FactorType, reason: str) -> "DetectorResult":
        return cls(factor=factor, status=DetectorStatus.UNSUPPORTED, reason=reason)

    @property
    def is_anomalous(self) -> bool:
        return self.status == DetectorStatus.ANOMALOUS


class SpendingAnomaly(BaseModel):
    transaction_id: Union[int, str]
    anomaly_type: AnomalyType
    severity_score: float = Field(ge=0.0, le=100.0)
    confidence: float = Field(ge=0.0, le=1.0)
    factors: List[str] = Field(default_factory=list)
    factor_types: List[FactorType] = Field(default_factory=list)
    unsupported_checks: List[FactorType] = Field(default_factory=list)
    description: str
    suggested_actions: List[str] = Field(default_factory=list)
    detected_at: dt.datetime


class CategoryPrediction(BaseModel):
    category_id: int
    category_name: str
    confidence: float = Field(ge=0.0, le=1.0)
    reasoning: str
    text_score: float = 0.0
    amount_score: float = 0.0
    timing_score: float = 0.0


class TrendForecast(BaseModel):
    category_id: int = Field(description="0 is the overall balance forecast")
    forecast_type: ForecastType
    time_horizon: int
    predicted_values: List[float] = Field(default_factory=list)
    trend_direction: TrendDirection
    confidence: float = Field(ge=0.0, le=1.0)
    seasonal_adjustments: List[float] = Field(default_factory=list)
    assumptions: List[str] = Field(default_factory=list)
    generated_at: dt.datetime



# ---------------------------------------------------------------------------
# Coercion helpers
# ---------------------------------------------------------------------------


TransactionLike = Union[Transaction, Mapping[str, Any]]
CategoryLike = Union[Category, Mapping[str, Any]]
IndicatorLike = Union[MonthlyIndicator, Mapping[str, Any]]


def coerce_transactions(items: Optional[Sequence[TransactionLike]]) -> List[Transaction]:
    return [t if isinstance(t, Transaction) else Transaction.model_validate(t) for t in items or []]


def coerce_categories(items: Optional[Sequence[CategoryLike]]) -> List[Category]:
    return [c if isinstance(c, Category) else Category.model_validate(c) for c in items or []]


def coerce_indicators(items: Optional[Sequence[IndicatorLike]]) -> List[MonthlyIndicator]:
    return [
        i if isinstance(i, MonthlyIndicator) else MonthlyIndicator.model_validate(i)
        for i in items or []
    ]
