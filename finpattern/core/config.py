from pydantic_settings import BaseSettings
from typing import Tuple
from functools import lru_cache


class Settings(BaseSettings):
    PROJECT_NAME: str = "FinPattern Engine"
    VERSION: str = "1.0.0"
    DEBUG: bool = False

    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "json"
    LOGGER_NAME: str = "finpattern"

    # Seasonality
    SEASONALITY_MIN_MONTHS: int = 12
    SEASONALITY_CYCLE_LENGTH: int = 12

    # Correlation
    CORRELATION_THRESHOLD: float = 0.3  # Keep pairs with |r| above this

    # Spending profile
    AMOUNT_RANGE_BOUNDS: Tuple[float, float, float] = (50.0, 200.0, 1000.0)
    MOST_ACTIVE_MONTHS: int = 3

    # Anomaly rules
    ANOMALY_AMOUNT_STD_THRESHOLD: float = 3.0  # Standard deviations from category mean
    ANOMALY_AMOUNT_WEIGHT: float = 30.0
    ANOMALY_PERCENTAGE_THRESHOLD: float = 100.0  # Fallback when the category has no variance
    ANOMALY_TIMING_PROBABILITY_THRESHOLD: float = 0.1
    ANOMALY_TIMING_WEIGHT: float = 20.0
    ANOMALY_TIMING_MIN_SAMPLES: int = 10
    ANOMALY_FREQUENCY_RATIO_THRESHOLD: float = 2.0  # Multiple of the normal monthly frequency
    ANOMALY_FREQUENCY_WEIGHT: float = 25.0
    ANOMALY_SEASONAL_WEIGHT: float = 15.0
    ANOMALY_MIN_HISTORY: int = 3  # Transactions per category before amount checks run

    # Classifier
    CLASSIFIER_TEXT_WEIGHT: float = 0.5
    CLASSIFIER_AMOUNT_WEIGHT: float = 0.3
    CLASSIFIER_TIMING_WEIGHT: float = 0.2
    CLASSIFIER_MIN_CONFIDENCE: float = 0.1
    CLASSIFIER_REASON_THRESHOLD: float = 0.3
    CLASSIFIER_TOP_K: int = 3

    # Forecasting
    TREND_MIN_POINTS: int = 2
    TREND_SIGNIFICANCE_SLOPE: float = 0.1
    FORECAST_CONFIDENCE_DECAY: float = 0.8
    FORECAST_DEFAULT_MONTHS: int = 3
    FORECAST_MAX_MONTHS: int = 24
    BALANCE_FORECAST_CONFIDENCE: float = 0.7

    OVERALL_CONFIDENCE_FACTOR: float = 0.8

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True
        frozen = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
