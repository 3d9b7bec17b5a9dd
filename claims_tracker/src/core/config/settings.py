from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from functools import lru_cache


class Settings(BaseSettings):
    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = Field(False, description="Render logs as JSON lines instead of the console renderer.")

    # Advisory (external AI) enrichment of risk results. Strictly additive.
    AI_ENRICHMENT_ENABLED: bool = Field(
        False,
        description="When false, risk assessments are returned without calling any advisory layer."
    )

    # Analytics
    DEFAULT_STATS_PERIOD: str = Field("30d", description="Default time window for statistics: 7d, 30d, 90d or 1y.")
    DENIAL_REASON_BREAKDOWN_LIMIT: int = Field(10, gt=0, description="Max denial reasons reported in a breakdown.")

    # Pattern detection thresholds (rates are fractions, not percentages)
    PATTERN_PAYER_MIN_CLAIMS: int = Field(3, ge=1, description="Minimum claims for a payer before its denial rate is judged.")
    PATTERN_PAYER_DENIAL_RATE_MEDIUM: float = Field(0.20, ge=0.0, le=1.0)
    PATTERN_PAYER_DENIAL_RATE_HIGH: float = Field(0.40, ge=0.0, le=1.0)
    PATTERN_CATEGORY_MIN_COUNT: int = Field(2, ge=1, description="Minimum denials in a category before it is reported.")
    PATTERN_CATEGORY_SHARE_HIGH: float = Field(0.30, ge=0.0, le=1.0)
    PATTERN_OVERALL_DENIAL_RATE_MEDIUM: float = Field(0.15, ge=0.0, le=1.0)
    PATTERN_OVERALL_DENIAL_RATE_HIGH: float = Field(0.25, ge=0.0, le=1.0)
    PATTERN_DENIAL_RATE_BENCHMARK: float = Field(0.15, ge=0.0, le=1.0, description="Industry benchmark quoted in findings.")
    PATTERN_REVENUE_LEAKAGE_MEDIUM: float = Field(0.20, ge=0.0, le=1.0)
    PATTERN_REVENUE_LEAKAGE_HIGH: float = Field(0.40, ge=0.0, le=1.0)
    PATTERN_RISK_FACTOR_MIN_CLAIMS: int = Field(3, ge=1)
    PATTERN_RISK_FACTOR_MIN_SHARE: float = Field(0.25, ge=0.0, le=1.0)

    model_config = SettingsConfigDict(env_file=".env", extra="ignore", env_file_encoding='utf-8')


@lru_cache()
def get_settings():
    return Settings()
