from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional

from .claim_models import Severity


class _CamelModel(BaseModel):
    # Presentation layers read the camelCase names; Python code uses snake_case.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PayerStats(_CamelModel):
    count: int = 0
    denied: int = 0
    total_billed: Decimal = Decimal("0")

    @property
    def denial_rate(self) -> float:
        return self.denied / self.count if self.count else 0.0


class ClaimStats(_CamelModel):
    total: int = 0
    by_status: Dict[str, int] = Field(default_factory=dict)
    by_denial_category: Dict[str, int] = Field(default_factory=dict)
    by_payer: Dict[str, PayerStats] = Field(default_factory=dict)
    avg_billed_amount: Decimal = Decimal("0")
    avg_risk_score: float = 0.0
    total_billed: Decimal = Decimal("0")
    total_paid: Decimal = Decimal("0")
    denial_rate: float = 0.0

    # Dashboard counters
    pending: int = 0
    submitted: int = 0
    denied: int = 0
    paid: int = 0
    high_risk_count: int = 0


class DenialReasonCount(_CamelModel):
    reason: str
    count: int
    percentage: float


class PatternType(str, Enum):
    PAYER_DENIAL_RATE = "payer_denial_rate"
    DENIAL_CATEGORY = "denial_category"
    OVERALL_DENIAL_RATE = "overall_denial_rate"
    REVENUE_LEAKAGE = "revenue_leakage"
    RECURRING_RISK_FACTOR = "recurring_risk_factor"


class Pattern(_CamelModel):
    type: PatternType
    severity: Severity
    title: str
    description: str
    recommendation: str
    data: Dict[str, Any] = Field(default_factory=dict)


class PatternReport(_CamelModel):
    patterns: List[Pattern] = Field(default_factory=list)
    stats: ClaimStats = Field(default_factory=ClaimStats)
    analyzed_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    claims_analyzed: int = 0
    summary: Optional[str] = None
