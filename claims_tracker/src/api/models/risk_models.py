from pydantic import BaseModel, Field
from enum import Enum
from typing import List, Optional

from .claim_models import RiskFactor, RiskLevel, Severity


class RiskAssessment(BaseModel):
    """Deterministic output of the risk scoring engine."""
    score: int = Field(..., ge=0, le=100)
    level: RiskLevel
    factors: List[RiskFactor] = Field(default_factory=list)


class Recommendation(BaseModel):
    type: str
    recommendation: str
    priority: Severity
    confidence: float = Field(..., ge=0.0, le=1.0)


class EnrichmentStatus(str, Enum):
    APPLIED = "applied"
    DISABLED = "disabled"
    UNAVAILABLE = "unavailable"


class AdvisoryInsights(BaseModel):
    """Free-text additions supplied by an external advisory layer."""
    summary: Optional[str] = None
    insights: List[str] = Field(default_factory=list)
    additional_factors: List[RiskFactor] = Field(default_factory=list)
    source: Optional[str] = None


class EnrichedRiskAssessment(BaseModel):
    base: RiskAssessment
    recommendations: List[Recommendation] = Field(default_factory=list)
    advisory: Optional[AdvisoryInsights] = None
    enrichment_status: EnrichmentStatus = EnrichmentStatus.DISABLED
    notice: Optional[str] = None
