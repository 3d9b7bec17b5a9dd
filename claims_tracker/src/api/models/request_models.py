from pydantic import BaseModel, Field
from typing import Any, Dict, List, Optional

from .claim_models import Claim, ClaimActivity, ClaimStatus, RiskLevel
from .risk_models import EnrichedRiskAssessment


class StatusTransitionRequest(BaseModel):
    claim: Claim
    new_status: str = Field(..., description="Target status; must be one of the claim status values.")
    user_id: Optional[str] = None
    status_reason: Optional[str] = None
    denial_codes: Optional[List[str]] = None
    denial_reasons: Optional[List[str]] = None
    denial_category: Optional[str] = None


class StatusTransitionResponse(BaseModel):
    claim: Claim
    event: Optional[ClaimActivity] = None


class RiskAssessmentRequest(BaseModel):
    claim: Claim
    use_advisor: Optional[bool] = None


class RiskAssessmentResponse(BaseModel):
    claim_number: str
    assessment: EnrichedRiskAssessment


class WorkflowResponse(BaseModel):
    status: ClaimStatus
    label: str
    color: str
    is_denial_path: bool
    is_terminal: bool
    path: List[ClaimStatus]
    allowed_targets: List[ClaimStatus]


class ValidationResponse(BaseModel):
    valid: bool
    errors: List[str] = Field(default_factory=list)


class ClaimPopulationRequest(BaseModel):
    claims: List[Claim] = Field(default_factory=list)
    period: Optional[str] = Field(None, description="Optional time window on service date: 7d, 30d, 90d or 1y.")


class RiskFactorDefinitionsResponse(BaseModel):
    factors: List[Dict[str, Any]]
    risk_levels: Dict[RiskLevel, str]
