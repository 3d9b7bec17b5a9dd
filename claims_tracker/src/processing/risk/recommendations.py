from typing import List, Optional
import structlog

from ...api.models.claim_models import Claim, ClaimStatus, Severity
from ...api.models.risk_models import Recommendation, RiskAssessment
from .risk_scorer import RiskScorer

logger = structlog.get_logger(__name__)

FACTOR_RECOMMENDATION_CONFIDENCE = 0.85
DRAFT_WORKFLOW_CONFIDENCE = 0.9
MISSING_NOTES_CONFIDENCE = 0.7


def generate_recommendations(
    claim: Claim,
    assessment: RiskAssessment,
    scorer: Optional[RiskScorer] = None,
) -> List[Recommendation]:
    """
    Turns a risk assessment into next steps: one per risk factor (in factor order), then
    workflow and documentation reminders based on the claim's own state.
    """
    scorer = scorer or RiskScorer()
    recommendations: List[Recommendation] = []

    for factor in assessment.factors:
        check = scorer.check_for_factor(factor.label)
        if check is None:
            continue
        recommendations.append(Recommendation(
            type=check.category,
            recommendation=check.recommendation,
            priority=factor.impact,
            confidence=FACTOR_RECOMMENDATION_CONFIDENCE,
        ))

    if claim.status == ClaimStatus.DRAFT:
        recommendations.append(Recommendation(
            type="Workflow",
            recommendation="Complete all required fields before submitting",
            priority=Severity.MEDIUM,
            confidence=DRAFT_WORKFLOW_CONFIDENCE,
        ))

    if not (claim.notes or "").strip():
        recommendations.append(Recommendation(
            type="Documentation",
            recommendation="Add clinical notes to support medical necessity",
            priority=Severity.LOW,
            confidence=MISSING_NOTES_CONFIDENCE,
        ))

    logger.debug("Recommendations generated", claim_number=claim.claim_number, count=len(recommendations))
    return recommendations
