from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Sequence
import structlog

from ...api.models.claim_models import (
    Claim,
    PlanType,
    RiskFactor,
    Severity,
    risk_level_for_score,
    HIGH_RISK_THRESHOLD,
    MEDIUM_RISK_THRESHOLD,
)
from ...api.models.risk_models import RiskAssessment

logger = structlog.get_logger(__name__)

MAX_RISK_SCORE = 100
HIGH_BILLED_AMOUNT_THRESHOLD = Decimal("10000")
GOVERNMENT_PLAN_TYPES = frozenset({PlanType.MEDICARE, PlanType.MEDICAID})

__all__ = [
    "RiskCheck",
    "RiskScorer",
    "DEFAULT_RISK_CHECKS",
    "MAX_RISK_SCORE",
    "HIGH_RISK_THRESHOLD",
    "MEDIUM_RISK_THRESHOLD",
    "score_claim",
    "apply_risk",
    "risk_level_for_score",
    "risk_factor_definitions",
]


@dataclass(frozen=True)
class RiskCheck:
    key: str
    label: str
    weight: int
    impact: Severity
    description: str
    category: str
    recommendation: str
    applies: Callable[[Claim], bool]

    def to_factor(self) -> RiskFactor:
        return RiskFactor(label=self.label, impact=self.impact, description=self.description)


def _has_codes(codes: Optional[Sequence[str]]) -> bool:
    # Codes are opaque; any entry counts
    return bool(codes)


def _missing_procedure_codes(claim: Claim) -> bool:
    return not _has_codes(claim.procedure_codes)


def _missing_diagnosis_codes(claim: Claim) -> bool:
    return not _has_codes(claim.diagnosis_codes)


def _high_billed_amount(claim: Claim) -> bool:
    return claim.billed_amount is not None and claim.billed_amount > HIGH_BILLED_AMOUNT_THRESHOLD


def _government_payer(claim: Claim) -> bool:
    return claim.plan_type in GOVERNMENT_PLAN_TYPES


def _missing_provider_npi(claim: Claim) -> bool:
    return not (claim.provider_npi or "").strip()


def _missing_service_date(claim: Claim) -> bool:
    return claim.service_date is None


# Evaluation order, weights and wording are persisted with scores and shown to users.
DEFAULT_RISK_CHECKS: tuple = (
    RiskCheck(
        key="missing_procedure_codes",
        label="Missing procedure codes",
        weight=25,
        impact=Severity.HIGH,
        description="Claims without CPT codes are frequently denied",
        category="Coding",
        recommendation="Include all applicable CPT/HCPCS codes",
        applies=_missing_procedure_codes,
    ),
    RiskCheck(
        key="missing_diagnosis_codes",
        label="Missing diagnosis codes",
        weight=25,
        impact=Severity.HIGH,
        description="ICD-10 codes are required for medical necessity",
        category="Coding",
        recommendation="Ensure all diagnosis codes are present and valid ICD-10 format",
        applies=_missing_diagnosis_codes,
    ),
    RiskCheck(
        key="high_billed_amount",
        label="High billed amount",
        weight=15,
        impact=Severity.MEDIUM,
        description="Claims over $10,000 receive additional scrutiny",
        category="Billing",
        recommendation="Ensure itemized charges are documented and justified",
        applies=_high_billed_amount,
    ),
    RiskCheck(
        key="government_payer",
        label="Government payer",
        weight=10,
        impact=Severity.MEDIUM,
        description="Medicare/Medicaid have stricter documentation requirements",
        category="Payer",
        recommendation="Follow Medicare LCD/NCD and state Medicaid documentation guidelines",
        applies=_government_payer,
    ),
    RiskCheck(
        key="missing_provider_npi",
        label="Missing provider NPI",
        weight=10,
        impact=Severity.LOW,
        description="Provider identification is required for most claims",
        category="Documentation",
        recommendation="Include complete provider NPI and credentials",
        applies=_missing_provider_npi,
    ),
    RiskCheck(
        key="missing_service_date",
        label="Missing service date",
        weight=15,
        impact=Severity.MEDIUM,
        description="Service date is required for claim processing",
        category="Documentation",
        recommendation="Record the date of service before submission",
        applies=_missing_service_date,
    ),
)


class RiskScorer:
    """
    Rule-based denial risk scoring. Each check that applies adds its weight and one factor;
    factors keep check order. The total is capped at MAX_RISK_SCORE.
    """

    def __init__(self, checks: Optional[Sequence[RiskCheck]] = None):
        self.checks: tuple = tuple(checks) if checks is not None else DEFAULT_RISK_CHECKS

    def triggered_checks(self, claim: Claim) -> List[RiskCheck]:
        return [check for check in self.checks if check.applies(claim)]

    def score(self, claim: Claim) -> RiskAssessment:
        triggered = self.triggered_checks(claim)
        raw_score = sum(check.weight for check in triggered)
        score = max(0, min(raw_score, MAX_RISK_SCORE))
        assessment = RiskAssessment(
            score=score,
            level=risk_level_for_score(score),
            factors=[check.to_factor() for check in triggered],
        )
        logger.debug("Claim risk scored", claim_number=claim.claim_number, score=score,
                     raw_score=raw_score, level=assessment.level.value,
                     triggered=[check.key for check in triggered])
        return assessment

    def check_for_factor(self, label: str) -> Optional[RiskCheck]:
        for check in self.checks:
            if check.label == label:
                return check
        return None


_default_scorer = RiskScorer()


def score_claim(claim: Claim) -> RiskAssessment:
    return _default_scorer.score(claim)


def apply_risk(claim: Claim, assessment: Optional[RiskAssessment] = None) -> Claim:
    """Returns a copy of the claim with risk_score, risk_level and risk_factors replaced."""
    if assessment is None:
        assessment = score_claim(claim)
    return claim.model_copy(
        update={
            "risk_score": assessment.score,
            "risk_level": assessment.level,
            "risk_factors": [factor.model_copy() for factor in assessment.factors],
            "updated_at": datetime.now(timezone.utc),
        },
        deep=True,
    )


def risk_factor_definitions(checks: Optional[Sequence[RiskCheck]] = None) -> List[Dict[str, object]]:
    return [
        {
            "id": check.key,
            "factor": check.label,
            "category": check.category,
            "impact": check.impact.value,
            "weight": check.weight,
            "description": check.description,
            "recommendation": check.recommendation,
        }
        for check in (checks if checks is not None else DEFAULT_RISK_CHECKS)
    ]
