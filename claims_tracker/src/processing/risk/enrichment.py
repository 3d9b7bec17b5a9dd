from typing import List, Optional, Protocol
import structlog

from ...api.models.claim_models import Claim
from ...api.models.risk_models import (
    AdvisoryInsights,
    EnrichedRiskAssessment,
    EnrichmentStatus,
    Recommendation,
    RiskAssessment,
)
from ...core.exceptions import ErrorKind
from ...core.monitoring.app_metrics import MetricsCollector

logger = structlog.get_logger(__name__)

UNAVAILABLE_NOTICE = "AI insights are temporarily unavailable. Showing rule-based risk analysis only."


class RiskAdvisor(Protocol):
    """External advisory layer (e.g. a hosted language model) that comments on a scored claim."""

    def get_insights(self, claim: Claim, assessment: RiskAssessment) -> AdvisoryInsights:
        ...


def enrich_assessment(
    claim: Claim,
    assessment: RiskAssessment,
    advisor: Optional[RiskAdvisor] = None,
    enabled: bool = True,
    recommendations: Optional[List[Recommendation]] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> EnrichedRiskAssessment:
    """
    Wraps a base assessment with advisory output. The base result is copied, never altered,
    and an advisor failure only downgrades the result to 'unavailable' with a notice.
    """
    base = assessment.model_copy(deep=True)
    recs = list(recommendations or [])

    if not enabled or advisor is None:
        _record(metrics_collector, EnrichmentStatus.DISABLED)
        return EnrichedRiskAssessment(base=base, recommendations=recs, enrichment_status=EnrichmentStatus.DISABLED)

    try:
        insights = advisor.get_insights(claim, base.model_copy(deep=True))
    except Exception as e:
        logger.warning("Risk advisory enrichment failed; returning rule-based result.",
                       claim_number=claim.claim_number, error=str(e),
                       kind=ErrorKind.ENRICHMENT_UNAVAILABLE.value, exc_info=True)
        _record(metrics_collector, EnrichmentStatus.UNAVAILABLE)
        return EnrichedRiskAssessment(
            base=base,
            recommendations=recs,
            enrichment_status=EnrichmentStatus.UNAVAILABLE,
            notice=UNAVAILABLE_NOTICE,
        )

    if not isinstance(insights, AdvisoryInsights):
        logger.warning("Risk advisor returned an unexpected payload; ignoring it.",
                       claim_number=claim.claim_number, payload_type=type(insights).__name__)
        _record(metrics_collector, EnrichmentStatus.UNAVAILABLE)
        return EnrichedRiskAssessment(
            base=base,
            recommendations=recs,
            enrichment_status=EnrichmentStatus.UNAVAILABLE,
            notice=UNAVAILABLE_NOTICE,
        )

    _record(metrics_collector, EnrichmentStatus.APPLIED)
    logger.info("Risk assessment enriched", claim_number=claim.claim_number,
                insight_count=len(insights.insights), source=insights.source)
    return EnrichedRiskAssessment(
        base=base,
        recommendations=recs,
        advisory=insights,
        enrichment_status=EnrichmentStatus.APPLIED,
    )


def _record(metrics_collector: Optional[MetricsCollector], status: EnrichmentStatus):
    if metrics_collector:
        metrics_collector.record_enrichment(status.value)
