from fastapi import APIRouter, Depends, Query
from typing import List, Optional
import structlog

from ..models.analytics_models import ClaimStats, DenialReasonCount, PatternReport
from ..models.claim_models import Claim
from ..models.request_models import ClaimPopulationRequest
from ..dependencies import get_metrics_collector, get_pattern_thresholds
from ...core.config.settings import get_settings
from ...core.monitoring.app_metrics import MetricsCollector
from ...processing.analytics.claim_filters import filter_by_period
from ...processing.analytics.pattern_detector import PatternThresholds, analyze_patterns
from ...processing.analytics.stats_aggregator import aggregate_claims, denial_reason_breakdown

logger = structlog.get_logger(__name__)
router = APIRouter()


def _population(request: ClaimPopulationRequest) -> List[Claim]:
    if not request.period:
        return list(request.claims)
    claims = filter_by_period(request.claims, request.period, default=get_settings().DEFAULT_STATS_PERIOD)
    logger.debug("Claim population filtered by period", period=request.period,
                 received=len(request.claims), kept=len(claims))
    return claims


@router.post("/stats", response_model=ClaimStats, response_model_by_alias=True)
async def claim_statistics(
    request: ClaimPopulationRequest,
    metrics_collector: MetricsCollector = Depends(get_metrics_collector),
):
    claims = _population(request)
    with metrics_collector.time_aggregation():
        stats = aggregate_claims(claims)
    logger.info("Claim statistics computed", total=stats.total, denial_rate=stats.denial_rate)
    return stats


@router.post("/patterns", response_model=PatternReport, response_model_by_alias=True)
async def detect_patterns(
    request: ClaimPopulationRequest,
    metrics_collector: MetricsCollector = Depends(get_metrics_collector),
    thresholds: PatternThresholds = Depends(get_pattern_thresholds),
):
    report = analyze_patterns(_population(request), thresholds=thresholds, metrics_collector=metrics_collector)
    logger.info("Pattern analysis completed", claims_analyzed=report.claims_analyzed, patterns=len(report.patterns))
    return report


@router.post("/denial-reasons", response_model=List[DenialReasonCount], response_model_by_alias=True)
async def denial_reasons(
    request: ClaimPopulationRequest,
    limit: Optional[int] = Query(None, gt=0, description="Max reasons returned; defaults to the configured limit."),
):
    return denial_reason_breakdown(_population(request), limit=limit or get_settings().DENIAL_REASON_BREAKDOWN_LIMIT)
