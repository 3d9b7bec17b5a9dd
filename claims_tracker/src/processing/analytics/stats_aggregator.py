from collections import Counter
from decimal import Decimal
from typing import Dict, Iterable, List, Optional
import structlog

from ...api.models.analytics_models import ClaimStats, DenialReasonCount, PayerStats
from ...api.models.claim_models import Claim, ClaimStatus, RiskLevel
from ..workflow.status_machine import DENIAL_PATH_STATUSES, DENIED_STATUSES

logger = structlog.get_logger(__name__)

UNKNOWN_PAYER = "Unknown"
UNKNOWN_REASON = "Unknown"

PENDING_STATUSES = frozenset({ClaimStatus.DRAFT, ClaimStatus.PENDING_REVIEW})
SUBMITTED_STATUSES = frozenset({ClaimStatus.SUBMITTED, ClaimStatus.IN_PROCESS})


def aggregate_claims(claims: Iterable[Claim]) -> ClaimStats:
    """
    Reduces a claim population to a ClaimStats summary in a single pass, in input order.

    - denial_rate is a fraction of claims in denied/partially_denied.
    - avg_risk_score averages claims that have a computed score.
    - missing paid amounts count as zero.
    - denial categories are only counted for claims currently on the denial path.
    Empty input yields all-zero stats.
    """
    total = 0
    by_status: Dict[str, int] = {}
    by_denial_category: Dict[str, int] = {}
    by_payer: Dict[str, PayerStats] = {}
    total_billed = Decimal("0")
    total_paid = Decimal("0")
    risk_score_sum = 0
    risk_score_count = 0
    denied_count = 0
    pending = submitted = paid = high_risk = 0

    for claim in claims:
        total += 1
        status = claim.status
        by_status[status.value] = by_status.get(status.value, 0) + 1

        billed = claim.billed_amount if claim.billed_amount is not None else Decimal("0")
        total_billed += billed
        total_paid += claim.paid_amount if claim.paid_amount is not None else Decimal("0")

        payer_key = (claim.payer_name or "").strip() or UNKNOWN_PAYER
        payer = by_payer.get(payer_key)
        if payer is None:
            payer = by_payer[payer_key] = PayerStats()
        payer.count += 1
        payer.total_billed += billed

        if status in DENIED_STATUSES:
            denied_count += 1
            payer.denied += 1

        if status in DENIAL_PATH_STATUSES and claim.denial_category:
            by_denial_category[claim.denial_category] = by_denial_category.get(claim.denial_category, 0) + 1

        if claim.risk_score is not None:
            risk_score_sum += claim.risk_score
            risk_score_count += 1
        if claim.risk_level == RiskLevel.HIGH:
            high_risk += 1

        if status in PENDING_STATUSES:
            pending += 1
        elif status in SUBMITTED_STATUSES:
            submitted += 1
        elif status == ClaimStatus.PAID:
            paid += 1

    stats = ClaimStats(
        total=total,
        by_status=by_status,
        by_denial_category=by_denial_category,
        by_payer=by_payer,
        avg_billed_amount=(total_billed / total) if total else Decimal("0"),
        avg_risk_score=(risk_score_sum / risk_score_count) if risk_score_count else 0.0,
        total_billed=total_billed,
        total_paid=total_paid,
        denial_rate=(denied_count / total) if total else 0.0,
        pending=pending,
        submitted=submitted,
        denied=denied_count,
        paid=paid,
        high_risk_count=high_risk,
    )
    logger.debug("Claim population aggregated", total=total, denied=denied_count, payers=len(by_payer))
    return stats


def denial_reason_breakdown(claims: Iterable[Claim], limit: Optional[int] = 10) -> List[DenialReasonCount]:
    """
    Counts denial reasons across denied claims. Each distinct reason counts once per claim;
    a claim with no recorded reason counts once as 'Unknown'. Percentages are of denied
    claims, so none exceeds 100. Most frequent reasons first, ties in first-seen order.
    """
    counts: Counter = Counter()
    denied_claims = 0
    for claim in claims:
        if claim.status not in DENIED_STATUSES:
            continue
        denied_claims += 1
        reasons = dict.fromkeys(r.strip() for r in claim.denial_reasons if r and r.strip()) or {UNKNOWN_REASON: None}
        for reason in reasons:
            counts[reason] += 1

    ranked = sorted(counts.items(), key=lambda item: -item[1])
    if limit is not None:
        ranked = ranked[:limit]
    return [
        DenialReasonCount(
            reason=reason,
            count=count,
            percentage=(count / denied_claims) * 100 if denied_claims else 0.0,
        )
        for reason, count in ranked
    ]
