from collections import OrderedDict
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence
import structlog
from pydantic import BaseModel, Field

from ...api.models.analytics_models import ClaimStats, Pattern, PatternReport, PatternType
from ...api.models.claim_models import Claim, Severity
from ...core.config.settings import Settings, get_settings
from ...core.monitoring.app_metrics import MetricsCollector
from ..workflow.status_machine import DENIAL_PATH_STATUSES, DENIED_STATUSES
from .stats_aggregator import UNKNOWN_PAYER, aggregate_claims

logger = structlog.get_logger(__name__)

SEVERITY_RANK: Dict[Severity, int] = {Severity.HIGH: 0, Severity.MEDIUM: 1, Severity.LOW: 2}
NO_CLAIMS_SUMMARY = "No claims to analyze"


class PatternThresholds(BaseModel):
    """Tunable detection policy. All rates and shares are fractions; comparisons are strict."""
    payer_min_claims: int = Field(3, ge=1)
    payer_denial_rate_medium: float = 0.20
    payer_denial_rate_high: float = 0.40
    category_min_count: int = Field(2, ge=1)
    category_share_high: float = 0.30
    overall_denial_rate_medium: float = 0.15
    overall_denial_rate_high: float = 0.25
    denial_rate_benchmark: float = 0.15
    revenue_leakage_medium: float = 0.20
    revenue_leakage_high: float = 0.40
    risk_factor_min_claims: int = Field(3, ge=1)
    risk_factor_min_share: float = 0.25

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "PatternThresholds":
        s = settings or get_settings()
        return cls(
            payer_min_claims=s.PATTERN_PAYER_MIN_CLAIMS,
            payer_denial_rate_medium=s.PATTERN_PAYER_DENIAL_RATE_MEDIUM,
            payer_denial_rate_high=s.PATTERN_PAYER_DENIAL_RATE_HIGH,
            category_min_count=s.PATTERN_CATEGORY_MIN_COUNT,
            category_share_high=s.PATTERN_CATEGORY_SHARE_HIGH,
            overall_denial_rate_medium=s.PATTERN_OVERALL_DENIAL_RATE_MEDIUM,
            overall_denial_rate_high=s.PATTERN_OVERALL_DENIAL_RATE_HIGH,
            denial_rate_benchmark=s.PATTERN_DENIAL_RATE_BENCHMARK,
            revenue_leakage_medium=s.PATTERN_REVENUE_LEAKAGE_MEDIUM,
            revenue_leakage_high=s.PATTERN_REVENUE_LEAKAGE_HIGH,
            risk_factor_min_claims=s.PATTERN_RISK_FACTOR_MIN_CLAIMS,
            risk_factor_min_share=s.PATTERN_RISK_FACTOR_MIN_SHARE,
        )


def _pct(fraction: float) -> str:
    return f"{fraction * 100:.1f}%"


class PatternDetector:
    def __init__(self, thresholds: Optional[PatternThresholds] = None, metrics_collector: Optional[MetricsCollector] = None):
        self.thresholds = thresholds or PatternThresholds()
        self.metrics_collector = metrics_collector

    def detect(self, stats: ClaimStats, claims: Optional[Sequence[Claim]] = None) -> List[Pattern]:
        """
        Scans aggregated stats for findings. The result is ordered by severity (high first);
        findings of equal severity keep their evaluation order: payers, denial categories,
        overall denial rate, revenue leakage, recurring risk factors (the latter only when
        the underlying claims are supplied).
        """
        patterns: List[Pattern] = []
        patterns.extend(self._payer_denial_rates(stats, claims))
        patterns.extend(self._denial_categories(stats, claims))
        overall = self._overall_denial_rate(stats)
        if overall:
            patterns.append(overall)
        leakage = self._revenue_leakage(stats)
        if leakage:
            patterns.append(leakage)
        if claims:
            patterns.extend(self._recurring_risk_factors(claims))

        ordered = sorted(patterns, key=lambda p: SEVERITY_RANK[p.severity])
        if self.metrics_collector:
            for p in ordered:
                self.metrics_collector.record_pattern(p.type.value, p.severity.value)
        logger.debug("Pattern detection finished", total_claims=stats.total, patterns=len(ordered))
        return ordered

    def _payer_denial_rates(self, stats: ClaimStats, claims: Optional[Sequence[Claim]]) -> List[Pattern]:
        t = self.thresholds
        found = []
        for payer, data in stats.by_payer.items():
            if data.count < t.payer_min_claims:
                continue
            rate = data.denial_rate
            if rate <= t.payer_denial_rate_medium:
                continue
            severity = Severity.HIGH if rate > t.payer_denial_rate_high else Severity.MEDIUM
            payload = {"payer": payer, "denialRate": rate, "totalClaims": data.count, "deniedClaims": data.denied}
            if claims is not None:
                payload["claim_numbers"] = [
                    c.claim_number for c in claims
                    if ((c.payer_name or "").strip() or UNKNOWN_PAYER) == payer and c.status in DENIED_STATUSES
                ]
            found.append(Pattern(
                type=PatternType.PAYER_DENIAL_RATE,
                severity=severity,
                title=f"High denial rate with {payer}",
                description=f"{_pct(rate)} of claims with {payer} are denied",
                recommendation=f"Review {payer} submission requirements and consider additional documentation",
                data=payload,
            ))
        return found

    def _denial_categories(self, stats: ClaimStats, claims: Optional[Sequence[Claim]]) -> List[Pattern]:
        t = self.thresholds
        categorised = sum(stats.by_denial_category.values())
        found = []
        for category, count in stats.by_denial_category.items():
            if count < t.category_min_count:
                continue
            share = count / categorised
            severity = Severity.HIGH if share > t.category_share_high else Severity.MEDIUM
            payload = {"category": category, "count": count, "percentage": share * 100}
            if claims is not None:
                payload["claim_numbers"] = [
                    c.claim_number for c in claims
                    if c.denial_category == category and c.status in DENIAL_PATH_STATUSES
                ]
            found.append(Pattern(
                type=PatternType.DENIAL_CATEGORY,
                severity=severity,
                title=f"Frequent {category} denials",
                description=f"{_pct(share)} of denials are due to {category}",
                recommendation=f"Implement {category.lower()} checklist before submission",
                data=payload,
            ))
        return found

    def _overall_denial_rate(self, stats: ClaimStats) -> Optional[Pattern]:
        t = self.thresholds
        if stats.total == 0 or stats.denial_rate <= t.overall_denial_rate_medium:
            return None
        severity = Severity.HIGH if stats.denial_rate > t.overall_denial_rate_high else Severity.MEDIUM
        return Pattern(
            type=PatternType.OVERALL_DENIAL_RATE,
            severity=severity,
            title="Elevated overall denial rate",
            description=(f"Current denial rate of {_pct(stats.denial_rate)} exceeds "
                         f"industry benchmark of {_pct(t.denial_rate_benchmark)}"),
            recommendation="Review claim submission process and implement pre-submission validation",
            data={"denialRate": stats.denial_rate, "benchmark": t.denial_rate_benchmark},
        )

    def _revenue_leakage(self, stats: ClaimStats) -> Optional[Pattern]:
        t = self.thresholds
        leakage = stats.total_billed - stats.total_paid
        if stats.total_billed <= 0 or leakage <= 0:
            return None
        share = float(leakage / stats.total_billed)
        if share <= t.revenue_leakage_medium:
            return None
        severity = Severity.HIGH if share > t.revenue_leakage_high else Severity.MEDIUM
        return Pattern(
            type=PatternType.REVENUE_LEAKAGE,
            severity=severity,
            title="Significant revenue leakage detected",
            description=f"${leakage:,.2f} ({_pct(share)}) of billed amount not collected",
            recommendation="Prioritize follow-up on unpaid and underpaid claims",
            data={
                "totalBilled": float(stats.total_billed),
                "totalPaid": float(stats.total_paid),
                "leakage": float(leakage),
                "leakageShare": share,
            },
        )

    def _recurring_risk_factors(self, claims: Sequence[Claim]) -> List[Pattern]:
        t = self.thresholds
        occurrences: "OrderedDict[str, dict]" = OrderedDict()
        for claim in claims:
            for factor in {f.label: f for f in claim.risk_factors}.values():
                entry = occurrences.setdefault(factor.label, {"impact": factor.impact, "claims": []})
                entry["claims"].append(claim.claim_number)

        found = []
        for label, entry in occurrences.items():
            count = len(entry["claims"])
            share = count / len(claims)
            if count < t.risk_factor_min_claims or share <= t.risk_factor_min_share:
                continue
            found.append(Pattern(
                type=PatternType.RECURRING_RISK_FACTOR,
                severity=entry["impact"],
                title=f"Recurring risk factor: {label}",
                description=f"{_pct(share)} of claims ({count}) are flagged for '{label.lower()}'",
                recommendation=f"Address '{label.lower()}' upstream before claims are submitted",
                data={"factor": label, "count": count, "share": share, "claim_numbers": entry["claims"]},
            ))
        return found


def analyze_patterns(
    claims: Sequence[Claim],
    thresholds: Optional[PatternThresholds] = None,
    metrics_collector: Optional[MetricsCollector] = None,
) -> PatternReport:
    """Aggregates a claim population and scans it for patterns in one call."""
    claims = list(claims)
    if not claims:
        return PatternReport(summary=NO_CLAIMS_SUMMARY, claims_analyzed=0)

    if metrics_collector:
        with metrics_collector.time_aggregation():
            stats = aggregate_claims(claims)
    else:
        stats = aggregate_claims(claims)
    patterns = PatternDetector(thresholds, metrics_collector).detect(stats, claims)
    high = sum(1 for p in patterns if p.severity == Severity.HIGH)
    summary = f"{len(patterns)} pattern(s) found across {stats.total} claims ({high} high severity)"
    return PatternReport(
        patterns=patterns,
        stats=stats,
        analyzed_at=datetime.now(timezone.utc),
        claims_analyzed=len(claims),
        summary=summary,
    )
