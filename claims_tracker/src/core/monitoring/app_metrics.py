from prometheus_client import Counter, Histogram
import time
import structlog
from typing import Optional

logger = structlog.get_logger(__name__)

# --- Prometheus Metric Definitions ---
# Defined globally so they are registered with the default REGISTRY

CLAIMS_SCORED_TOTAL = Counter(
    'claims_scored_total',
    'Total risk scoring runs, labeled by resulting risk level.',
    ['risk_level']  # low, medium, high
)

CLAIM_RISK_SCORE = Histogram(
    'claim_risk_score',
    'Distribution of computed denial risk scores (0-100).',
    buckets=tuple(float(x) for x in range(0, 101, 10))
)

RISK_SCORING_DURATION_SECONDS = Histogram(
    'risk_scoring_duration_seconds',
    'Time spent scoring a single claim, in seconds.',
    buckets=(0.00001, 0.00005, 0.0001, 0.0005, 0.001, 0.005, 0.01, float('inf'))
)

CLAIM_STATUS_TRANSITIONS_TOTAL = Counter(
    'claim_status_transitions_total',
    'Claim status changes, labeled by previous and new status.',
    ['from_status', 'to_status']
)

CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL = Counter(
    'claim_status_transitions_rejected_total',
    'Status change requests refused by the transition policy or enum validation.',
    ['reason']
)

PATTERNS_DETECTED_TOTAL = Counter(
    'patterns_detected_total',
    'Pattern findings emitted, labeled by type and severity.',
    ['pattern_type', 'severity']
)

STATS_AGGREGATION_DURATION_SECONDS = Histogram(
    'stats_aggregation_duration_seconds',
    'Time spent aggregating a claim population, in seconds.',
    buckets=(0.0001, 0.001, 0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, float('inf'))
)

RISK_ENRICHMENT_TOTAL = Counter(
    'risk_enrichment_total',
    'Advisory enrichment attempts, labeled by outcome.',
    ['outcome']  # applied, disabled, unavailable
)

CLAIMS_VALIDATION_FAILED_TOTAL = Counter(
    'claims_validation_failed_total',
    'Claims rejected at the commit boundary, labeled by operation.',
    ['operation']  # create, import, update
)


class MetricsCollector:
    """
    Collects and exposes application metrics using Prometheus client.
    """

    def __init__(self):
        logger.info("MetricsCollector initialized (stateless, uses global metrics).")

    def record_risk_score(self, risk_level: str, score: int, duration_seconds: Optional[float] = None):
        CLAIMS_SCORED_TOTAL.labels(risk_level=risk_level).inc()
        CLAIM_RISK_SCORE.observe(score)
        if duration_seconds is not None:
            RISK_SCORING_DURATION_SECONDS.observe(duration_seconds)

    def record_status_transition(self, from_status: str, to_status: str):
        CLAIM_STATUS_TRANSITIONS_TOTAL.labels(from_status=from_status, to_status=to_status).inc()

    def record_rejected_transition(self, reason: str):
        CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL.labels(reason=reason).inc()

    def record_pattern(self, pattern_type: str, severity: str):
        PATTERNS_DETECTED_TOTAL.labels(pattern_type=pattern_type, severity=severity).inc()

    def record_aggregation_duration(self, duration_seconds: float):
        STATS_AGGREGATION_DURATION_SECONDS.observe(duration_seconds)

    def record_enrichment(self, outcome: str):
        RISK_ENRICHMENT_TOTAL.labels(outcome=outcome).inc()

    def record_validation_failure(self, operation: str):
        CLAIMS_VALIDATION_FAILED_TOTAL.labels(operation=operation).inc()

    class _StageTimer:
        def __init__(self, observe):
            self.observe = observe
            self.start_time: Optional[float] = None
            self.duration_seconds: Optional[float] = None

        def __enter__(self):
            self.start_time = time.perf_counter()
            return self

        def __exit__(self, exc_type, exc_val, exc_tb):
            if self.start_time is not None:
                self.duration_seconds = time.perf_counter() - self.start_time
                if self.observe is not None:
                    self.observe(self.duration_seconds)

    def time_aggregation(self) -> _StageTimer:
        """Returns a context manager that records the aggregation duration on exit."""
        return self._StageTimer(self.record_aggregation_duration)

    def time_stage(self) -> _StageTimer:
        """Returns a context manager that only measures; the caller reads duration_seconds."""
        return self._StageTimer(None)
