import pytest
from unittest.mock import MagicMock

from claims_tracker.src.core.monitoring.app_metrics import (
    MetricsCollector,
    CLAIMS_SCORED_TOTAL,
    CLAIM_RISK_SCORE,
    RISK_SCORING_DURATION_SECONDS,
    CLAIM_STATUS_TRANSITIONS_TOTAL,
    CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL,
    PATTERNS_DETECTED_TOTAL,
    STATS_AGGREGATION_DURATION_SECONDS,
    RISK_ENRICHMENT_TOTAL,
    CLAIMS_VALIDATION_FAILED_TOTAL,
)
import claims_tracker.src.core.monitoring.app_metrics as app_metrics_module


@pytest.fixture
def metrics_collector() -> MetricsCollector:
    return MetricsCollector()


# Patch all global metric objects for isolation in tests
@pytest.fixture(autouse=True)
def mock_global_metrics(monkeypatch):
    for name, metric in [
        ("CLAIMS_SCORED_TOTAL", CLAIMS_SCORED_TOTAL),
        ("CLAIM_RISK_SCORE", CLAIM_RISK_SCORE),
        ("RISK_SCORING_DURATION_SECONDS", RISK_SCORING_DURATION_SECONDS),
        ("CLAIM_STATUS_TRANSITIONS_TOTAL", CLAIM_STATUS_TRANSITIONS_TOTAL),
        ("CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL", CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL),
        ("PATTERNS_DETECTED_TOTAL", PATTERNS_DETECTED_TOTAL),
        ("STATS_AGGREGATION_DURATION_SECONDS", STATS_AGGREGATION_DURATION_SECONDS),
        ("RISK_ENRICHMENT_TOTAL", RISK_ENRICHMENT_TOTAL),
        ("CLAIMS_VALIDATION_FAILED_TOTAL", CLAIMS_VALIDATION_FAILED_TOTAL),
    ]:
        monkeypatch.setattr(app_metrics_module, name, MagicMock(spec=metric))


def test_record_risk_score(metrics_collector: MetricsCollector):
    metrics_collector.record_risk_score("medium", 40, 0.0002)

    app_metrics_module.CLAIMS_SCORED_TOTAL.labels.assert_called_once_with(risk_level="medium")
    app_metrics_module.CLAIMS_SCORED_TOTAL.labels.return_value.inc.assert_called_once()
    app_metrics_module.CLAIM_RISK_SCORE.observe.assert_called_once_with(40)
    app_metrics_module.RISK_SCORING_DURATION_SECONDS.observe.assert_called_once_with(0.0002)


def test_record_risk_score_without_duration(metrics_collector: MetricsCollector):
    metrics_collector.record_risk_score("low", 0)
    app_metrics_module.RISK_SCORING_DURATION_SECONDS.observe.assert_not_called()


def test_record_status_transition(metrics_collector: MetricsCollector):
    metrics_collector.record_status_transition("submitted", "denied")
    app_metrics_module.CLAIM_STATUS_TRANSITIONS_TOTAL.labels.assert_called_once_with(
        from_status="submitted", to_status="denied"
    )


def test_record_rejected_transition(metrics_collector: MetricsCollector):
    metrics_collector.record_rejected_transition("policy")
    app_metrics_module.CLAIM_STATUS_TRANSITIONS_REJECTED_TOTAL.labels.assert_called_once_with(reason="policy")


def test_record_pattern_and_enrichment(metrics_collector: MetricsCollector):
    metrics_collector.record_pattern("revenue_leakage", "high")
    metrics_collector.record_enrichment("unavailable")
    metrics_collector.record_validation_failure("import")

    app_metrics_module.PATTERNS_DETECTED_TOTAL.labels.assert_called_once_with(
        pattern_type="revenue_leakage", severity="high"
    )
    app_metrics_module.RISK_ENRICHMENT_TOTAL.labels.assert_called_once_with(outcome="unavailable")
    app_metrics_module.CLAIMS_VALIDATION_FAILED_TOTAL.labels.assert_called_once_with(operation="import")


def test_time_aggregation_observes_on_exit(metrics_collector: MetricsCollector):
    with metrics_collector.time_aggregation() as timer:
        pass
    assert timer.duration_seconds is not None
    app_metrics_module.STATS_AGGREGATION_DURATION_SECONDS.observe.assert_called_once_with(timer.duration_seconds)


def test_time_stage_only_measures(metrics_collector: MetricsCollector):
    with metrics_collector.time_stage() as timer:
        pass
    assert timer.duration_seconds >= 0
    app_metrics_module.STATS_AGGREGATION_DURATION_SECONDS.observe.assert_not_called()
