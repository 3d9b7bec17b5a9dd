import pytest
from datetime import date
from decimal import Decimal

from claims_tracker.src.api.models.analytics_models import PatternType
from claims_tracker.src.api.models.claim_models import ClaimStatus, RiskLevel
from claims_tracker.src.core.monitoring.activity_logger import InMemoryActivitySink
from claims_tracker.src.core.monitoring.app_metrics import MetricsCollector
from claims_tracker.src.processing.analytics.pattern_detector import analyze_patterns
from claims_tracker.src.processing.analytics.stats_aggregator import aggregate_claims
from claims_tracker.src.processing.claim_lifecycle_service import ClaimLifecycleService


@pytest.fixture
def service(app_settings) -> ClaimLifecycleService:
    return ClaimLifecycleService(
        activity_sink=InMemoryActivitySink(),
        metrics_collector=MetricsCollector(),
        settings=app_settings,
    )


@pytest.fixture
def three_claims(service):
    paid = service.create_claim({
        "claim_number": "CLM-PAID",
        "patient_name": "Alice Brown",
        "payer_name": "Aetna",
        "plan_type": "Commercial",
        "provider_npi": "1234567890",
        "service_date": date(2024, 3, 1),
        "procedure_codes": ["99213"],
        "diagnosis_codes": ["J06.9"],
        "billed_amount": Decimal("500"),
    })
    paid, _ = service.change_status(paid, ClaimStatus.PAID)

    denied = service.create_claim({
        "claim_number": "CLM-DENIED",
        "patient_name": "Bob Chen",
        "payer_name": "Cigna",
        "plan_type": "Commercial",
        "provider_npi": "2234567890",
        "service_date": date(2024, 3, 2),
        "procedure_codes": ["27447"],
        "billed_amount": Decimal("12000"),
    })
    denied, _ = service.change_status(denied, ClaimStatus.DENIED, denial_category="Coding",
                                      denial_reasons=["Missing diagnosis codes"])

    appealed = service.create_claim({
        "claim_number": "CLM-APPEALED",
        "patient_name": "Carla Diaz",
        "payer_name": "State Medicaid",
        "plan_type": "Medicaid",
        "service_date": date(2024, 3, 3),
        "procedure_codes": ["99214"],
        "diagnosis_codes": ["E11.9"],
        "billed_amount": Decimal("800"),
    })
    appealed, _ = service.change_status(appealed, ClaimStatus.APPEALED)
    return paid, denied, appealed


def test_three_claim_population(three_claims):
    paid, denied, appealed = three_claims

    assert paid.risk_score == 0
    assert denied.risk_score == 40
    assert denied.risk_level == RiskLevel.MEDIUM
    assert appealed.risk_score == 20
    assert appealed.risk_level == RiskLevel.LOW

    stats = aggregate_claims([paid, denied, appealed])
    assert stats.total == 3
    assert stats.denial_rate == pytest.approx(1 / 3)
    assert stats.total_billed == Decimal("13300")
    assert stats.by_denial_category == {"Coding": 1}
    assert stats.avg_risk_score == pytest.approx(20)


def test_three_claim_patterns(three_claims):
    report = analyze_patterns(list(three_claims))
    types = [p.type for p in report.patterns]
    # one of three claims denied is above the overall benchmark
    assert PatternType.OVERALL_DENIAL_RATE in types
    # nothing has been paid on the other claims yet, so leakage dominates
    assert PatternType.REVENUE_LEAKAGE in types
    # no payer has enough claims to be judged
    assert PatternType.PAYER_DENIAL_RATE not in types
    assert report.claims_analyzed == 3


def test_activity_trail(service, three_claims):
    events = service.activity_sink.events
    assert [e.action for e in events] == [
        "created", "status_changed",
        "created", "status_changed",
        "created", "status_changed",
    ]
