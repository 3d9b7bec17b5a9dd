import pytest
from decimal import Decimal

from claims_tracker.src.api.models.analytics_models import ClaimStats, PatternType, PayerStats
from claims_tracker.src.api.models.claim_models import Claim, ClaimStatus, RiskFactor, Severity
from claims_tracker.src.processing.analytics.pattern_detector import (
    NO_CLAIMS_SUMMARY,
    PatternDetector,
    PatternThresholds,
    analyze_patterns,
)


@pytest.fixture
def detector() -> PatternDetector:
    return PatternDetector(PatternThresholds())


def _types(patterns):
    return [p.type for p in patterns]


def test_quiet_population_has_no_findings(detector):
    stats = ClaimStats(
        total=10,
        by_payer={"Aetna": PayerStats(count=10, denied=1, total_billed=Decimal("1000"))},
        total_billed=Decimal("1000"),
        total_paid=Decimal("900"),
        denial_rate=0.1,
    )
    assert detector.detect(stats) == []


def test_payer_with_too_few_claims_is_skipped(detector):
    stats = ClaimStats(total=2, by_payer={"Cigna": PayerStats(count=2, denied=2)}, denial_rate=0.0)
    assert PatternType.PAYER_DENIAL_RATE not in _types(detector.detect(stats))


@pytest.mark.parametrize("denied, expected", [
    (1, None),               # 0.20 is not above the medium threshold
    (2, Severity.MEDIUM),    # 0.40 is not above the high threshold
    (3, Severity.HIGH),
])
def test_payer_denial_rate_thresholds_are_strict(detector, denied, expected):
    stats = ClaimStats(total=5, by_payer={"Humana": PayerStats(count=5, denied=denied)})
    found = [p for p in detector.detect(stats) if p.type == PatternType.PAYER_DENIAL_RATE]
    if expected is None:
        assert found == []
    else:
        assert found[0].severity == expected
        assert found[0].data["payer"] == "Humana"


def test_denial_category_share(detector):
    stats = ClaimStats(total=10, by_denial_category={"Coding": 3, "Eligibility": 1, "Authorization": 6})
    found = [p for p in detector.detect(stats) if p.type == PatternType.DENIAL_CATEGORY]
    assert [p.data["category"] for p in found] == ["Authorization", "Coding"]
    assert found[0].severity == Severity.HIGH
    assert found[1].severity == Severity.MEDIUM   # 30% is not above 30%
    assert found[0].recommendation == "Implement authorization checklist before submission"


@pytest.mark.parametrize("rate, expected", [
    (0.15, None), (0.20, Severity.MEDIUM), (0.25, Severity.MEDIUM), (0.30, Severity.HIGH),
])
def test_overall_denial_rate(detector, rate, expected):
    stats = ClaimStats(total=20, denial_rate=rate)
    found = [p for p in detector.detect(stats) if p.type == PatternType.OVERALL_DENIAL_RATE]
    if expected is None:
        assert found == []
    else:
        assert found[0].severity == expected
        assert "15.0%" in found[0].description


def test_revenue_leakage(detector):
    stats = ClaimStats(total=4, total_billed=Decimal("10000"), total_paid=Decimal("5000"))
    found = [p for p in detector.detect(stats) if p.type == PatternType.REVENUE_LEAKAGE]
    assert found[0].severity == Severity.HIGH
    assert found[0].data["leakage"] == 5000.0
    assert found[0].description.startswith("$5,000.00 (50.0%)")


def test_findings_ordered_by_severity(detector):
    stats = ClaimStats(
        total=10,
        by_payer={"Aetna": PayerStats(count=10, denied=3)},       # medium
        denial_rate=0.5,                                          # high
        total_billed=Decimal("100"),
        total_paid=Decimal("100"),
    )
    patterns = detector.detect(stats)
    assert [p.severity for p in patterns] == [Severity.HIGH, Severity.MEDIUM]
    assert _types(patterns) == [PatternType.OVERALL_DENIAL_RATE, PatternType.PAYER_DENIAL_RATE]


def test_recurring_risk_factor_needs_claims(detector):
    factor = RiskFactor(label="Missing provider NPI", impact=Severity.LOW, description="Provider identification is required")
    claims = [
        Claim(claim_number=f"CLM-{i}", status=ClaimStatus.PAID, payer_name="Aetna",
              billed_amount=Decimal("10"), paid_amount=Decimal("10"), risk_factors=[factor] if i < 3 else [])
        for i in range(5)
    ]
    report = analyze_patterns(claims)
    recurring = [p for p in report.patterns if p.type == PatternType.RECURRING_RISK_FACTOR]
    assert len(recurring) == 1
    assert recurring[0].severity == Severity.LOW
    assert recurring[0].data["claim_numbers"] == ["CLM-0", "CLM-1", "CLM-2"]


def test_metrics_recorded_per_pattern(mock_metrics_collector):
    detector = PatternDetector(metrics_collector=mock_metrics_collector)
    detector.detect(ClaimStats(total=10, denial_rate=0.5))
    mock_metrics_collector.record_pattern.assert_called_once_with("overall_denial_rate", "high")


def test_analyze_patterns_on_empty_population():
    report = analyze_patterns([])
    assert report.patterns == []
    assert report.claims_analyzed == 0
    assert report.summary == NO_CLAIMS_SUMMARY


def test_analyze_patterns_attaches_claim_numbers_to_payer_findings():
    claims = [
        Claim(claim_number="CLM-A", payer_name="Medicaid of Ohio", status=ClaimStatus.DENIED),
        Claim(claim_number="CLM-B", payer_name="Medicaid of Ohio", status=ClaimStatus.DENIED),
        Claim(claim_number="CLM-C", payer_name="Medicaid of Ohio", status=ClaimStatus.PAID),
    ]
    report = analyze_patterns(claims)
    payer = next(p for p in report.patterns if p.type == PatternType.PAYER_DENIAL_RATE)
    assert payer.severity == Severity.HIGH
    assert payer.data["claim_numbers"] == ["CLM-A", "CLM-B"]
    assert report.claims_analyzed == 3
    assert report.summary.startswith(f"{len(report.patterns)} pattern(s) found across 3 claims")


def test_thresholds_from_settings(app_settings):
    app_settings.PATTERN_PAYER_MIN_CLAIMS = 10
    thresholds = PatternThresholds.from_settings(app_settings)
    assert thresholds.payer_min_claims == 10
    assert thresholds.overall_denial_rate_high == 0.25
