import pytest
from datetime import date
from decimal import Decimal

from claims_tracker.src.api.models.claim_models import Claim, PlanType, RiskLevel, Severity, new_claim
from claims_tracker.src.processing.risk.risk_scorer import (
    DEFAULT_RISK_CHECKS,
    MAX_RISK_SCORE,
    RiskCheck,
    RiskScorer,
    apply_risk,
    risk_factor_definitions,
    risk_level_for_score,
    score_claim,
)


@pytest.fixture
def scorer() -> RiskScorer:
    return RiskScorer()


def _clean_claim(**overrides) -> Claim:
    data = dict(
        claim_number="CLM-RISK",
        patient_name="John Smith",
        payer_name="Blue Cross",
        plan_type=PlanType.COMMERCIAL,
        provider_npi="1234567890",
        service_date=date(2024, 1, 15),
        procedure_codes=["99214"],
        diagnosis_codes=["I10"],
        billed_amount=Decimal("500.00"),
    )
    data.update(overrides)
    return Claim(**data)


def test_clean_claim_scores_zero(scorer: RiskScorer):
    assessment = scorer.score(_clean_claim())
    assert assessment.score == 0
    assert assessment.level == RiskLevel.LOW
    assert assessment.factors == []


def test_missing_codes_and_service_date_scores_high(scorer: RiskScorer):
    claim = _clean_claim(procedure_codes=[], diagnosis_codes=[], service_date=None)
    assessment = scorer.score(claim)
    assert assessment.score == 65
    assert assessment.level == RiskLevel.HIGH
    assert [f.label for f in assessment.factors] == [
        "Missing procedure codes", "Missing diagnosis codes", "Missing service date",
    ]


def test_high_billed_amount_is_strictly_greater_than_threshold(scorer: RiskScorer):
    assert scorer.score(_clean_claim(billed_amount=Decimal("10000"))).score == 0
    assessment = scorer.score(_clean_claim(billed_amount=Decimal("10000.01")))
    assert assessment.score == 15
    assert assessment.factors[0].label == "High billed amount"
    assert assessment.factors[0].impact == Severity.MEDIUM


@pytest.mark.parametrize("plan_type", [PlanType.MEDICARE, PlanType.MEDICAID])
def test_government_plan_types_add_ten(scorer: RiskScorer, plan_type):
    assessment = scorer.score(_clean_claim(plan_type=plan_type))
    assert assessment.score == 10
    assert assessment.factors[0].label == "Government payer"


@pytest.mark.parametrize("plan_type", [PlanType.COMMERCIAL, PlanType.OTHER, None])
def test_non_government_plan_types_add_nothing(scorer: RiskScorer, plan_type):
    assert scorer.score(_clean_claim(plan_type=plan_type)).score == 0


@pytest.mark.parametrize("npi", [None, "", "   "])
def test_missing_provider_npi_is_low_impact(scorer: RiskScorer, npi):
    assessment = scorer.score(_clean_claim(provider_npi=npi))
    assert assessment.score == 10
    assert assessment.factors[0].impact == Severity.LOW


def test_all_six_checks_sum_to_exactly_one_hundred(scorer: RiskScorer):
    claim = _clean_claim(
        procedure_codes=[], diagnosis_codes=[], service_date=None, provider_npi=None,
        plan_type=PlanType.MEDICARE, billed_amount=Decimal("25000"),
    )
    assessment = scorer.score(claim)
    assert assessment.score == 100
    assert assessment.level == RiskLevel.HIGH
    assert [f.label for f in assessment.factors] == [check.label for check in DEFAULT_RISK_CHECKS]


def test_score_is_clamped_when_extra_checks_exceed_maximum():
    extra = RiskCheck(
        key="always", label="Always applies", weight=30, impact=Severity.LOW,
        description="Test check", category="Test", recommendation="None", applies=lambda claim: True,
    )
    scorer = RiskScorer(checks=(*DEFAULT_RISK_CHECKS, extra))
    claim = _clean_claim(
        procedure_codes=[], diagnosis_codes=[], service_date=None, provider_npi=None,
        plan_type=PlanType.MEDICAID, billed_amount=Decimal("50000"),
    )
    assessment = scorer.score(claim)
    assert assessment.score == MAX_RISK_SCORE
    assert len(assessment.factors) == 7


def test_score_is_monotonic_as_conditions_accumulate(scorer: RiskScorer):
    steps = [
        {},
        {"procedure_codes": []},
        {"procedure_codes": [], "diagnosis_codes": []},
        {"procedure_codes": [], "diagnosis_codes": [], "billed_amount": Decimal("20000")},
        {"procedure_codes": [], "diagnosis_codes": [], "billed_amount": Decimal("20000"), "plan_type": PlanType.MEDICARE},
    ]
    scores = [scorer.score(_clean_claim(**overrides)).score for overrides in steps]
    assert scores == sorted(scores)
    assert scores[-1] == 75


def test_scoring_is_deterministic_and_does_not_mutate(scorer: RiskScorer):
    claim = _clean_claim(diagnosis_codes=[], provider_npi=None)
    before = claim.model_dump()
    first = scorer.score(claim)
    second = scorer.score(claim)
    assert first == second
    assert claim.model_dump() == before


def test_partially_populated_draft_scores_without_error():
    draft = new_claim()
    assessment = score_claim(draft)
    # no codes, no service date, no NPI
    assert assessment.score == 75
    assert assessment.level == RiskLevel.HIGH


@pytest.mark.parametrize("score, level", [
    (0, RiskLevel.LOW), (29, RiskLevel.LOW), (30, RiskLevel.MEDIUM),
    (59, RiskLevel.MEDIUM), (60, RiskLevel.HIGH), (100, RiskLevel.HIGH),
])
def test_risk_level_boundaries(score, level):
    assert risk_level_for_score(score) == level


def test_apply_risk_returns_new_claim():
    claim = _clean_claim(diagnosis_codes=[])
    scored = apply_risk(claim)
    assert scored is not claim
    assert claim.risk_score is None
    assert scored.risk_score == 25
    assert scored.risk_level == RiskLevel.LOW
    assert [f.label for f in scored.risk_factors] == ["Missing diagnosis codes"]


def test_check_for_factor_lookup(scorer: RiskScorer):
    assert scorer.check_for_factor("Government payer").key == "government_payer"
    assert scorer.check_for_factor("Unknown factor") is None


def test_risk_factor_definitions_lists_checks_in_order():
    definitions = risk_factor_definitions()
    assert [d["id"] for d in definitions] == [
        "missing_procedure_codes", "missing_diagnosis_codes", "high_billed_amount",
        "government_payer", "missing_provider_npi", "missing_service_date",
    ]
    assert sum(d["weight"] for d in definitions) == 100


def test_code_lists_are_opaque(scorer: RiskScorer):
    # any entry counts as present; clean-up is the caller's concern
    assert scorer.score(_clean_claim(procedure_codes=[" "], diagnosis_codes=[""])).score == 0
    assert scorer.score(_clean_claim(procedure_codes=[], diagnosis_codes=[])).score == 50
