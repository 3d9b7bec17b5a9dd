import pytest
from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

from claims_tracker.src.api.models.claim_models import Claim, ClaimStatus, PlanType
from claims_tracker.src.core.monitoring.activity_logger import InMemoryActivitySink
from claims_tracker.src.core.monitoring.app_metrics import MetricsCollector
from claims_tracker.src.core.config.settings import Settings


@pytest.fixture
def activity_sink() -> InMemoryActivitySink:
    return InMemoryActivitySink()


@pytest.fixture
def mock_metrics_collector() -> MagicMock:
    collector = MagicMock(spec=MetricsCollector)
    # time_stage/time_aggregation are used as context managers that expose duration_seconds
    timer = MagicMock()
    timer.__enter__.return_value = timer
    timer.__exit__.return_value = False
    timer.duration_seconds = 0.001
    collector.time_stage.return_value = timer
    collector.time_aggregation.return_value = timer
    return collector


@pytest.fixture
def app_settings() -> Settings:
    return Settings(_env_file=None)


@pytest.fixture
def complete_claim() -> Claim:
    """A claim that passes every commit rule and triggers no risk check."""
    return Claim(
        claim_number="CLM-TEST1",
        patient_name="Jane Doe",
        payer_name="Aetna",
        plan_type=PlanType.COMMERCIAL,
        provider_npi="1234567890",
        service_date=date(2024, 3, 1),
        procedure_codes=["99213"],
        diagnosis_codes=["E11.9"],
        billed_amount=Decimal("250.00"),
        notes="Follow-up visit.",
        status=ClaimStatus.PENDING_REVIEW,
    )
