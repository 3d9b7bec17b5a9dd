from pydantic import BaseModel, Field, AliasChoices, ValidationError, condecimal, field_validator, model_validator
from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Optional
import time

from ...core.exceptions import ClaimValidationError, ErrorKind


class ClaimStatus(str, Enum):
    DRAFT = "draft"
    PENDING_REVIEW = "pending_review"
    SUBMITTED = "submitted"
    IN_PROCESS = "in_process"
    DENIED = "denied"
    PARTIALLY_DENIED = "partially_denied"
    PAID = "paid"
    APPEALED = "appealed"
    APPEAL_WON = "appeal_won"
    APPEAL_LOST = "appeal_lost"
    CLOSED = "closed"


class Priority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class PlanType(str, Enum):
    COMMERCIAL = "Commercial"
    MEDICARE = "Medicare"
    MEDICAID = "Medicaid"
    OTHER = "Other"


class ClaimSource(str, Enum):
    MANUAL = "manual"
    IMPORT = "import"
    EXTERNAL_SYSTEM = "ehr"
    API = "api"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(str, Enum):
    """Impact tier of a risk factor, and severity of a pattern finding."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


# Risk level thresholds (inclusive lower bounds)
HIGH_RISK_THRESHOLD = 60
MEDIUM_RISK_THRESHOLD = 30


def risk_level_for_score(score: int) -> RiskLevel:
    if score >= HIGH_RISK_THRESHOLD:
        return RiskLevel.HIGH
    if score >= MEDIUM_RISK_THRESHOLD:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _base36(number: int) -> str:
    digits = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"
    if number == 0:
        return "0"
    out = []
    while number:
        number, rem = divmod(number, 36)
        out.append(digits[rem])
    return "".join(reversed(out))


def generate_claim_number() -> str:
    return f"CLM-{_base36(int(time.time() * 1000))}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RiskFactor(BaseModel):
    label: str = Field(..., validation_alias=AliasChoices("label", "factor"))
    impact: Severity
    description: str


class Claim(BaseModel):
    id: Optional[str] = None
    organization_id: Optional[str] = None
    created_by: Optional[str] = None

    # Identity
    claim_number: str = Field(default_factory=generate_claim_number)
    external_claim_id: Optional[str] = None

    # Patient
    patient_name: Optional[str] = None
    patient_id: Optional[str] = None
    patient_dob: Optional[date] = None
    patient_member_id: Optional[str] = None

    # Provider
    provider_name: Optional[str] = None
    provider_npi: Optional[str] = None
    facility_name: Optional[str] = None

    # Payer
    payer_name: Optional[str] = None
    payer_id: Optional[str] = None
    plan_name: Optional[str] = None
    plan_type: Optional[PlanType] = None

    # Service
    service_date: Optional[date] = None
    service_date_end: Optional[date] = None
    place_of_service: Optional[str] = None
    procedure_codes: List[str] = Field(default_factory=list)
    diagnosis_codes: List[str] = Field(default_factory=list)
    modifiers: List[str] = Field(default_factory=list)

    # Financials
    billed_amount: condecimal(ge=Decimal(0)) = Decimal("0")
    allowed_amount: Optional[Decimal] = None
    paid_amount: Optional[Decimal] = None
    patient_responsibility: Optional[Decimal] = None
    adjustment_amount: Optional[Decimal] = None

    # Workflow
    status: ClaimStatus = ClaimStatus.DRAFT
    status_reason: Optional[str] = None
    priority: Priority = Priority.NORMAL

    # Risk
    risk_score: Optional[int] = Field(None, ge=0, le=100)
    risk_level: Optional[RiskLevel] = None
    risk_factors: List[RiskFactor] = Field(default_factory=list)

    # Denial detail. Only meaningful while the status is on the denial path.
    denial_date: Optional[date] = None
    denial_codes: List[str] = Field(default_factory=list)
    denial_reasons: List[str] = Field(default_factory=list)
    denial_category: Optional[str] = None

    # Timeline
    received_date: Optional[date] = None
    submitted_at: Optional[datetime] = None
    due_date: Optional[date] = None
    follow_up_date: Optional[date] = None

    notes: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)

    # Provenance
    source: ClaimSource = ClaimSource.MANUAL
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    model_config = {"from_attributes": True}

    @field_validator(
        "patient_dob", "service_date", "service_date_end", "denial_date", "received_date",
        "due_date", "follow_up_date", "submitted_at", "plan_type", "allowed_amount", "paid_amount",
        "patient_responsibility", "adjustment_amount", "risk_score", "risk_level",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: Any) -> Any:
        # Tabular imports hand over empty cells as ""
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("plan_type", mode="before")
    @classmethod
    def _normalize_plan_type(cls, value: Any) -> Any:
        if isinstance(value, str):
            for plan in PlanType:
                if plan.value.lower() == value.strip().lower():
                    return plan
        return value

    @field_validator("procedure_codes", "diagnosis_codes", "modifiers", "denial_codes", "denial_reasons", mode="before")
    @classmethod
    def _split_code_list(cls, value: Any) -> Any:
        if value is None:
            return []
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return value

    @field_validator("billed_amount", mode="before")
    @classmethod
    def _default_billed_amount(cls, value: Any) -> Any:
        if value is None or (isinstance(value, str) and not value.strip()):
            return Decimal("0")
        return value

    @model_validator(mode="after")
    def _derive_risk_level(self) -> "Claim":
        if self.risk_score is None:
            self.risk_level = None
        else:
            self.risk_level = risk_level_for_score(self.risk_score)
        return self

    @property
    def activity_key(self) -> str:
        """Identifier used on activity events: storage id when known, otherwise the claim number."""
        return self.id or self.claim_number


class ClaimActivity(BaseModel):
    """Activity event handed to the audit-log collaborator."""
    claim_id: str
    action: str
    previous_value: Optional[str] = None
    new_value: Optional[str] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    user_id: Optional[str] = None
    details: Dict[str, Any] = Field(default_factory=dict)


def _describe_validation_error(exc: ValidationError) -> List[str]:
    messages = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "claim"
        messages.append(f"{location}: {err.get('msg')}")
    return messages


def new_claim(**overrides: Any) -> Claim:
    """
    Builds a blank claim with the standard defaults (draft, normal priority, zero billed,
    empty code lists, manual source) and applies the given overrides on top.

    Raises ClaimValidationError(kind=MALFORMED_INPUT) when an override cannot be coerced,
    e.g. a negative billed amount or an unknown status.
    """
    try:
        return Claim(**overrides)
    except ValidationError as exc:
        raise ClaimValidationError(_describe_validation_error(exc), kind=ErrorKind.MALFORMED_INPUT) from exc
