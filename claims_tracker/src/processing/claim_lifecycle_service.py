from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union
import structlog
from pydantic import BaseModel, Field

from ..api.models.claim_models import Claim, ClaimActivity, ClaimSource, ClaimStatus, new_claim
from ..api.models.risk_models import EnrichedRiskAssessment, RiskAssessment
from ..core.config.settings import Settings, get_settings
from ..core.exceptions import ClaimValidationError
from ..core.monitoring.activity_logger import ActivitySink
from ..core.monitoring.app_metrics import MetricsCollector
from .risk.enrichment import RiskAdvisor, enrich_assessment
from .risk.recommendations import generate_recommendations
from .risk.risk_scorer import RiskScorer, apply_risk
from .validation.claim_validator import ClaimValidator
from .workflow.status_machine import ClaimStatusMachine, TransitionPolicy

logger = structlog.get_logger(__name__)

CREATED_ACTION = "created"
UPDATED_ACTION = "updated"
RISK_RECALCULATED_ACTION = "risk_recalculated"

# Fields whose change can move the risk score
RISK_INPUT_FIELDS = frozenset({
    "procedure_codes", "diagnosis_codes", "billed_amount", "plan_type", "provider_npi", "service_date",
})


class ImportRowError(BaseModel):
    row_index: int
    claim_number: Optional[str] = None
    errors: List[str] = Field(default_factory=list)


class ImportResult(BaseModel):
    claims: List[Claim] = Field(default_factory=list)
    errors: List[ImportRowError] = Field(default_factory=list)

    @property
    def imported_count(self) -> int:
        return len(self.claims)


class ClaimLifecycleService:
    """
    Wires the claim factory, commit validation, risk scoring, the status machine and the
    activity sink together. Every method returns new claim objects; nothing is persisted here.
    """

    def __init__(
        self,
        activity_sink: ActivitySink,
        metrics_collector: MetricsCollector,
        policy: Optional[TransitionPolicy] = None,
        scorer: Optional[RiskScorer] = None,
        advisor: Optional[RiskAdvisor] = None,
        settings: Optional[Settings] = None,
    ):
        self.activity_sink = activity_sink
        self.metrics_collector = metrics_collector
        self.settings = settings or get_settings()
        self.validator = ClaimValidator()
        self.scorer = scorer or RiskScorer()
        self.advisor = advisor
        self.status_machine = ClaimStatusMachine(
            activity_sink=activity_sink, policy=policy, metrics_collector=metrics_collector
        )
        logger.info("ClaimLifecycleService initialized",
                    risk_checks=len(self.scorer.checks),
                    advisor_configured=advisor is not None,
                    ai_enrichment_enabled=self.settings.AI_ENRICHMENT_ENABLED)

    def check_claim(self, data: Union[Claim, Mapping[str, Any]]) -> List[str]:
        """Dry-run of the commit rules. Returns every problem found, malformed fields included; raises nothing."""
        try:
            claim = self._build(data, {})
        except ClaimValidationError as e:
            return e.errors
        return self.validator.validate_claim(claim)

    def score(self, claim: Claim) -> RiskAssessment:
        with self.metrics_collector.time_stage() as timer:
            assessment = self.scorer.score(claim)
        self.metrics_collector.record_risk_score(assessment.level.value, assessment.score, timer.duration_seconds)
        return assessment

    def create_claim(self, data: Union[Claim, Mapping[str, Any]], user_id: Optional[str] = None) -> Claim:
        claim = self._build(data, {"created_by": user_id} if user_id else {})
        self._validate(claim, operation="create")
        claim = apply_risk(claim, self.score(claim))

        self._emit(claim, CREATED_ACTION, user_id=user_id, details={"claim_number": claim.claim_number})
        logger.info("Claim created", claim_number=claim.claim_number, source=claim.source.value,
                    risk_score=claim.risk_score, risk_level=claim.risk_level.value if claim.risk_level else None)
        return claim

    def import_claims(self, rows: Iterable[Mapping[str, Any]], user_id: Optional[str] = None) -> ImportResult:
        """
        Builds claims from partially-populated import rows. Rows that fail validation are
        reported in the result and do not stop the rest of the batch.
        """
        result = ImportResult()
        for index, row in enumerate(rows):
            overrides = {"source": ClaimSource.IMPORT}
            if user_id:
                overrides["created_by"] = user_id
            try:
                claim = self._build(row, overrides)
                self._validate(claim, operation="import")
            except ClaimValidationError as e:
                result.errors.append(ImportRowError(
                    row_index=index, claim_number=(row or {}).get("claim_number"), errors=e.errors
                ))
                continue
            claim = apply_risk(claim, self.score(claim))
            self._emit(claim, CREATED_ACTION, user_id=user_id,
                       details={"claim_number": claim.claim_number, "source": ClaimSource.IMPORT.value})
            result.claims.append(claim)

        logger.info("Claim import finished", imported=len(result.claims), failed=len(result.errors))
        return result

    def update_claim(self, claim: Claim, updates: Mapping[str, Any], user_id: Optional[str] = None) -> Claim:
        """
        Applies field updates. A status in the updates goes through the status machine;
        the risk score is refreshed when a risk input changed.
        """
        updates = dict(updates)
        new_status = updates.pop("status", None)
        for protected in ("id", "created_at", "created_by", "risk_score", "risk_level", "risk_factors"):
            updates.pop(protected, None)

        if new_status is not None:
            new_status = self.status_machine.ensure_allowed(claim, new_status)

        updated = claim
        if updates:
            merged = {**claim.model_dump(), **updates, "updated_at": datetime.now(timezone.utc)}
            updated = self._build(merged, {})
            self._validate(updated, operation="update")
            self._emit(updated, UPDATED_ACTION, user_id=user_id, details={"fields": sorted(updates)})

        if new_status is not None:
            updated, _ = self.status_machine.transition(updated, new_status, user_id=user_id)

        if RISK_INPUT_FIELDS.intersection(updates):
            updated = self.refresh_risk(updated, user_id=user_id)
        return updated

    def change_status(
        self,
        claim: Claim,
        new_status: Union[ClaimStatus, str],
        user_id: Optional[str] = None,
        **denial_details: Any,
    ) -> Tuple[Claim, Optional[ClaimActivity]]:
        return self.status_machine.transition(claim, new_status, user_id=user_id, **denial_details)

    def refresh_risk(self, claim: Claim, user_id: Optional[str] = None) -> Claim:
        assessment = self.score(claim)
        refreshed = apply_risk(claim, assessment)
        if claim.risk_score != assessment.score:
            self._emit(
                refreshed,
                RISK_RECALCULATED_ACTION,
                user_id=user_id,
                previous_value=None if claim.risk_score is None else str(claim.risk_score),
                new_value=str(assessment.score),
                details={"level": assessment.level.value, "factors": [f.label for f in assessment.factors]},
            )
        return refreshed

    def assess(self, claim: Claim, use_advisor: Optional[bool] = None) -> EnrichedRiskAssessment:
        assessment = self.score(claim)
        recommendations = generate_recommendations(claim, assessment, self.scorer)
        enabled = self.settings.AI_ENRICHMENT_ENABLED if use_advisor is None else use_advisor
        return enrich_assessment(
            claim,
            assessment,
            advisor=self.advisor,
            enabled=enabled,
            recommendations=recommendations,
            metrics_collector=self.metrics_collector,
        )

    def _build(self, data: Union[Claim, Mapping[str, Any]], overrides: Dict[str, Any]) -> Claim:
        if isinstance(data, Claim):
            payload = data.model_dump()
        else:
            payload = {k: v for k, v in dict(data or {}).items() if v is not None}
        payload.update(overrides)
        return new_claim(**payload)

    def _validate(self, claim: Claim, operation: str):
        try:
            self.validator.ensure_valid(claim)
        except ClaimValidationError as e:
            self.metrics_collector.record_validation_failure(operation)
            logger.warning("Claim rejected at commit boundary", claim_number=claim.claim_number,
                           operation=operation, errors=e.errors)
            raise

    def _emit(self, claim: Claim, action: str, user_id: Optional[str] = None,
              previous_value: Optional[str] = None, new_value: Optional[str] = None,
              details: Optional[Dict[str, Any]] = None):
        self.activity_sink.record(ClaimActivity(
            claim_id=claim.activity_key,
            action=action,
            previous_value=previous_value,
            new_value=new_value,
            user_id=user_id,
            details=details or {},
        ))
