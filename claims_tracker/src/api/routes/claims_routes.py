from fastapi import APIRouter, Depends, HTTPException, Query
from typing import Any, Dict, List, Optional
import structlog

from ..models.claim_models import Claim, ClaimStatus
from ..models.request_models import (
    RiskAssessmentRequest,
    RiskAssessmentResponse,
    RiskFactorDefinitionsResponse,
    StatusTransitionRequest,
    StatusTransitionResponse,
    ValidationResponse,
    WorkflowResponse,
)
from ..dependencies import get_lifecycle_service
from ...core.exceptions import ClaimsTrackerError
from ...processing.claim_lifecycle_service import ClaimLifecycleService, ImportResult
from ...processing.risk.risk_scorer import risk_factor_definitions
from ...processing.workflow import status_machine

logger = structlog.get_logger(__name__)
router = APIRouter()


@router.post("/", response_model=Claim, status_code=201)
async def create_claim(
    claim_data: Dict[str, Any],
    user_id: Optional[str] = Query(None, description="User recorded on the activity event."),
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    logger.info("Received request to create claim", claim_number=claim_data.get("claim_number"))
    try:
        return service.create_claim(claim_data, user_id=user_id)
    except ClaimsTrackerError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())


@router.post("/import", response_model=ImportResult)
async def import_claims(
    rows: List[Dict[str, Any]],
    user_id: Optional[str] = Query(None),
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    logger.info("Received claim import", rows=len(rows))
    return service.import_claims(rows, user_id=user_id)


@router.post("/validate", response_model=ValidationResponse)
async def validate_claim(
    claim_data: Dict[str, Any],
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    errors = service.check_claim(claim_data)
    return ValidationResponse(valid=not errors, errors=errors)


@router.post("/risk-assessment", response_model=RiskAssessmentResponse)
async def assess_claim_risk(
    request: RiskAssessmentRequest,
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    assessment = service.assess(request.claim, use_advisor=request.use_advisor)
    return RiskAssessmentResponse(claim_number=request.claim.claim_number, assessment=assessment)


@router.get("/risk-factors", response_model=RiskFactorDefinitionsResponse)
async def list_risk_factors(service: ClaimLifecycleService = Depends(get_lifecycle_service)):
    return RiskFactorDefinitionsResponse(
        factors=risk_factor_definitions(service.scorer.checks),
        risk_levels=dict(status_machine.RISK_LEVEL_LABELS),
    )


@router.post("/status-transition", response_model=StatusTransitionResponse)
async def transition_claim_status(
    request: StatusTransitionRequest,
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    try:
        claim, event = service.change_status(
            request.claim,
            request.new_status,
            user_id=request.user_id,
            status_reason=request.status_reason,
            denial_codes=request.denial_codes,
            denial_reasons=request.denial_reasons,
            denial_category=request.denial_category,
        )
    except ClaimsTrackerError as e:
        raise HTTPException(status_code=422, detail=e.to_dict())
    return StatusTransitionResponse(claim=claim, event=event)


@router.get("/workflow/{status}", response_model=WorkflowResponse)
async def get_workflow(
    status: str,
    show_all: bool = Query(False, description="Return every status in display order."),
    service: ClaimLifecycleService = Depends(get_lifecycle_service),
):
    try:
        current = status_machine.coerce_status(status)
    except ClaimsTrackerError as e:
        raise HTTPException(status_code=404, detail=e.to_dict())

    policy = service.status_machine.policy
    allowed = [s for s in ClaimStatus if s != current and s in policy.allowed_targets(current)]
    return WorkflowResponse(
        status=current,
        label=status_machine.STATUS_LABELS[current],
        color=status_machine.STATUS_COLORS[current],
        is_denial_path=status_machine.is_denial_path(current),
        is_terminal=status_machine.is_terminal(current),
        path=status_machine.workflow_path(current, show_all=show_all),
        allowed_targets=allowed,
    )
