from datetime import date, datetime, timezone
from types import MappingProxyType
from typing import Any, Dict, FrozenSet, Iterable, List, Mapping, NamedTuple, Optional, Tuple, Union
import structlog

from ...api.models.claim_models import Claim, ClaimActivity, ClaimStatus, RiskLevel
from ...core.exceptions import InvalidStatusTransition
from ...core.monitoring.activity_logger import ActivitySink
from ...core.monitoring.app_metrics import MetricsCollector

logger = structlog.get_logger(__name__)

STATUS_CHANGED_ACTION = "status_changed"

DENIAL_PATH_STATUSES: FrozenSet[ClaimStatus] = frozenset({
    ClaimStatus.DENIED,
    ClaimStatus.PARTIALLY_DENIED,
    ClaimStatus.APPEALED,
    ClaimStatus.APPEAL_WON,
    ClaimStatus.APPEAL_LOST,
})

# Statuses that count as a denial in rates and per-payer breakdowns
DENIED_STATUSES: FrozenSet[ClaimStatus] = frozenset({ClaimStatus.DENIED, ClaimStatus.PARTIALLY_DENIED})

TERMINAL_STATUSES: FrozenSet[ClaimStatus] = frozenset({
    ClaimStatus.CLOSED,
    ClaimStatus.APPEAL_WON,
    ClaimStatus.APPEAL_LOST,
})

STANDARD_PATH: Tuple[ClaimStatus, ...] = (
    ClaimStatus.DRAFT,
    ClaimStatus.PENDING_REVIEW,
    ClaimStatus.SUBMITTED,
    ClaimStatus.IN_PROCESS,
    ClaimStatus.PAID,
)

# Full display order, used when every status is shown
STATUS_ORDER: Tuple[ClaimStatus, ...] = (
    ClaimStatus.DRAFT,
    ClaimStatus.PENDING_REVIEW,
    ClaimStatus.SUBMITTED,
    ClaimStatus.IN_PROCESS,
    ClaimStatus.PAID,
    ClaimStatus.DENIED,
    ClaimStatus.PARTIALLY_DENIED,
    ClaimStatus.APPEALED,
    ClaimStatus.APPEAL_WON,
    ClaimStatus.APPEAL_LOST,
    ClaimStatus.CLOSED,
)

# Presentation layers key colour and label tables off these literal strings.
STATUS_LABELS: Mapping[ClaimStatus, str] = MappingProxyType({
    ClaimStatus.DRAFT: "Draft",
    ClaimStatus.PENDING_REVIEW: "Pending Review",
    ClaimStatus.SUBMITTED: "Submitted",
    ClaimStatus.IN_PROCESS: "In Process",
    ClaimStatus.DENIED: "Denied",
    ClaimStatus.PARTIALLY_DENIED: "Partially Denied",
    ClaimStatus.PAID: "Paid",
    ClaimStatus.APPEALED: "Appealed",
    ClaimStatus.APPEAL_WON: "Appeal Won",
    ClaimStatus.APPEAL_LOST: "Appeal Lost",
    ClaimStatus.CLOSED: "Closed",
})

STATUS_COLORS: Mapping[ClaimStatus, str] = MappingProxyType({
    ClaimStatus.DRAFT: "gray",
    ClaimStatus.PENDING_REVIEW: "yellow",
    ClaimStatus.SUBMITTED: "blue",
    ClaimStatus.IN_PROCESS: "indigo",
    ClaimStatus.DENIED: "red",
    ClaimStatus.PARTIALLY_DENIED: "orange",
    ClaimStatus.PAID: "green",
    ClaimStatus.APPEALED: "purple",
    ClaimStatus.APPEAL_WON: "emerald",
    ClaimStatus.APPEAL_LOST: "rose",
    ClaimStatus.CLOSED: "slate",
})

RISK_LEVEL_LABELS: Mapping[RiskLevel, str] = MappingProxyType({
    RiskLevel.LOW: "Low Risk",
    RiskLevel.MEDIUM: "Medium Risk",
    RiskLevel.HIGH: "High Risk",
})


def coerce_status(value: Union[ClaimStatus, str]) -> ClaimStatus:
    """Returns the enum member for value, raising InvalidStatusTransition for anything outside the enumeration."""
    if isinstance(value, ClaimStatus):
        return value
    try:
        return ClaimStatus(str(value).strip().lower())
    except ValueError:
        raise InvalidStatusTransition(
            f"'{value}' is not a valid claim status.", requested_status=str(value)
        ) from None


def is_denial_path(status: Union[ClaimStatus, str]) -> bool:
    return coerce_status(status) in DENIAL_PATH_STATUSES


def is_denied(status: Union[ClaimStatus, str]) -> bool:
    return coerce_status(status) in DENIED_STATUSES


def is_terminal(status: Union[ClaimStatus, str]) -> bool:
    return coerce_status(status) in TERMINAL_STATUSES


def workflow_path(status: Union[ClaimStatus, str], show_all: bool = False) -> List[ClaimStatus]:
    """
    Ordered display sequence for progress visualization.

    Standard-path statuses get the standard path. Denial-path statuses get the first four
    standard steps followed by denied, appealed and the appeal outcome (appeal_lost only when
    the claim actually lost, appeal_won otherwise).
    """
    current = coerce_status(status)
    if show_all:
        return list(STATUS_ORDER)
    if current not in DENIAL_PATH_STATUSES:
        return list(STANDARD_PATH)
    outcome = ClaimStatus.APPEAL_LOST if current == ClaimStatus.APPEAL_LOST else ClaimStatus.APPEAL_WON
    return [*STANDARD_PATH[:4], ClaimStatus.DENIED, ClaimStatus.APPEALED, outcome]


class TransitionVerdict(NamedTuple):
    allowed: bool
    reason: Optional[str] = None


class TransitionPolicy:
    """
    Table of allowed targets per status. The default table lets any status move to any
    other status. Pass a narrower table to enforce a stricter workflow.
    """

    def __init__(self, table: Optional[Mapping[ClaimStatus, Iterable[ClaimStatus]]] = None):
        if table is None:
            table = {status: tuple(ClaimStatus) for status in ClaimStatus}
        self._table: Mapping[ClaimStatus, FrozenSet[ClaimStatus]] = MappingProxyType(
            {coerce_status(k): frozenset(coerce_status(t) for t in v) for k, v in table.items()}
        )

    @classmethod
    def permissive(cls) -> "TransitionPolicy":
        return cls()

    def allowed_targets(self, current: Union[ClaimStatus, str]) -> FrozenSet[ClaimStatus]:
        return self._table.get(coerce_status(current), frozenset())

    def check(self, current: Union[ClaimStatus, str], target: Union[ClaimStatus, str]) -> TransitionVerdict:
        try:
            current_status = coerce_status(current)
            target_status = coerce_status(target)
        except InvalidStatusTransition as e:
            return TransitionVerdict(False, e.message)
        if target_status in self.allowed_targets(current_status):
            return TransitionVerdict(True)
        return TransitionVerdict(
            False, f"Transition from '{current_status.value}' to '{target_status.value}' is not allowed."
        )


class ClaimStatusMachine:
    def __init__(
        self,
        activity_sink: ActivitySink,
        policy: Optional[TransitionPolicy] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self.activity_sink = activity_sink
        self.policy = policy or TransitionPolicy.permissive()
        self.metrics_collector = metrics_collector

    def transition(
        self,
        claim: Claim,
        target: Union[ClaimStatus, str],
        user_id: Optional[str] = None,
        status_reason: Optional[str] = None,
        denial_codes: Optional[List[str]] = None,
        denial_reasons: Optional[List[str]] = None,
        denial_category: Optional[str] = None,
        today: Optional[date] = None,
    ) -> Tuple[Claim, Optional[ClaimActivity]]:
        """
        Moves a claim to a new status. Returns the updated copy and the emitted activity event.
        The input claim is never modified. Requesting the current status returns the claim
        unchanged and emits nothing.
        """
        target_status = self.ensure_allowed(claim, target)
        if target_status == claim.status:
            logger.debug("Status unchanged, no transition recorded.", claim_number=claim.claim_number, status=claim.status.value)
            return claim, None

        now = datetime.now(timezone.utc)
        updates: Dict[str, Any] = {"status": target_status, "updated_at": now}
        if status_reason is not None:
            updates["status_reason"] = status_reason
        if target_status in DENIED_STATUSES:
            if claim.denial_date is None:
                updates["denial_date"] = today or now.date()
            if denial_codes is not None:
                updates["denial_codes"] = list(denial_codes)
            if denial_reasons is not None:
                updates["denial_reasons"] = list(denial_reasons)
            if denial_category is not None:
                updates["denial_category"] = denial_category
        if target_status == ClaimStatus.SUBMITTED and claim.submitted_at is None:
            updates["submitted_at"] = now

        updated = claim.model_copy(update=updates, deep=True)
        event = ClaimActivity(
            claim_id=claim.activity_key,
            action=STATUS_CHANGED_ACTION,
            previous_value=claim.status.value,
            new_value=target_status.value,
            timestamp=now,
            user_id=user_id,
            details={"from": claim.status.value, "to": target_status.value},
        )
        self.activity_sink.record(event)
        if self.metrics_collector:
            self.metrics_collector.record_status_transition(claim.status.value, target_status.value)

        logger.info("Claim status changed",
                    claim_number=claim.claim_number,
                    previous_status=claim.status.value,
                    new_status=target_status.value,
                    denial_path=target_status in DENIAL_PATH_STATUSES)
        return updated, event

    def ensure_allowed(self, claim: Claim, target: Union[ClaimStatus, str]) -> ClaimStatus:
        """
        Coerces the target and consults the policy without touching the claim or the sink.
        Raises InvalidStatusTransition for an unknown or disallowed target.
        """
        try:
            target_status = coerce_status(target)
        except InvalidStatusTransition as e:
            e.current_status = claim.status.value
            self._reject(claim, str(target), "unknown_status")
            raise

        if target_status == claim.status:
            return target_status

        verdict = self.policy.check(claim.status, target_status)
        if not verdict.allowed:
            self._reject(claim, target_status.value, "policy")
            raise InvalidStatusTransition(
                verdict.reason or "Transition not allowed.",
                current_status=claim.status.value,
                requested_status=target_status.value,
            )
        return target_status

    def _reject(self, claim: Claim, requested: str, reason: str):
        logger.warning("Claim status transition rejected",
                    claim_number=claim.claim_number, current_status=claim.status.value,
                    requested_status=requested, reason=reason)
        if self.metrics_collector:
            self.metrics_collector.record_rejected_transition(reason)
