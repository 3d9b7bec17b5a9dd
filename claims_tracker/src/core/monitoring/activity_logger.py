import structlog
from typing import Callable, List, Optional, Protocol

from claims_tracker.src.api.models.claim_models import ClaimActivity

logger = structlog.get_logger(__name__)


class ActivitySink(Protocol):
    """
    Receives one event per claim activity (creation, status change, risk refresh).
    Durability and retry belong to the implementation, not to the caller.
    """

    def record(self, event: ClaimActivity) -> None:
        ...


class StructlogActivitySink:
    """Writes activity events to the structured application log."""

    def __init__(self, event_name: str = "claim_activity"):
        self.event_name = event_name
        logger.info("StructlogActivitySink initialized.", event_name=event_name)

    def record(self, event: ClaimActivity) -> None:
        logger.info(
            self.event_name,
            claim_id=event.claim_id,
            action=event.action,
            previous_value=event.previous_value,
            new_value=event.new_value,
            user_id=event.user_id,
            timestamp=event.timestamp.isoformat(),
            details=event.details,
        )


class InMemoryActivitySink:
    """Keeps events in a list. Used by tests and by callers that batch their own persistence."""

    def __init__(self):
        self.events: List[ClaimActivity] = []

    def record(self, event: ClaimActivity) -> None:
        self.events.append(event)

    def for_claim(self, claim_id: str) -> List[ClaimActivity]:
        return [e for e in self.events if e.claim_id == claim_id]

    def clear(self) -> None:
        self.events.clear()


class CallbackActivitySink:
    """Adapts a plain callable (e.g. a repository method) to the sink interface."""

    def __init__(self, callback: Callable[[ClaimActivity], None], fallback: Optional[ActivitySink] = None):
        self.callback = callback
        self.fallback = fallback

    def record(self, event: ClaimActivity) -> None:
        try:
            self.callback(event)
        except Exception as e:
            logger.error("Failed to hand activity event to callback.",
                         claim_id=event.claim_id, action=event.action, error=str(e), exc_info=True)
            if self.fallback is None:
                raise
            self.fallback.record(event)
