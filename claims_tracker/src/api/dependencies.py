from typing import Optional
import structlog

from claims_tracker.src.core.monitoring.activity_logger import ActivitySink, StructlogActivitySink
from claims_tracker.src.core.monitoring.app_metrics import MetricsCollector
from claims_tracker.src.core.config.settings import get_settings
from claims_tracker.src.processing.analytics.pattern_detector import PatternThresholds
from claims_tracker.src.processing.claim_lifecycle_service import ClaimLifecycleService

logger = structlog.get_logger(__name__)

_activity_sink_instance: Optional[ActivitySink] = None
_metrics_collector_instance: Optional[MetricsCollector] = None
_lifecycle_service_instance: Optional[ClaimLifecycleService] = None


def get_activity_sink() -> ActivitySink:
    global _activity_sink_instance
    if _activity_sink_instance is None:
        _activity_sink_instance = StructlogActivitySink()
        logger.info("Default activity sink created.")
    return _activity_sink_instance


def get_metrics_collector() -> MetricsCollector:
    global _metrics_collector_instance
    if _metrics_collector_instance is None:
        _metrics_collector_instance = MetricsCollector()
        logger.info("Default MetricsCollector instance created.")
    return _metrics_collector_instance


def get_lifecycle_service() -> ClaimLifecycleService:
    global _lifecycle_service_instance
    if _lifecycle_service_instance is None:
        _lifecycle_service_instance = ClaimLifecycleService(
            activity_sink=get_activity_sink(),
            metrics_collector=get_metrics_collector(),
        )
        logger.info("Default ClaimLifecycleService instance created.")
    return _lifecycle_service_instance


def get_pattern_thresholds() -> PatternThresholds:
    return PatternThresholds.from_settings(get_settings())
