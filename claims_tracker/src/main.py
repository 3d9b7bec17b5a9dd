from fastapi import FastAPI, Depends, Response
from datetime import datetime, timezone
from prometheus_client import generate_latest, REGISTRY
from prometheus_client.exposition import CONTENT_TYPE_LATEST
import structlog

from .api.routes import analytics_routes, claims_routes
from .api.dependencies import get_activity_sink
from .core.logging_config import setup_logging
from .core.monitoring.activity_logger import ActivitySink

setup_logging()
logger = structlog.get_logger(__name__)

app = FastAPI(title="Claims Tracker")

app.include_router(claims_routes.router, prefix="/api/v1/claims", tags=["Claims"])
app.include_router(analytics_routes.router, prefix="/api/v1/analytics", tags=["Analytics"])


@app.get("/health")
async def health_check(activity_sink: ActivitySink = Depends(get_activity_sink)):
    logger.info("Health check accessed")
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0",
        "activity_sink": type(activity_sink).__name__,
    }


@app.get("/metrics", tags=["Monitoring"])
async def get_metrics():
    """
    Exposes Prometheus metrics.
    """
    logger.debug("Metrics endpoint called.")
    return Response(generate_latest(REGISTRY), media_type=CONTENT_TYPE_LATEST)
