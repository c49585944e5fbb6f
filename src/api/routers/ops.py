import logging
import os

from fastapi import APIRouter, Response
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST

from api import state
from storage.task_repository import TaskRepository

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint for container orchestration."""
    health = {
        "status": "healthy",
        "llm_provider": os.getenv("LLM_PROVIDER", "mistral"),
    }

    if state.store_client is None:
        health["status"] = "degraded"
        health["store"] = {"status": "not initialized"}
        return health

    # anon-key probe: proves the table is reachable, rows stay hidden by RLS
    probe = await TaskRepository(state.store_client).test_connection()
    if probe.error:
        health["status"] = "degraded"
        health["store"] = {"status": "error", "error": probe.error.message}
    else:
        health["store"] = {"status": "connected"}
    return health


@router.get("/metrics")
async def metrics() -> Response:
    """
    Prometheus scrape endpoint.
    """
    data = generate_latest()
    return Response(content=data, media_type=CONTENT_TYPE_LATEST)
