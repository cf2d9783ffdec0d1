"""Liveness endpoint."""
import logging
from fastapi import APIRouter, Request

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/health")
async def health_check(request: Request):
    """Report that the service is up."""
    client = request.client.host if request.client else "unknown"
    logger.debug(f"[HEALTH] Probe from {client}")
    return {"status": "healthy"}
