"""
Health check endpoints for the 5C Community Group Orchestrator.
"""
import time
from datetime import datetime
from typing import Any, Dict

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fivec.config import settings
from fivec.core.dependencies import get_gateways
from fivec.services.gateways import GatewaySet

router = APIRouter()

_started_at = time.time()


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str
    version: str
    uptime_seconds: float
    timestamp: datetime
    service_name: str


class GatewayHealthResponse(BaseModel):
    """Gateway configuration and circuit state."""

    email_configured: bool
    sms_configured: bool
    circuits: Dict[str, Any]


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic liveness check."""
    return HealthResponse(
        status="healthy",
        version=settings.version,
        uptime_seconds=round(time.time() - _started_at, 2),
        timestamp=datetime.utcnow(),
        service_name=settings.app_name,
    )


@router.get("/health/gateways", response_model=GatewayHealthResponse)
async def gateway_health(gateways: GatewaySet = Depends(get_gateways)) -> GatewayHealthResponse:
    """Report which gateways are configured and their circuit breaker state."""
    circuits = {}
    for name in ("email", "sms", "match_compute", "export_compute"):
        client = getattr(getattr(gateways, name), "client", None)
        if client is not None and hasattr(client, "get_circuit_status"):
            circuits[name] = client.get_circuit_status()

    return GatewayHealthResponse(
        email_configured=settings.resend_configured,
        sms_configured=settings.twilio_configured,
        circuits=circuits,
    )
