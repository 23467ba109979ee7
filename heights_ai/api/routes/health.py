"""
Health routes - service status for load balancers and probes
"""

from datetime import datetime

from fastapi import APIRouter, Depends

from heights_ai.api.dependencies import APP_NAME, APP_VERSION, get_gateway
from heights_ai.api.schemas import HealthResponse
from heights_ai.gateway.provider_gateway import Capability, ProviderGateway


router = APIRouter(tags=["Health"])


@router.get("/", summary="API root")
async def root():
    return {
        "message": f"Welcome to {APP_NAME}",
        "version": APP_VERSION,
        "docs": "/docs",
        "redoc": "/redoc",
    }


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Reports which provider capabilities are configured"
)
async def health_check(gateway: ProviderGateway = Depends(get_gateway)) -> HealthResponse:
    components = {}
    for capability in Capability:
        providers = gateway.providers_for(capability)
        components[capability.value] = "healthy" if providers else "unconfigured"

    # without a reasoner only the fixed notice can be returned
    overall_status = "healthy" if components[Capability.REASONING.value] == "healthy" else "degraded"

    return HealthResponse(
        status=overall_status,
        timestamp=datetime.now(),
        version=APP_VERSION,
        components=components,
    )


@router.get("/ready", summary="Readiness probe")
async def readiness_check():
    return {"ready": True}


@router.get("/live", summary="Liveness probe")
async def liveness_check():
    return {"alive": True}
