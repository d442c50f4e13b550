"""
JBin Backend — Health Check Route
===================================

What:  Liveness probe for Docker health checks and load balancers.
How:   Answers {"status": "ok"} whenever the process is serving requests.
       It deliberately does no storage or network I/O and is excluded from the
       general rate limit and the access log.
"""

from fastapi import APIRouter

from app.schemas.blob import HealthResponse

router = APIRouter(prefix="/api", tags=["Health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service liveness check",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok")
