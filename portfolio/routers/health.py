"""
Health check endpoint.
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from portfolio import config
from portfolio.dependencies import reject_method
from portfolio.models import HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get(
    "/health",
    response_model=HealthResponse,
    operation_id="getHealth",
    summary="Health check",
)
async def get_health() -> HealthResponse:
    return HealthResponse(
        status="ok",
        version=config.APP_VERSION,
        timestamp=datetime.now(timezone.utc),
    )


router.add_api_route(
    "/health",
    reject_method("GET"),
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
