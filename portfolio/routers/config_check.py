"""
Service configuration snapshot for the browser form.
"""

from fastapi import APIRouter

from portfolio.dependencies import reject_method
from portfolio.models import ServiceConfig
from portfolio.services.service_config import get_service_config

router = APIRouter(prefix="/api", tags=["config"])


@router.get(
    "/email-service-check",
    response_model=ServiceConfig,
    response_model_exclude_none=True,
    operation_id="getServiceConfig",
    summary="Which optional services (email, CAPTCHA) are enabled and ready",
)
@router.get(
    "/config-check",
    response_model=ServiceConfig,
    response_model_exclude_none=True,
    include_in_schema=False,
)
async def check_service_config() -> ServiceConfig:
    return get_service_config()


for _path in ("/email-service-check", "/config-check"):
    router.add_api_route(
        _path,
        reject_method("GET"),
        methods=["POST", "PUT", "PATCH", "DELETE"],
        include_in_schema=False,
    )
