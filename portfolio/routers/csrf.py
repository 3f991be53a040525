"""
CSRF token issuance.
"""

from typing import Annotated

from fastapi import APIRouter, Depends

from portfolio.dependencies import CsrfServiceDep, get_response_time_protector, reject_method
from portfolio.errors import InternalServerError
from portfolio.models import CsrfTokenResponse
from portfolio.services.timing import ResponseTimeProtector

router = APIRouter(prefix="/api", tags=["security"])


@router.get(
    "/csrf-token",
    response_model=CsrfTokenResponse,
    operation_id="getCsrfToken",
    summary="Issue a single-use CSRF token for the contact form",
)
async def get_csrf_token(
    csrf: CsrfServiceDep,
    protector: Annotated[ResponseTimeProtector, Depends(get_response_time_protector)],
) -> CsrfTokenResponse:
    """Tokens live for 15 minutes and are consumed by the next submission."""
    async with protector:
        try:
            token = await csrf.issue()
        except Exception as exc:
            raise InternalServerError(
                "Failed to generate security token",
                internal_message=f"CSRF token store error: {exc!r}",
            ) from exc
    return CsrfTokenResponse(csrf_token=token)


router.add_api_route(
    "/csrf-token",
    reject_method("GET"),
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
