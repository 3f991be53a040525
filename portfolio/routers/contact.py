"""
Contact form endpoints.

POST /api/contact runs the full submission pipeline behind a single-use CSRF
token; GET /api/contact/challenge hands out a fresh anti-bot challenge for
the form to embed.
"""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Request, Response

from portfolio.dependencies import (
    ClientIp,
    CsrfServiceDep,
    ProcessorFactoryDep,
    get_response_time_protector,
    reject_method,
)
from portfolio.errors import CsrfError, InternalServerError, ValidationError
from portfolio.models import FormInitialData, MessageResponse
from portfolio.services.anti_bot import AntiBotService
from portfolio.services.csrf import CsrfService
from portfolio.services.timing import ResponseTimeProtector

router = APIRouter(prefix="/api", tags=["contact"])

CSRF_HEADER = "X-CSRF-Token"


async def _read_payload(request: Request) -> Any:
    try:
        return await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ValidationError(
            "Invalid form data",
            internal_message=f"Request body is not valid JSON: {exc}",
        ) from exc


async def _consume_csrf_token(csrf: CsrfService, request: Request, payload: Any) -> None:
    token = request.headers.get(CSRF_HEADER)
    if not token and isinstance(payload, dict):
        body_token = payload.get("csrfToken")
        token = body_token if isinstance(body_token, str) else None

    try:
        valid = await csrf.consume(token)
    except Exception as exc:
        raise InternalServerError(
            "Internal server error",
            internal_message=f"CSRF token store error: {exc!r}",
        ) from exc

    if not valid:
        raise CsrfError(
            "Invalid or expired security token. Please refresh the page and try again.",
            internal_message="Missing token" if not token else "Unknown, expired or reused CSRF token",
        )


@router.post(
    "/contact",
    response_model=MessageResponse,
    operation_id="submitContactForm",
    summary="Submit the contact form",
)
async def submit_contact_form(
    request: Request,
    response: Response,
    csrf: CsrfServiceDep,
    build_processor: ProcessorFactoryDep,
    client_ip: ClientIp,
    protector: Annotated[ResponseTimeProtector, Depends(get_response_time_protector)],
) -> MessageResponse:
    """
    Validate, rate-limit and deliver one contact form submission.

    Every outcome, success or failure, is padded to the same minimum
    response time.
    """
    async with protector:
        payload = await _read_payload(request)
        await _consume_csrf_token(csrf, request, payload)
        result = await build_processor().process(payload, client_ip)

    response.headers.update(result.headers)
    return MessageResponse(message="Message sent successfully")


@router.get(
    "/contact/challenge",
    response_model=FormInitialData,
    operation_id="getContactChallenge",
    summary="Issue a fresh anti-bot challenge for the contact form",
)
async def get_contact_challenge() -> FormInitialData:
    return AntiBotService().create_form_initial_data()


router.add_api_route(
    "/contact",
    reject_method("POST"),
    methods=["GET", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
router.add_api_route(
    "/contact/challenge",
    reject_method("GET"),
    methods=["POST", "PUT", "PATCH", "DELETE"],
    include_in_schema=False,
)
