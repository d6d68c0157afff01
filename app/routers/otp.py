import logging

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from app.core.errors import error_response, rejection
from app.schemas.otp import FailureKind, OTPRequestIn, OTPVerifyIn
from app.services import metrics
from app.services.container import Services, get_services
from app.services.rate_limit import client_ip
from app.services.security import cookie_settings
from app.utils.phone import is_valid_msisdn, normalize_msisdn

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/otp", tags=["otp"])

QUOTE_COOKIE = "quoteToken"


@router.post("/request")
async def request_code(
    request: Request,
    payload: OTPRequestIn = Body(...),
    services: Services = Depends(get_services),
):
    """Send a verification code to the phone for the chosen model/issue."""
    phone = normalize_msisdn(payload.phone)
    model_id = payload.model_id
    issue_id = payload.issue_id

    if not is_valid_msisdn(phone):
        return error_response(400, "Invalid phone number", FailureKind.VALIDATION)
    if not (await services.catalog.is_valid_model(model_id) and await services.catalog.is_valid_issue(issue_id)):
        return error_response(400, "Invalid selection", FailureKind.VALIDATION)

    result = await services.otp.request(phone, model_id, issue_id, ip=client_ip(request))
    if not result.ok:
        return rejection(result)
    return {"ok": True}


@router.post("/verify")
async def verify_code(
    payload: OTPVerifyIn = Body(...),
    services: Services = Depends(get_services),
):
    """Check the code; on success hand out a quote token (body and cookie)."""
    phone = normalize_msisdn(payload.phone)
    result = await services.otp.verify(phone, payload.code)
    if not result.ok:
        return rejection(result)

    token = services.quote_tokens.create_token(phone, result.model_id, result.issue_id)
    metrics.record_token_issued()

    response = JSONResponse({"success": True, "quoteToken": token})
    response.set_cookie(
        key=QUOTE_COOKIE,
        value=token,
        max_age=services.settings.QUOTE_TOKEN_TTL_SECONDS,
        **cookie_settings(services.settings, samesite="strict"),
    )
    return response
