import logging

from fastapi import APIRouter, Body, Depends, Request
from fastapi.responses import JSONResponse

from app.core.errors import error_response
from app.core.rate_limit import limiter
from app.schemas.auth import LoginPayload, SessionOut
from app.schemas.catalog import DeviceModel, Issue, IssueUpdate, ModelUpdate, PriceEntry, PriceKey
from app.services.catalog import CatalogError
from app.services.container import Services, get_services
from app.services.security import ADMIN_COOKIE, AdminUser, cookie_settings, require_admin, verify_credentials

log = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


@router.post("/login")
@limiter.limit("10/minute")
async def login(
    request: Request,
    payload: LoginPayload = Body(...),
    services: Services = Depends(get_services),
):
    if not verify_credentials(services.settings, payload.username, payload.password):
        log.warning("Admin login failed for '%s'", payload.username)
        return error_response(401, "Invalid credentials")

    token = services.admin_tokens.create_token(payload.username)
    response = JSONResponse({"success": True, "username": payload.username})
    response.set_cookie(
        key=ADMIN_COOKIE,
        value=token,
        max_age=services.settings.ADMIN_TOKEN_TTL_SECONDS,
        **cookie_settings(services.settings),
    )
    return response


@router.post("/logout")
async def logout():
    response = JSONResponse({"success": True})
    response.delete_cookie(ADMIN_COOKIE, path="/")
    return response


@router.get("/auth", response_model=SessionOut)
async def session_info(request: Request, services: Services = Depends(get_services)):
    token = request.cookies.get(ADMIN_COOKIE)
    username = services.admin_tokens.verify_token(token) if token else None
    return SessionOut(authenticated=bool(username), username=username)


async def _apply(op) -> JSONResponse:
    try:
        data = await op
    except CatalogError as e:
        return error_response(400, str(e))
    return JSONResponse({"success": True, "data": data.dump()})


@router.get("/data")
async def get_data(services: Services = Depends(get_services), admin: AdminUser = Depends(require_admin)):
    data = await services.catalog.data()
    return data.dump()


# Models

@router.post("/models")
async def add_model(payload: DeviceModel = Body(...), services: Services = Depends(get_services),
                    admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.add_model(payload))


@router.put("/models/{model_id}")
async def update_model(model_id: str, payload: ModelUpdate = Body(...), services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.update_model(model_id, payload))


@router.delete("/models/{model_id}")
async def delete_model(model_id: str, services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.delete_model(model_id))


# Issues

@router.post("/issues")
async def add_issue(payload: Issue = Body(...), services: Services = Depends(get_services),
                    admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.add_issue(payload))


@router.put("/issues/{issue_id}")
async def update_issue(issue_id: str, payload: IssueUpdate = Body(...), services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.update_issue(issue_id, payload))


@router.delete("/issues/{issue_id}")
async def delete_issue(issue_id: str, services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.delete_issue(issue_id))


# Prices

@router.post("/prices")
async def upsert_price(payload: PriceEntry = Body(...), services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.upsert_price(payload))


@router.put("/prices")
async def update_price(payload: PriceEntry = Body(...), services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.upsert_price(payload))


@router.delete("/prices")
async def delete_price(payload: PriceKey = Body(...), services: Services = Depends(get_services),
                       admin: AdminUser = Depends(require_admin)):
    return await _apply(services.catalog.delete_price(payload.model_id, payload.issue_id))
