from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from app.core.errors import error_response, rejection
from app.routers.otp import QUOTE_COOKIE
from app.schemas.catalog import QuoteOut
from app.services.catalog import format_price, whatsapp_link
from app.services.container import Services, get_services

router = APIRouter(prefix="/api", tags=["quote"])


@router.get("/quote", response_model=QuoteOut)
async def get_quote(
    request: Request,
    token: Optional[str] = Query(default=None),
    services: Services = Depends(get_services),
):
    raw = token or request.cookies.get(QUOTE_COOKIE) or ""
    result = services.quote_tokens.verify_token(raw)
    if not result.ok:
        return rejection(result)

    claims = result.payload
    quote = await services.catalog.get_quote(claims.model_id, claims.issue_id)
    if quote is None:
        return error_response(404, "Quote no longer available")

    return QuoteOut(
        brand=quote["brand"],
        currency=quote["currency"],
        disclaimer=quote["disclaimer"],
        model=quote["model"],
        issue=quote["issue"],
        pricing=quote["pricing"],
        displayPrice=format_price(quote["pricing"], quote["currency"]),
        validUntil=claims.exp * 1000,
        whatsappUrl=whatsapp_link(
            quote["whatsappNumber"], quote["brand"], quote["model"].name, quote["issue"].name, claims.phone
        ),
        phone=claims.phone,
    )


@router.get("/catalog")
async def get_catalog(services: Services = Depends(get_services)):
    """Models and issues for the picker screens; prices stay behind verification."""
    data = await services.catalog.data()
    return {
        "brand": data.brand,
        "brands": [b.model_dump() for b in data.brands],
        "models": [m.model_dump() for m in data.models],
        "issues": [i.model_dump() for i in data.issues],
    }
