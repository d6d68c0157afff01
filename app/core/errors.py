from fastapi.responses import JSONResponse

from app.schemas.otp import FailureKind, Outcome

STATUS_BY_KIND = {
    FailureKind.VALIDATION: 400,
    FailureKind.RATE_LIMITED: 429,
    FailureKind.COOLDOWN: 429,
    FailureKind.LOCKED: 429,
    FailureKind.NOT_FOUND: 400,
    FailureKind.EXPIRED: 400,
    FailureKind.INVALID_CODE: 400,
    FailureKind.DELIVERY_FAILED: 502,
    FailureKind.TOKEN_EXPIRED: 401,
    FailureKind.TOKEN_INVALID: 401,
}


def error_response(status_code: int, message: str, kind: FailureKind = None, retry_after: int = None) -> JSONResponse:
    body = {"ok": False, "error": message}
    headers = {}
    if kind is not None:
        body["kind"] = kind.value
    if retry_after is not None:
        body["retryAfter"] = retry_after
        headers["Retry-After"] = str(retry_after)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


def rejection(result: Outcome) -> JSONResponse:
    return error_response(STATUS_BY_KIND.get(result.kind, 400), result.message or "Request failed",
                          result.kind, result.retry_after)
