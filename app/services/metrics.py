"""
Prometheus metrics for the quote service
"""

import time

from fastapi import Request
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

REQUESTS_TOTAL = Counter(
    "repairquote_http_requests_total",
    "Total HTTP requests",
    ["method", "path", "status"],
)

REQUEST_DURATION = Histogram(
    "repairquote_http_request_seconds",
    "Request duration in seconds",
    ["method", "path"],
)

OTP_REQUESTS = Counter(
    "repairquote_otp_requests_total",
    "OTP send requests by outcome",
    ["outcome"],
)

OTP_VERIFICATIONS = Counter(
    "repairquote_otp_verifications_total",
    "OTP verification attempts by outcome",
    ["outcome"],
)

QUOTE_TOKENS_ISSUED = Counter(
    "repairquote_quote_tokens_issued_total",
    "Quote tokens minted after successful verification",
)


async def metrics_endpoint(enabled: bool):
    """Prometheus metrics endpoint"""
    if not enabled:
        return Response(b"metrics disabled", media_type="text/plain")
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def metrics_middleware(app, enabled: bool):
    if not enabled:
        return

    @app.middleware("http")
    async def _metrics(request: Request, call_next):
        start = time.time()
        response = await call_next(request)
        route = request.scope.get("route")
        path = getattr(route, "path", request.url.path)
        REQUESTS_TOTAL.labels(method=request.method, path=path, status=str(response.status_code)).inc()
        REQUEST_DURATION.labels(method=request.method, path=path).observe(time.time() - start)
        return response


def record_otp_request(outcome: str):
    OTP_REQUESTS.labels(outcome=outcome).inc()


def record_otp_verification(outcome: str):
    OTP_VERIFICATIONS.labels(outcome=outcome).inc()


def record_token_issued():
    QUOTE_TOKENS_ISSUED.inc()
