# booking_assistant/core/middleware.py
"""Correlation ids and a request log tagged with the business and calendar event"""
import re
import time
import uuid
import logging
from typing import Optional, Tuple

from starlette.requests import Request

from booking_assistant.utils.my_logging import correlation_id_var

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "X-Correlation-ID"

# /businesses/{id}/..., /calendar/{id}/... and /calendar/google/authorize/{id}
BUSINESS_IN_PATH = re.compile(r"/(?:businesses|calendar|authorize)/(?!google/)([^/]+)")
EVENT_IN_PATH = re.compile(r"/bookings/([^/]+)$")


def booking_scope(path: str) -> Tuple[Optional[str], Optional[str]]:
    """(business_id, event_id) named by a request path"""
    business = BUSINESS_IN_PATH.search(path)
    event = EVENT_IN_PATH.search(path)
    return (
        business.group(1) if business else None,
        event.group(1) if event else None,
    )


async def correlation_id_middleware(request: Request, call_next):
    """Reuse the caller's X-Correlation-ID or mint one, and expose it to every log record"""
    correlation_id = request.headers.get(CORRELATION_HEADER) or str(uuid.uuid4())
    token = correlation_id_var.set(correlation_id)

    try:
        response = await call_next(request)
    finally:
        correlation_id_var.reset(token)

    response.headers[CORRELATION_HEADER] = correlation_id
    return response


async def request_logging_middleware(request: Request, call_next):
    """One line per request with the business it touched and the booking event, if any"""
    start_time = time.perf_counter()
    business_id, event_id = booking_scope(request.url.path)

    response = await call_next(request)

    # A commit names its new event only once the route has run
    event_id = getattr(request.state, "event_id", None) or event_id
    duration_ms = round((time.perf_counter() - start_time) * 1000, 2)

    message = f"{request.method} {request.url.path} -> {response.status_code} in {duration_ms}ms"
    if business_id:
        message += f" business={business_id}"
    if event_id:
        message += f" event={event_id}"

    logger.log(
        logging.WARNING if response.status_code >= 500 else logging.INFO,
        message,
        extra={
            "business_id": business_id,
            "event_id": event_id,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        }
    )

    return response
