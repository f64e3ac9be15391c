# booking_assistant/core/error_handlers.py
"""Render service errors as JSON responses"""
import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from booking_assistant.core.exceptions import BookingAssistantError, PartialCommitInconsistency

logger = logging.getLogger(__name__)


async def booking_assistant_error_handler(request: Request, exc: BookingAssistantError):
    if isinstance(exc, PartialCommitInconsistency):
        request.state.event_id = exc.event_id
        logger.error(f"Partial commit on {request.method} {request.url.path}: event {exc.event_id}")
    elif exc.status_code >= 500:
        logger.warning(f"{exc.code} on {request.method} {request.url.path}: {exc.message}")

    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(BookingAssistantError, booking_assistant_error_handler)
