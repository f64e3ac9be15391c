# booking_assistant/utils/my_logging.py
"""Logging configuration"""
import logging
import sys
from contextvars import ContextVar

from booking_assistant.config.settings import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s"

# Set per request by the correlation id middleware
correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

# Discovery cache warnings, per-request client chatter and uvicorn's own access
# line, which duplicates the request log
QUIET_LOGGERS = (
    "googleapiclient.discovery_cache",
    "urllib3.connectionpool",
    "sqlalchemy.engine",
    "uvicorn.access",
)


class CorrelationIdFilter(logging.Filter):
    """Stamp each record with the correlation id of the request it was logged in"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "correlation_id"):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(level: str = None):
    """Configure application logging"""
    settings = get_settings()
    level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.addFilter(CorrelationIdFilter())

    logging.basicConfig(level=level, format=LOG_FORMAT, handlers=[handler])

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
