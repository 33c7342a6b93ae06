"""Logging setup shared by the API and the CLI."""
import logging
import sys

from src.config import config
from src.parse.redact import redact_string

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s - %(message)s"


class RedactingFilter(logging.Filter):
    """Masks bearer tokens and API keys before a record is emitted."""

    def filter(self, record: logging.LogRecord) -> bool:
        try:
            message = record.getMessage()
        except Exception:
            return True
        redacted = redact_string(message)
        if redacted != message:
            record.msg = redacted
            record.args = None
        return True


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or config.LOG_LEVEL).upper())

    for handler in root.handlers:
        if getattr(handler, "_coupon_search", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    handler.addFilter(RedactingFilter())
    handler._coupon_search = True
    root.addHandler(handler)

    # httpx logs every request line at INFO, including provider URLs
    logging.getLogger("httpx").setLevel(logging.WARNING)
