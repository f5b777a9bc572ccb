"""
Logging helpers that keep tool- and user-supplied text out of log formats.
"""
import logging
import re
from typing import Dict, Optional

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")
MAX_DETAIL_LENGTH = 300


def scrub(value: Optional[str], limit: int = MAX_DETAIL_LENGTH) -> str:
    """Collapse control characters and truncate a string for logging."""
    if value is None:
        return ""
    text = _CONTROL_CHARS.sub(" ", str(value)).strip()
    if len(text) > limit:
        text = text[:limit] + "..."
    return text


def describe_error(error: BaseException) -> Dict[str, str]:
    """Return a single-line, truncated summary of an exception."""
    return {
        "type": type(error).__name__,
        "message": scrub(str(error)) or "Unknown error",
    }


def log_safe_error(logger: logging.Logger, message: str, error: BaseException) -> None:
    """Log an error as structured fields rather than raw interpolation."""
    details = describe_error(error)
    logger.error("%s (type=%s, detail=%r)", message, details["type"], details["message"])


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging the same way for the API and the CLI."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
