"""
Logging configuration.

Level comes from settings.log_level (DEBUG when settings.debug). Payment state changes
log under app.services.payments; gateway faults use logger.exception (app/services/gateway.py).
"""
import logging
import sys

from app.core.config import settings

DEFAULT_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_level(level: int | str | None = None) -> int:
    if level is None:
        level = "DEBUG" if settings.debug else settings.log_level
    if isinstance(level, int):
        return level
    # getLevelName returns "Level X" for unknown names
    value = logging.getLevelName(str(level).strip().upper())
    return value if isinstance(value, int) else logging.INFO


def setup_logging(level: int | str | None = None, format_string: str | None = None) -> int:
    level = resolve_level(level)
    logging.basicConfig(level=level, format=format_string or DEFAULT_FORMAT, stream=sys.stdout, force=True)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access", "app"):
        logging.getLogger(name).setLevel(level)
    # SQL echo only while debugging
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if settings.debug else logging.WARNING)
    return level
