"""
Centralised logging configuration.

Call ``setup_logging()`` once at startup (the FastAPI lifespan does this).
Service modules only ever do ``logger = logging.getLogger(__name__)``.
"""
import logging
import sys

from blogcms.config import settings

# Third-party loggers that are too chatty at INFO.
_QUIET_LOGGERS: tuple[str, ...] = (
    "sqlalchemy.pool",
    "aiosqlite",
    "asyncio",
)


def _parse_level(raw: str) -> int:
    level = logging.getLevelName(raw.upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging() -> None:
    """Configure the root logger from ``settings.LOG_LEVEL``."""
    root = logging.getLogger()
    root.setLevel(_parse_level(settings.LOG_LEVEL))

    # Uvicorn usually installs a handler; scripts and tests may not.
    if not root.handlers:
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)-8s %(name)s - %(message)s")
        )
        root.addHandler(handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    # Engine echo is controlled separately so SQL can be traced on demand.
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.SQL_ECHO else logging.WARNING
    )
