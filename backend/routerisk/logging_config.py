"""
Logging setup for processes that embed route risk analysis.

The library itself only creates module loggers; call configure_logging()
once from the entry point (worker, script, notebook).
"""
import logging
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """
    Configure root logging and silence verbose third-party loggers.

    Args:
        level: Log level name; defaults to settings.LOG_LEVEL
    """
    if level is None:
        from routerisk.config import settings
        level = settings.LOG_LEVEL

    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)

    # requests logs every connection at DEBUG/INFO through urllib3
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("urllib3.connectionpool").setLevel(logging.WARNING)
