import logging
import os
from typing import Optional

_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: Optional[str] = None) -> None:
    """Configure logging defaults for the service.

    ``LOG_LEVEL`` applies to the ``passgate`` logger tree; third-party loggers
    stay at WARNING unless the root level is lower.
    """
    resolved = (level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(level=logging.WARNING, format=_FORMAT)
    logging.getLogger("passgate").setLevel(resolved)
    logging.getLogger("uvicorn").setLevel(resolved)
