"""
Run the gateway with uvicorn.

    python -m drive_gateway

Configuration problems are reported before the server starts and exit
with status 1.
"""

import logging
import sys

import uvicorn

from .config.settings import get_settings
from .core.errors import ConfigurationError
from .main import check_configuration

logger = logging.getLogger("drive_gateway")


def main() -> int:
    settings = get_settings()

    try:
        check_configuration(settings)
    except ConfigurationError as e:
        logger.error("ERROR: %s", e.message)
        return 1

    uvicorn.run(
        "drive_gateway.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
