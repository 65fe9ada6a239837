"""Programmatic uvicorn entry point for OSINT Hub.

Reads host and port from the loaded config (127.0.0.1:3000 by default) and
starts uvicorn with hardened connection limits.

Usage:
    python -m osinthub.run
    osinthub                    # via pyproject.toml [project.scripts]
"""

from __future__ import annotations

import uvicorn

from osinthub.config import load_config
from osinthub.utils.logger import get_logger

logger = get_logger(__name__)

# Must match POOL_MAX_CONNECTIONS in osinthub/constants.py.
UVICORN_LIMIT_CONCURRENCY: int = 100

UVICORN_BACKLOG: int = 50

UVICORN_TIMEOUT_KEEP_ALIVE: int = 5


def main() -> None:
    """Start the server.

    Raises:
        SystemExit: Propagated from load_config() on config errors.
    """
    config = load_config()
    logger.info(
        "Starting OSINT Hub",
        host=config.server.host,
        port=config.server.port,
        environment=config.session.environment,
    )

    uvicorn.run(
        "osinthub.main:app",
        host=config.server.host,
        port=config.server.port,
        limit_concurrency=UVICORN_LIMIT_CONCURRENCY,
        backlog=UVICORN_BACKLOG,
        timeout_keep_alive=UVICORN_TIMEOUT_KEEP_ALIVE,
    )


if __name__ == "__main__":
    main()
