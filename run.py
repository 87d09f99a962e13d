#!/usr/bin/env python3
"""
Run the Comp Match Engine web server (development).

Production deployments use `python main.py serve`, which binds 0.0.0.0:$PORT.
"""

import logging

import uvicorn

from utils.config import Config
from utils.log import setup_logging

logger = logging.getLogger("run")


def main():
    """Start the web server with logs on stdout."""
    config = Config.load()
    setup_logging(config.log_level, fmt=config.log_format)
    logger.info("Starting Comp Match Engine on http://%s:%s", config.host, config.port)
    logger.debug("Configuration: %s", config.to_dict())

    uvicorn.run(
        "web.app:app",
        host=config.host,
        port=config.port,
        reload=config.debug,
        log_config=None,
    )


if __name__ == "__main__":
    main()
