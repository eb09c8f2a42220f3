"""Collector entry point for the Event Batch Logger."""

import logging

from event_logger.collector import create_app
from event_logger.config import load_collector_config


def main():
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    logger = logging.getLogger(__name__)

    config = load_collector_config()
    app = create_app(config)
    logger.info(
        "Starting analytics collector on %s:%d%s/events",
        config.host,
        config.port,
        config.base_path.rstrip("/"),
    )

    try:
        app.run(host=config.host, port=config.port, debug=config.debug)
    except KeyboardInterrupt:
        logger.info("Interrupted")


if __name__ == "__main__":
    main()
