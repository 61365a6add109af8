"""Logging configuration."""
import logging
import sys


def setup_logging(level: int = logging.INFO) -> None:
    """Configure application logging."""
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Set third-party loggers to WARNING
    for name in ("httpx", "twilio", "redis", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)


logger = logging.getLogger(__name__)
