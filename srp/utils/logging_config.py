import logging

from srp.config import LOG_LEVEL

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = LOG_LEVEL) -> logging.Logger:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    return logging.getLogger("srp")
