import logging

from clinic_booking.core import config

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def configure_logging() -> None:
    level = getattr(logging, config.LOG_LEVEL, logging.INFO)
    if config.APP_ENV.lower() == "local":
        level = logging.DEBUG
    logging.basicConfig(level=level, format=LOG_FORMAT)
