import logging
import sys

from creo.core.config import settings

ROOT_LOGGER = 'creo'


def configure_logging() -> None:
    level = logging.DEBUG if settings.debug else getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=level,
        format='[%(asctime)s] [%(levelname)s] [%(threadName)s] [%(name)s] %(message)s',
        stream=sys.stdout,
    )
    # httpx logs every request at INFO.
    logging.getLogger('httpx').setLevel(max(level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f'{ROOT_LOGGER}.{name}')
