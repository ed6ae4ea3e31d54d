import logging
from saga_ledger.core.config import LOG_LEVEL

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def setup_logging(level: str = LOG_LEVEL):
    """Applies the project log format once per process."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # aio-pika logs every reconnect attempt at INFO
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
    logging.getLogger("aiormq").setLevel(logging.WARNING)
