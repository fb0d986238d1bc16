import logging
from config.settings import settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

def setup_logging(level: str = None):
    """Configure root logging once for the API process"""
    logging.basicConfig(
        level=getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO),
        format=LOG_FORMAT,
    )
    # Stripe's client logs every request at INFO
    logging.getLogger("stripe").setLevel(logging.WARNING)
