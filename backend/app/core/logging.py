"""Structured JSON logging configuration."""
import logging
import sys
from pythonjsonlogger import jsonlogger
from app.core.config import settings

LOG_FORMAT = "%(asctime)s %(name)s %(levelname)s %(message)s"


def setup_logging() -> None:
    """Configure JSON structured logging for production, human-readable for dev."""
    if settings.APP_ENV == "production":
        handler = logging.StreamHandler(sys.stdout)
        formatter = jsonlogger.JsonFormatter(
            LOG_FORMAT,
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
        handler.setFormatter(formatter)
        logging.root.handlers = [handler]
        logging.root.setLevel(logging.INFO)
    else:
        logging.basicConfig(level=logging.INFO, format=LOG_FORMAT)
    # SQL echo is noisy at INFO; keep it to warnings unless asked for.
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
