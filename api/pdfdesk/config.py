import os
import sys

from loguru import logger

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./pdfdesk.db")
PLAN = os.getenv("PLAN", "free")
FREE_DAILY_LIMIT = int(os.getenv("FREE_DAILY_LIMIT", "2"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))
RENDER_ANNOTATIONS = os.getenv("RENDER_ANNOTATIONS", "true").lower() == "true"
DEFAULT_IMAGE_QUALITY = float(os.getenv("DEFAULT_IMAGE_QUALITY", "0.92"))


def configure_logging(level: str = LOG_LEVEL):
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
