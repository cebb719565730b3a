"""Environment-driven settings. Values may come from a local .env file."""
import logging
import os
from dotenv import load_dotenv

load_dotenv()

API_BASE_URL = os.getenv("PHYSIO_API_BASE_URL", "http://localhost:8000")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
SEED_DEMO_DATA = os.getenv("SEED_DEMO_DATA", "0") == "1"


def configure_logging(level: str = LOG_LEVEL) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
