import os
from pathlib import Path

from dotenv import load_dotenv
from loguru import logger

__version__ = "0.4.2"

# Load environment variables early so settings overrides are visible to every component
load_dotenv(dotenv_path=Path(__file__).resolve().parents[1] / ".env")


def _detect_build_version() -> str:
    return os.getenv("NOTEMATCH_VERSION") or __version__


BUILD_VERSION = _detect_build_version()

logger.debug("notematch {} loaded", BUILD_VERSION)
