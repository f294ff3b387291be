from __future__ import annotations

import logging
import os
import sys
from dataclasses import dataclass

from archiver.errors import ConfigurationError

DEFAULT_ENDPOINT = "https://api.meetup.com/gql-ext"
DEFAULT_EXCLUDED_HOST = "OWASP® Foundation"
PLACEHOLDER_TOKEN = "your_token_here"


@dataclass
class ArchiverConfig:
    access_token: str
    endpoint: str
    user_agent: str
    timeout_s: float
    image_timeout_s: float
    page_size: int
    max_pages: int
    rate_limit_points: int
    rate_limit_window_s: float
    image_concurrency: int
    images_per_second: float
    excluded_host: str
    output_dir: str
    log_level: str


def load_config_from_env() -> ArchiverConfig:
    access_token = os.environ.get("MEETUP_ACCESS_TOKEN", "").strip()
    if not access_token or access_token == PLACEHOLDER_TOKEN:
        raise ConfigurationError("MEETUP_ACCESS_TOKEN not configured")

    try:
        return ArchiverConfig(
            access_token=access_token,
            endpoint=os.environ.get("MEETUP_GRAPHQL_ENDPOINT", DEFAULT_ENDPOINT),
            user_agent=os.environ.get("MEETUP_USER_AGENT", "meetup-archiver/0.1"),
            timeout_s=float(os.environ.get("MEETUP_TIMEOUT_S", "30")),
            image_timeout_s=float(os.environ.get("MEETUP_IMAGE_TIMEOUT_S", "10")),
            page_size=int(os.environ.get("MEETUP_PAGE_SIZE", "20")),
            max_pages=int(os.environ.get("MEETUP_MAX_PAGES", "500")),
            rate_limit_points=int(os.environ.get("MEETUP_RATE_LIMIT_POINTS", "500")),
            rate_limit_window_s=float(os.environ.get("MEETUP_RATE_LIMIT_WINDOW_S", "60")),
            image_concurrency=int(os.environ.get("MEETUP_IMAGE_CONCURRENCY", "4")),
            images_per_second=float(os.environ.get("MEETUP_IMAGES_PER_SECOND", "20")),
            excluded_host=os.environ.get("MEETUP_EXCLUDED_HOST", DEFAULT_EXCLUDED_HOST),
            output_dir=os.environ.get("MEETUP_OUTPUT_DIR", "output"),
            log_level=os.environ.get("LOG_LEVEL", "INFO"),
        )
    except ValueError as e:
        raise ConfigurationError(f"Invalid numeric setting: {e}") from e


def setup_logging(log_level: str = "INFO") -> None:
    """
    Configure the root logger with a single stderr handler.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter("[%(name)s] %(levelname)s: %(message)s"))
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))
