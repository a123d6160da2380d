"""Configuration loading for the quotation workflow.

Settings come from three layers, later layers winning:

1. Built-in defaults.
2. A YAML file (``QUOTEFLOW_CONFIG`` or the ``config_path`` argument).
3. Environment variables, including those loaded from a ``.env`` file.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

MB = 1024 * 1024


@dataclass
class Settings:
    """Runtime settings for the workflow core."""

    backend: str = "aws"
    region: str = "us-east-2"
    document_bucket: str = ""
    render_lambda_arn: str = ""
    render_timeout: int = 30
    table_prefix: str = ""
    tables: Dict[str, str] = field(
        default_factory=lambda: {
            "quotations": "quotations",
            "bookings": "booking",
            "users": "iboard_users",
            "companies": "companies",
            "products": "products",
        }
    )
    page_size: int = 10
    live_poll_interval: float = 5.0
    presigned_url_expiration: int = 3600
    password_length: int = 8
    evidence_max_bytes: int = 10 * MB
    evidence_content_types: List[str] = field(default_factory=lambda: ["application/pdf"])
    sent_from: str = "Boohk"
    log_level: str = "INFO"

    def table_name(self, collection: str) -> str:
        """Get the physical table name for a logical collection."""
        return f"{self.table_prefix}{self.tables.get(collection, collection)}"


_ENV_OVERRIDES = {
    "QUOTEFLOW_BACKEND": ("backend", str),
    "AWS_REGION": ("region", str),
    "DOCUMENT_BUCKET": ("document_bucket", str),
    "PDF_RENDER_LAMBDA_ARN": ("render_lambda_arn", str),
    "QUOTEFLOW_PAGE_SIZE": ("page_size", int),
    "QUOTEFLOW_LOG_LEVEL": ("log_level", str),
    "QUOTEFLOW_TABLE_PREFIX": ("table_prefix", str),
}


def _load_yaml(config_path: Optional[str]) -> Dict[str, Any]:
    if config_path and os.path.exists(config_path):
        with open(config_path) as f:
            return yaml.safe_load(f) or {}
    if config_path:
        logger.warning(f"Config file not found: {config_path}, using defaults")
    return {}


def load_settings(config_path: Optional[str] = None) -> Settings:
    """Build settings from defaults, an optional YAML file and the environment.

    Args:
        config_path: Path to a YAML config file. Falls back to ``QUOTEFLOW_CONFIG``.

    Returns:
        Populated Settings instance
    """
    load_dotenv()

    raw = _load_yaml(config_path or os.getenv("QUOTEFLOW_CONFIG"))
    settings = Settings()

    for key, value in raw.items():
        if not hasattr(settings, key):
            logger.warning(f"Ignoring unknown config key: {key}")
            continue
        if key == "tables" and isinstance(value, dict):
            settings.tables.update(value)
        else:
            setattr(settings, key, value)

    for env_name, (attr, cast) in _ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            setattr(settings, attr, cast(value))

    # Offline mode always wins
    if os.getenv("NO_NETWORK") == "1":
        settings.backend = "memory"

    return settings
