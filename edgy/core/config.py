"""Runtime configuration for Edgy.

Values come from environment variables (a local ``.env`` is loaded via
python-dotenv) and may be overridden by a YAML file pointed to by
``EDGY_CONFIG``. The YAML keys are the lower-cased field names of
:class:`Settings`.

Usage:
    from edgy.core.config import get_settings
    settings = get_settings()
    settings.screens_per_batch  # 4
"""

import logging
import os
from dataclasses import dataclass, field, fields
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

import yaml
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_DIR = Path(__file__).resolve().parent.parent / "knowledge"


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={raw!r}, using {default}")
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Ignoring non-numeric {name}={raw!r}, using {default}")
        return default


@dataclass
class Settings:
    """Service-wide settings. Build with :func:`get_settings`."""

    knowledge_dir: str = str(DEFAULT_KNOWLEDGE_DIR)

    # Response cache
    cache_ttl_seconds: float = 3600.0
    cache_max_entries: int = 200

    # Review batching
    screens_per_batch: int = 4
    max_concurrent_batches: int = 3

    # Gateway
    llm_max_retries: int = 1
    llm_initial_retry_delay: float = 1.0
    llm_timeout: float = 120.0
    anthropic_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None

    # Models
    claude_review_model: str = "claude-haiku-4-5-20251001"
    claude_generation_model: str = "claude-sonnet-4-20250514"
    gemini_model: str = "gemini-3-flash-preview"
    review_max_tokens: int = 8192
    generation_max_tokens: int = 4096

    # HTTP
    cors_origins: List[str] = field(default_factory=lambda: ["*"])

    def credential_for(self, provider: str) -> Optional[str]:
        """Server-side API key for a provider name ("claude" or "gemini")."""
        if provider == "gemini":
            return self.gemini_api_key
        return self.anthropic_api_key


def _apply_yaml_overrides(settings: Settings, path: str) -> None:
    config_path = Path(path)
    if not config_path.exists():
        logger.warning(f"Config file {config_path} not found, using environment settings")
        return

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    known = {f.name for f in fields(Settings)}
    for key, value in data.items():
        if key not in known:
            logger.warning(f"Unknown config key '{key}' in {config_path}")
            continue
        setattr(settings, key, value)
    logger.info(f"Loaded config overrides from {config_path}")


def load_settings() -> Settings:
    """Build settings from the environment plus an optional YAML overlay."""
    origins = os.getenv("EDGY_CORS_ORIGINS", "*")
    settings = Settings(
        knowledge_dir=os.getenv("EDGY_KNOWLEDGE_DIR", str(DEFAULT_KNOWLEDGE_DIR)),
        cache_ttl_seconds=_env_float("EDGY_CACHE_TTL_SECONDS", 3600.0),
        cache_max_entries=_env_int("EDGY_CACHE_MAX_ENTRIES", 200),
        screens_per_batch=_env_int("EDGY_SCREENS_PER_BATCH", 4),
        max_concurrent_batches=_env_int("EDGY_MAX_CONCURRENT_BATCHES", 3),
        llm_max_retries=_env_int("EDGY_LLM_MAX_RETRIES", 1),
        llm_initial_retry_delay=_env_float("EDGY_LLM_INITIAL_RETRY_DELAY", 1.0),
        llm_timeout=_env_float("EDGY_LLM_TIMEOUT", 120.0),
        anthropic_api_key=os.getenv("ANTHROPIC_API_KEY") or None,
        gemini_api_key=os.getenv("GEMINI_API_KEY") or None,
        cors_origins=[o.strip() for o in origins.split(",") if o.strip()],
    )

    config_path = os.getenv("EDGY_CONFIG")
    if config_path:
        _apply_yaml_overrides(settings, config_path)

    return settings


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, built once."""
    return load_settings()
