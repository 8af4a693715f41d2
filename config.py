"""Configuration management for ChannelBooster."""

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)


def expand_env_vars(value: Any) -> Any:
    """Recursively expand environment variables in strings, dicts, and lists.

    Supports both ${VAR} and $VAR patterns.
    """
    if isinstance(value, str):
        # Expand ${VAR} pattern
        pattern = re.compile(r'\$\{([^}]+)\}')
        result = pattern.sub(lambda m: os.environ.get(m.group(1), ''), value)
        # Expand $VAR pattern
        pattern = re.compile(r'\$([A-Za-z_][A-Za-z0-9_]*)')
        result = pattern.sub(lambda m: os.environ.get(m.group(1), ''), result)
        return result
    elif isinstance(value, dict):
        return {k: expand_env_vars(v) for k, v in value.items()}
    elif isinstance(value, list):
        return [expand_env_vars(item) for item in value]
    else:
        return value


def _split_origins(raw: str) -> list[str]:
    return [o.strip() for o in raw.split(",") if o.strip()]


@dataclass
class WebConfig:
    """Web server configuration."""
    host: str = "0.0.0.0"
    port: int = 8080
    cors_origins: list[str] = field(default_factory=list)  # empty = same-origin only


@dataclass
class YouTubeConfig:
    """Video platform access configuration."""
    api_key: str = ""  # Data API key; empty = always use the yt-dlp fallback
    page_size: int = 50  # items per playlistItems page
    max_items: int = 50  # cap on queue length
    default_duration: int = 300  # seconds, used when a duration lookup fails
    http_timeout: int = 10  # seconds per Data API request
    ydl_timeout: int = 30  # seconds, max wall-clock time for a single yt-dlp operation


@dataclass
class DatabaseConfig:
    """Database configuration."""
    path: str = "db/boost.db"


@dataclass
class BoostingConfig:
    """Boosting session configuration."""
    seed_channels_path: str = "seed-channels.yaml"


@dataclass
class Config:
    """Main configuration container."""
    web: WebConfig = field(default_factory=WebConfig)
    youtube: YouTubeConfig = field(default_factory=YouTubeConfig)
    database: DatabaseConfig = field(default_factory=DatabaseConfig)
    boosting: BoostingConfig = field(default_factory=BoostingConfig)

    @classmethod
    def from_yaml(cls, path: Path | str) -> "Config":
        """Load configuration from YAML file with environment variable expansion."""
        path = Path(path)
        with open(path, "r") as f:
            raw_config = yaml.safe_load(f) or {}

        expanded_config = expand_env_vars(raw_config)

        web_data = dict(expanded_config.get("web") or {})
        youtube_data = expanded_config.get("youtube") or {}
        database_data = expanded_config.get("database") or {}
        boosting_data = expanded_config.get("boosting") or {}

        if isinstance(web_data.get("cors_origins"), str):
            web_data["cors_origins"] = _split_origins(web_data["cors_origins"])

        return cls(
            web=WebConfig(**web_data),
            youtube=YouTubeConfig(**youtube_data),
            database=DatabaseConfig(**database_data),
            boosting=BoostingConfig(**boosting_data),
        )

    @classmethod
    def from_env(cls) -> "Config":
        """Load configuration directly from environment variables."""
        return cls(
            web=WebConfig(
                host=os.environ.get("CB_WEB_HOST", "0.0.0.0"),
                port=int(os.environ.get("CB_WEB_PORT", "8080")),
                cors_origins=_split_origins(os.environ.get("CB_CORS_ORIGINS", "")),
            ),
            youtube=YouTubeConfig(
                api_key=os.environ.get("CB_YOUTUBE_API_KEY", os.environ.get("YOUTUBE_API_KEY", "")),
                page_size=int(os.environ.get("CB_PAGE_SIZE", "50")),
                max_items=int(os.environ.get("CB_MAX_ITEMS", "50")),
                default_duration=int(os.environ.get("CB_DEFAULT_DURATION", "300")),
                http_timeout=int(os.environ.get("CB_HTTP_TIMEOUT", "10")),
                ydl_timeout=int(os.environ.get("CB_YDL_TIMEOUT", "30")),
            ),
            database=DatabaseConfig(
                path=os.environ.get("CB_DB_PATH", "db/boost.db"),
            ),
            boosting=BoostingConfig(
                seed_channels_path=os.environ.get("CB_SEED_CHANNELS", "seed-channels.yaml"),
            ),
        )


def load_config(config_path: str | None = None) -> Config:
    """Load configuration from file or environment.

    Tries in order:
    1. Provided config_path
    2. Default paths: config.yaml, config.yml
    3. Environment variables (fallback)
    """
    config: Config | None = None

    if config_path:
        path = Path(config_path)
        if path.exists():
            config = Config.from_yaml(path)
        else:
            raise FileNotFoundError(f"Config file not found: {config_path}")
    else:
        for default_path in ["config.yaml", "config.yml"]:
            path = Path(default_path)
            if path.exists():
                config = Config.from_yaml(path)
                break

    if config is None:
        config = Config.from_env()

    if not config.youtube.api_key:
        logger.warning("youtube.api_key is empty, queues will be resolved via yt-dlp only")

    yt = config.youtube
    if yt.page_size < 1 or yt.page_size > 50:
        logger.warning("youtube.page_size %r out of range 1-50, using 50", yt.page_size)
        yt.page_size = 50
    if yt.max_items < 1:
        logger.warning("youtube.max_items %r must be positive, using 50", yt.max_items)
        yt.max_items = 50

    return config
