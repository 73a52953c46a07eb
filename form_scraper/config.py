"""YAML config loader and credential resolution."""

import os
from dataclasses import dataclass, field
from typing import Optional

import yaml

from .errors import ConfigurationError

API_KEY_ENV_VAR = "EXTEND_API_KEY"


@dataclass
class DownloadConfig:
    timeout: int = 120
    # Some government sites reject default client identifiers
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/124.0 Safari/537.36"
    )
    max_file_size: int = 104857600


@dataclass
class ExtendConfig:
    base_url: str = "https://api.extend.app/v1"
    api_version: str = "2025-04-21"
    timeout: int = 120
    poll_interval: float = 5.0
    max_attempts: int = 60
    backoff_factor: float = 1.0
    max_interval: float = 30.0


@dataclass
class BatchConfig:
    workers: int = 1
    include_instructions: bool = False


@dataclass
class AppConfig:
    output_dir: str = "forms"
    log_dir: str = "logs"
    download: DownloadConfig = field(default_factory=DownloadConfig)
    extend: ExtendConfig = field(default_factory=ExtendConfig)
    batch: BatchConfig = field(default_factory=BatchConfig)


def _section(cls, raw: dict, name: str):
    section = raw.get(name) or {}
    return cls(**{k: v for k, v in section.items() if k in cls.__dataclass_fields__})


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load config from YAML. A missing file means all defaults."""
    if not os.path.exists(config_path):
        return AppConfig()

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return AppConfig(
        output_dir=raw.get("output_dir", "forms"),
        log_dir=raw.get("log_dir", "logs"),
        download=_section(DownloadConfig, raw, "download"),
        extend=_section(ExtendConfig, raw, "extend"),
        batch=_section(BatchConfig, raw, "batch"),
    )


def resolve_api_key(api_key: Optional[str] = None, env_var: str = API_KEY_ENV_VAR) -> str:
    """Explicit key first, then the environment. Raises ConfigurationError when neither is set."""
    key = api_key or os.environ.get(env_var)
    if not key:
        raise ConfigurationError(
            f"API key required. Use --api-key or set {env_var} environment variable."
        )
    return key
