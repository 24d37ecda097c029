#!/usr/bin/env python3

import os
import json
import tomllib
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from .exit_codes import ConfigError

logger = logging.getLogger("bbserver")

CONFIG_FILENAMES = ['config.json', 'config.toml', 'config.yaml', 'config.yml']


def get_config_path():
    """Get the path to the configuration file.

    Checks in order:
    1. BBSERVER_CONFIG environment variable
    2. ~/.bbserver/ directory
    """
    if 'BBSERVER_CONFIG' in os.environ:
        path = Path(os.environ['BBSERVER_CONFIG'])
        if path.exists():
            return path

    bbserver_dir = Path.home() / '.bbserver'
    for filename in CONFIG_FILENAMES:
        path = bbserver_dir / filename
        if path.exists() and path.stat().st_size > 10:  # Not empty/trivial
            return path

    # Default location when no file exists
    return bbserver_dir / 'config.json'


def load_config():
    """Load configuration from file."""
    config_path = get_config_path()

    # Start with default config
    config = get_default_config()

    if config_path.exists():
        logger.debug(f"Loading configuration from {config_path}")
        try:
            if config_path.suffix.lower() in ['.toml']:
                with open(config_path, 'rb') as f:
                    file_config = tomllib.load(f)
            elif config_path.suffix.lower() in ['.yaml', '.yml']:
                with open(config_path, 'r') as f:
                    file_config = yaml.safe_load(f)
            else:
                with open(config_path, 'r') as f:
                    file_config = json.load(f)
        except (OSError, ValueError, yaml.YAMLError) as e:
            raise ConfigError(f"Error loading config from {config_path}: {e}") from e

        if file_config:
            if not isinstance(file_config, dict):
                raise ConfigError(f"Config file {config_path} must contain a mapping")
            config = merge_configs(config, file_config)

    return apply_env_overrides(config)


def get_default_config():
    """Get default configuration."""
    return {
        "bitbucket-server-domains": [],
        "cache-repo-dir": str(Path.home() / '.bbserver' / 'cache' / 'repo'),
        "cache-read-only": False,
        "secure-http": True,
        "http": {
            "timeout_seconds": 30,
            "max_retries": 3,
            "base_delay": 1.0,
            "max_delay": 60.0,
            "token": "",
            "username": "",
            "password": "",
        },
        "logging": {
            "level": "INFO",
            "format": "%(levelname)s: %(message)s"
        },
    }


def merge_configs(base_config, override_config):
    """
    Recursively merge two configuration dictionaries.

    Args:
        base_config (dict): Base configuration
        override_config (dict): Configuration to merge/override with

    Returns:
        dict: Merged configuration
    """
    merged = base_config.copy()

    for key, value in override_config.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = merge_configs(merged[key], value)
        else:
            merged[key] = value

    return merged


def _split_key(key: str):
    return key.replace('-', '_').split('_')


def _coerce_env_value(value: str, current: Any):
    if isinstance(current, list):
        return [item.strip() for item in value.split(',') if item.strip()]
    if value.lower() in ('true', '1', 'yes', 'on'):
        return True
    if value.lower() in ('false', '0', 'no', 'off'):
        return False
    if value.isdigit():
        return int(value)
    return value


def apply_env_overrides(config):
    """
    Apply environment variable overrides to configuration.
    Environment variables follow the pattern: BBSERVER_SECTION_KEY, with dashes
    in key names written as underscores.
    For example: BBSERVER_CACHE_READ_ONLY=true or
    BBSERVER_BITBUCKET_SERVER_DOMAINS=git.example.com,example.com/bitbucket
    """
    env_prefix = "BBSERVER_"

    for env_key, value in os.environ.items():
        if not env_key.startswith(env_prefix) or env_key == 'BBSERVER_CONFIG':
            continue

        key_parts = env_key[len(env_prefix):].lower().split('_')

        current_level = config
        i = 0
        while i < len(key_parts):
            # Find the longest key in current_level that is a prefix of the remaining key_parts
            best_match_len = 0
            matched_key = None

            for config_key in current_level.keys():
                config_key_parts = _split_key(config_key)
                if key_parts[i:i + len(config_key_parts)] == config_key_parts:
                    if len(config_key_parts) > best_match_len:
                        best_match_len = len(config_key_parts)
                        matched_key = config_key

            if not matched_key:
                break

            if i + best_match_len == len(key_parts):
                current_level[matched_key] = _coerce_env_value(value, current_level[matched_key])
                break

            if isinstance(current_level[matched_key], dict):
                current_level = current_level[matched_key]
                i += best_match_len
            else:
                # Path conflict: env var is longer but we found a non-dict value
                break

    return config


def configure_logging(config: Optional[Dict[str, Any]] = None, verbose: bool = False) -> None:
    """Configure root logging on stderr from the ``logging`` section."""
    settings = (config or get_default_config()).get('logging', {})
    level = 'DEBUG' if verbose else str(settings.get('level', 'INFO')).upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format=settings.get('format', '%(levelname)s: %(message)s'),
        handlers=[logging.StreamHandler(sys.stderr)],
        force=True,
    )


@dataclass(frozen=True)
class DriverConfig:
    """Immutable view of the settings the driver needs."""
    bitbucket_server_domains: Tuple[str, ...] = ()
    cache_repo_dir: Path = Path.home() / '.bbserver' / 'cache' / 'repo'
    cache_read_only: bool = False
    secure_http: bool = True
    http_timeout: float = 30
    http_max_retries: int = 3
    http_base_delay: float = 1.0
    http_max_delay: float = 60.0
    http_token: str = ""
    http_username: str = ""
    http_password: str = ""

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> 'DriverConfig':
        """Create from a loaded configuration dictionary."""
        domains = config.get('bitbucket-server-domains') or []
        if isinstance(domains, str):
            domains = [domains]
        if not isinstance(domains, (list, tuple)):
            raise ConfigError("bitbucket-server-domains must be a list of domains")

        http = config.get('http', {})
        try:
            return cls(
                bitbucket_server_domains=tuple(str(d).strip().lower() for d in domains if str(d).strip()),
                cache_repo_dir=Path(config.get('cache-repo-dir', cls.cache_repo_dir)).expanduser(),
                cache_read_only=bool(config.get('cache-read-only', False)),
                secure_http=bool(config.get('secure-http', True)),
                http_timeout=float(http.get('timeout_seconds', 30)),
                http_max_retries=int(http.get('max_retries', 3)),
                http_base_delay=float(http.get('base_delay', 1.0)),
                http_max_delay=float(http.get('max_delay', 60.0)),
                http_token=str(http.get('token') or ""),
                http_username=str(http.get('username') or ""),
                http_password=str(http.get('password') or ""),
            )
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid http settings: {e}") from e


def load_driver_config() -> DriverConfig:
    """Load configuration from disk and the environment as a DriverConfig."""
    return DriverConfig.from_dict(load_config())
