#!/usr/bin/env python3
"""
Configuration
Resolves the Lotus client settings from defaults, the process environment,
.thctl.env files and explicit overrides
"""

import logging
import os
import re
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

from dotenv import dotenv_values

from .exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_ENDPOINT = "http://127.0.0.1:1234/rpc/v0"
DEFAULT_TIMEOUT = 30.0
DEFAULT_RETRY_COUNT = 3
ENV_FILE_NAME = ".thctl.env"

ENV_ENDPOINT = "LOTUS_API_URL"
ENV_TOKEN = "LOTUS_API_TOKEN"
ENV_TIMEOUT = "LOTUS_API_TIMEOUT"
ENV_RETRY_COUNT = "LOTUS_API_RETRY_COUNT"

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ns|us|µs|ms|s|m|h)")


@dataclass(frozen=True)
class ClientConfig:
    """Resolved settings consumed by LotusClient"""
    endpoint: str = DEFAULT_ENDPOINT
    auth_token: str = ""
    timeout: float = DEFAULT_TIMEOUT
    retry_count: int = DEFAULT_RETRY_COUNT

    def __post_init__(self):
        if self.timeout <= 0:
            raise ConfigError(f"timeout must be positive, got {self.timeout}")
        if self.retry_count < 0:
            raise ConfigError(f"retry count must be >= 0, got {self.retry_count}")

    def redacted(self) -> Dict[str, object]:
        """Settings safe to print: the token is reduced to whether it is set"""
        return {
            "endpoint": self.endpoint,
            "auth_token": "configured" if self.auth_token else "",
            "timeout": self.timeout,
            "retry_count": self.retry_count,
        }


def parse_duration(text: str) -> float:
    """
    Parse a Go-style duration ("30s", "1m30s", "500ms") or bare seconds into seconds

    Raises:
        ConfigError: if the text is not a valid duration
    """
    value = (text or "").strip()
    if not value:
        raise ConfigError("empty duration")

    try:
        return float(value)
    except ValueError:
        pass

    position = 0
    total = 0.0
    for match in _DURATION_PART.finditer(value):
        if match.start() != position:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        position = match.end()

    if position != len(value):
        raise ConfigError(f"invalid duration: {text!r}")
    return total


def _parse_retry_count(text: str) -> int:
    try:
        return int(text.strip())
    except ValueError:
        raise ConfigError(f"invalid retry count: {text!r}")


def find_env_file(env_file: Optional[str] = None) -> Optional[Path]:
    """Locate the .thctl.env file: explicit path, then current directory, then home directory"""
    if env_file:
        path = Path(env_file).expanduser()
        if not path.is_file():
            raise ConfigError(f"env file not found: {env_file}")
        return path

    candidates = [Path.cwd() / ENV_FILE_NAME, Path.home() / ENV_FILE_NAME]
    for candidate in candidates:
        if candidate.is_file():
            return candidate
    return None


def _read_settings(source: Mapping[str, Optional[str]]) -> Dict[str, object]:
    settings = {}
    if source.get(ENV_ENDPOINT):
        settings["endpoint"] = source[ENV_ENDPOINT].strip()
    if source.get(ENV_TOKEN):
        settings["auth_token"] = source[ENV_TOKEN].strip()
    if source.get(ENV_TIMEOUT):
        settings["timeout"] = parse_duration(source[ENV_TIMEOUT])
    if source.get(ENV_RETRY_COUNT):
        settings["retry_count"] = _parse_retry_count(source[ENV_RETRY_COUNT])
    return settings


def load_config(env_file: Optional[str] = None,
                environ: Optional[Mapping[str, str]] = None,
                **overrides) -> ClientConfig:
    """
    Build a ClientConfig

    Precedence, lowest to highest: defaults, process environment,
    .thctl.env file, explicit keyword overrides (None values are ignored).
    The process environment is only read, never modified.

    Args:
        env_file: Explicit env file path (skips the directory search)
        environ: Environment mapping, defaults to os.environ
        **overrides: endpoint, auth_token, timeout, retry_count

    Returns:
        Immutable ClientConfig
    """
    config = ClientConfig()

    env_settings = _read_settings(os.environ if environ is None else environ)
    if env_settings:
        config = replace(config, **env_settings)

    path = find_env_file(env_file)
    if path is not None:
        logger.debug(f"Loading configuration from {path}")
        file_settings = _read_settings(dotenv_values(path))
        if file_settings:
            config = replace(config, **file_settings)

    unknown = set(overrides) - {"endpoint", "auth_token", "timeout", "retry_count"}
    if unknown:
        raise ConfigError(f"unknown configuration keys: {', '.join(sorted(unknown))}")

    explicit = {key: value for key, value in overrides.items() if value is not None}
    if explicit:
        config = replace(config, **explicit)

    logger.debug(f"Resolved configuration: {config.redacted()}")
    return config
