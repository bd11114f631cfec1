# Copyright (c) Syntropy Systems
"""Configuration management for knockout."""
from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, cast

import yaml

from knockout.errors import ConfigError

if TYPE_CHECKING:
    from collections.abc import Mapping

CONFIG_FILENAME = "config.yaml"
CHECKPOINT_FILENAME = "checkpoint.json"
ENV_PREFIX = "KNOCKOUT_"


@dataclass
class KnockoutConfig:
    """Configuration for knockout."""

    # SSH target; empty host means WordPress runs on this machine
    host: str = ""
    user: str = ""
    port: int = 22

    # WordPress install and WP-CLI
    wp_path: str = ""
    wp_binary: str = "wp"

    # Pages measured on every pass
    urls: list[str] = field(default_factory=list)

    # Wait after each toggle before measuring (seconds)
    settle_delay: float = 5.0

    # Line on stdin that stops the run after the current plugin
    stop_keyword: str = "stop"

    # Lighthouse
    lighthouse_binary: str = "lighthouse"
    chrome_flags: str = "--headless"
    measure_timeout: float = 180.0

    # Timeout for each remote command (seconds)
    command_timeout: float = 120.0

    # Optional summarizer (OpenAI-compatible chat completions)
    summarizer_url: str = ""
    summarizer_model: str = "gpt-4o-mini"
    summarizer_api_key: str = ""

    def to_yaml_dict(self) -> dict[str, object]:
        """Return the settings written by ``knockout init``."""
        return {
            "host": self.host,
            "user": self.user,
            "port": self.port,
            "wp_path": self.wp_path,
            "urls": list(self.urls),
            "settle_delay": self.settle_delay,
            "stop_keyword": self.stop_keyword,
            "lighthouse_binary": self.lighthouse_binary,
            "chrome_flags": self.chrome_flags,
            "measure_timeout": self.measure_timeout,
            "summarizer_url": self.summarizer_url,
            "summarizer_model": self.summarizer_model,
        }


_STR_FIELDS = (
    "host",
    "user",
    "wp_path",
    "wp_binary",
    "stop_keyword",
    "lighthouse_binary",
    "chrome_flags",
    "summarizer_url",
    "summarizer_model",
    "summarizer_api_key",
)
_FLOAT_FIELDS = ("settle_delay", "measure_timeout", "command_timeout")


def find_knockout_dir(start_path: Path | None = None) -> Path | None:
    """Find the nearest .knockout directory by walking up from start_path.

    Returns None if no .knockout directory is found.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()

    while True:
        knockout_dir = current / ".knockout"
        if knockout_dir.is_dir():
            return knockout_dir
        if current == current.parent:
            return None
        current = current.parent


def require_knockout_dir() -> Path:
    """Get knockout directory or raise an error if not found."""
    knockout_dir = find_knockout_dir()
    if knockout_dir is None:
        msg = "No .knockout directory found. Run 'knockout init' first."
        raise RuntimeError(msg)
    return knockout_dir


def get_checkpoint_path(knockout_dir: Path) -> Path:
    """Get the well-known checkpoint path."""
    return knockout_dir / CHECKPOINT_FILENAME


def _apply(config: KnockoutConfig, data: Mapping[str, object], source: str) -> None:
    for name in _STR_FIELDS:
        value = data.get(name)
        if value is not None:
            setattr(config, name, str(value))

    port = data.get("port")
    if port is not None:
        try:
            config.port = int(cast("str", port))
        except (TypeError, ValueError) as e:
            msg = f"{source}: port must be an integer, got {port!r}"
            raise ConfigError(msg) from e

    for name in _FLOAT_FIELDS:
        value = data.get(name)
        if value is None:
            continue
        try:
            number = float(cast("str", value))
        except (TypeError, ValueError) as e:
            msg = f"{source}: {name} must be a number, got {value!r}"
            raise ConfigError(msg) from e
        if number < 0:
            msg = f"{source}: {name} must not be negative"
            raise ConfigError(msg)
        setattr(config, name, number)

    urls = data.get("urls")
    if isinstance(urls, str):
        config.urls = [u.strip() for u in urls.split(",") if u.strip()]
    elif isinstance(urls, list):
        config.urls = [str(u) for u in cast("list[object]", urls)]
    elif urls is not None:
        msg = f"{source}: urls must be a list"
        raise ConfigError(msg)


def load_config(
    knockout_dir: Path | None = None,
    env: Mapping[str, str] | None = None,
) -> KnockoutConfig:
    """Load configuration from .knockout/config.yaml, then the environment.

    Environment variables are the field names upper-cased with a
    ``KNOCKOUT_`` prefix (``KNOCKOUT_HOST``, ``KNOCKOUT_URLS`` as a
    comma-separated list, ...). They override the file.
    """
    config = KnockoutConfig()

    if knockout_dir is None:
        knockout_dir = find_knockout_dir()

    if knockout_dir is not None:
        config_path = knockout_dir / CONFIG_FILENAME
        if config_path.exists():
            with config_path.open() as f:
                try:
                    raw = yaml.safe_load(f) or {}
                except yaml.YAMLError as e:
                    msg = f"{config_path}: invalid YAML: {e}"
                    raise ConfigError(msg) from e
            if not isinstance(raw, dict):
                msg = f"{config_path}: expected a mapping"
                raise ConfigError(msg)
            _apply(config, cast("dict[str, object]", raw), str(config_path))

    if env is None:
        env = os.environ
    from_env: dict[str, object] = {
        key[len(ENV_PREFIX) :].lower(): value
        for key, value in env.items()
        if key.startswith(ENV_PREFIX) and value != ""
    }
    _apply(config, from_env, "environment")

    return config
