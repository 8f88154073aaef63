"""Layered YAML configuration.

Layers, lowest precedence first:

1. ``config/default.yaml``
2. ``config/environments/<CVASSIST_ENV>.yaml`` when present
3. overrides passed to :meth:`ConfigLoader.load`
4. ``CVASSIST_*`` environment variables (``.env`` is read at import)

An environment variable maps onto nested keys by splitting on underscores,
preferring the longest key that already exists at each level, so
``CVASSIST_QUOTA_DAILY_LIMIT`` lands on ``quota.daily_limit``.
"""

import copy
import os
from pathlib import Path
from typing import Any, Mapping

import yaml
from dotenv import load_dotenv

load_dotenv()

ENV_PREFIX = "CVASSIST_"
# Process switches, not config keys
RESERVED_ENV_VARS = frozenset({"CVASSIST_ENV", "CVASSIST_TEST_MODE"})

DEFAULT_CONFIG_DIR = Path(__file__).resolve().parents[3] / "config"


def read_yaml(path: Path) -> dict[str, Any]:
    """Parse a YAML mapping; a missing or empty file yields ``{}``."""
    if not path.is_file():
        return {}
    with path.open(encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def merge_dicts(lower: dict[str, Any], upper: dict[str, Any]) -> dict[str, Any]:
    """Recursively overlay ``upper`` on ``lower`` without mutating either."""
    merged = dict(lower)
    for key, value in upper.items():
        below = merged.get(key)
        merged[key] = merge_dicts(below, value) if isinstance(below, dict) and isinstance(value, dict) else value
    return merged


def coerce_env_value(raw: str) -> Any:
    """Interpret an environment string as bool, int or float when it looks like one."""
    lowered = raw.lower()
    if lowered in ("true", "yes"):
        return True
    if lowered in ("false", "no"):
        return False
    for cast in (int, float):
        try:
            return cast(raw)
        except ValueError:
            continue
    return raw


def _assign(config: dict[str, Any], segments: list[str], value: Any) -> None:
    node = config
    start = 0
    while start < len(segments):
        # Longest existing key wins; otherwise take a single segment
        stop = start + 1
        for end in range(len(segments), start, -1):
            name = "_".join(segments[start:end])
            if name in node and (end == len(segments) or isinstance(node[name], dict)):
                stop = end
                break
        name = "_".join(segments[start:stop])

        if stop == len(segments):
            node[name] = value
            return
        child = node.setdefault(name, {})
        if not isinstance(child, dict):
            return
        node = child
        start = stop


class ConfigLoader:
    """Builds the merged configuration dictionary for one config directory."""

    def __init__(self, config_dir: Path | str | None = None):
        self.config_dir = Path(config_dir) if config_dir is not None else DEFAULT_CONFIG_DIR

    def load(self, overrides: dict[str, Any] | None = None) -> dict[str, Any]:
        env_name = os.getenv("CVASSIST_ENV", "development")
        layers = [
            read_yaml(self.config_dir / "default.yaml"),
            read_yaml(self.config_dir / "environments" / f"{env_name}.yaml"),
            copy.deepcopy(overrides or {}),
        ]
        config: dict[str, Any] = {}
        for layer in layers:
            config = merge_dicts(config, layer)
        self.apply_environment(config, os.environ)
        return config

    @staticmethod
    def apply_environment(config: dict[str, Any], environ: Mapping[str, str]) -> None:
        """Write ``CVASSIST_*`` variables into ``config`` in place."""
        for key, raw in environ.items():
            if not key.startswith(ENV_PREFIX) or key in RESERVED_ENV_VARS:
                continue
            segments = key[len(ENV_PREFIX):].lower().split("_")
            _assign(config, segments, coerce_env_value(raw))


_loader: ConfigLoader | None = None


def get_config_loader() -> ConfigLoader:
    global _loader
    if _loader is None:
        _loader = ConfigLoader()
    return _loader


def load_config(overrides: dict[str, Any] | None = None) -> dict[str, Any]:
    """Merged configuration from the default config directory."""
    return get_config_loader().load(overrides=overrides)
