from __future__ import annotations

from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml


@dataclass(frozen=True)
class AnalysisConfig:
    # Duration assumed by the CPM engine for beads without one.
    default_duration: int = 1
    # Raise on dangling dependency references instead of dropping them.
    strict: bool = False


DEFAULT_CONFIG = AnalysisConfig()


class ConfigError(ValueError):
    pass


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load analysis settings from a YAML file.

    Format:
      default_duration: 1
      strict: false

    Returns the validated overrides (only keys present in the file).
    """
    p = Path(path)
    raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError("config file must be a mapping of setting -> value")

    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k == "default_duration":
            if not isinstance(v, int) or isinstance(v, bool) or v < 0:
                raise ConfigError("default_duration must be a non-negative integer")
            out[k] = v
        elif k == "strict":
            if not isinstance(v, bool):
                raise ConfigError("strict must be a boolean")
            out[k] = v
        else:
            raise ConfigError(f"unknown setting: {k}")
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> AnalysisConfig:
    """Return DEFAULT_CONFIG with optional overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_and_merge(config_file: str | None) -> AnalysisConfig:
    if not config_file:
        return merged_config()
    return merged_config(load_config_file(config_file))
