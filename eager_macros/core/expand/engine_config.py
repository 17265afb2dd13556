from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any

import yaml

from eager_macros.core.model import is_identifier


@dataclass(frozen=True)
class EngineConfig:
    # Conventionally one fixed name shared by every declaration.
    sentinel: str = "eager_1"
    expand_keyword: str = "eager"
    restrict_keyword: str = "lazy"
    # Maximum frame stack depth.
    recursion_limit: int = 256
    # Maximum decode steps per entry invocation.
    step_limit: int = 100_000


DEFAULT_CONFIG = EngineConfig()

_IDENT_KEYS = {"sentinel", "expand_keyword", "restrict_keyword"}
_LIMIT_KEYS = {"recursion_limit", "step_limit"}


class EngineConfigError(ValueError):
    pass


def load_config_file(path: str | Path) -> dict[str, Any]:
    """Load engine settings from a YAML file.

    Format:
      sentinel: eager_1
      expand_keyword: eager
      restrict_keyword: lazy
      recursion_limit: 256
      step_limit: 100000

    Every key is optional. Returns the validated overrides.
    """
    p = Path(path)
    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise EngineConfigError(f"config file is not valid YAML: {e}") from e
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise EngineConfigError("config file must be a mapping of setting -> value")

    known = {f.name for f in fields(EngineConfig)}
    out: dict[str, Any] = {}
    for k, v in raw.items():
        if k not in known:
            raise EngineConfigError(f"unknown setting '{k}' (choose from: {', '.join(sorted(known))})")
        if k in _IDENT_KEYS:
            if not is_identifier(v):
                raise EngineConfigError(f"setting '{k}' must be an identifier")
        elif k in _LIMIT_KEYS:
            if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
                raise EngineConfigError(f"setting '{k}' must be a positive integer")
        out[k] = v

    if out.get("expand_keyword", DEFAULT_CONFIG.expand_keyword) == out.get(
        "restrict_keyword", DEFAULT_CONFIG.restrict_keyword
    ):
        raise EngineConfigError("expand_keyword and restrict_keyword must differ")
    return out


def merged_config(overrides: dict[str, Any] | None = None) -> EngineConfig:
    """Return DEFAULT_CONFIG with optional overrides applied."""
    if not overrides:
        return DEFAULT_CONFIG
    return replace(DEFAULT_CONFIG, **overrides)


def load_and_merge(config_file: str | None) -> EngineConfig:
    if not config_file:
        return merged_config()
    overrides = load_config_file(config_file)
    return merged_config(overrides)
