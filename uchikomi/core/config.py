from __future__ import annotations

import logging
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from uchikomi.core.scoring import RANK_TABLES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path.home() / ".uchikomi" / "config.yaml"


@dataclass(frozen=True)
class EngineConfig:
    rank_table: str = "standard"
    time_limit_ms: Optional[float] = None
    cache_ceiling: int = 1000
    cache_eviction_ratio: float = 0.2
    offload_enabled: bool = False
    offload_threaded: bool = True
    offload_max_in_flight: int = 8
    username: str = "Anonymous"

    def __post_init__(self) -> None:
        if self.rank_table not in RANK_TABLES:
            raise ValueError(
                f"rank_table must be one of {sorted(RANK_TABLES)}, got {self.rank_table!r}"
            )
        if self.time_limit_ms is not None and self.time_limit_ms <= 0:
            raise ValueError(f"time_limit_ms must be positive, got {self.time_limit_ms}")
        if self.cache_ceiling < 1:
            raise ValueError(f"cache_ceiling must be at least 1, got {self.cache_ceiling}")
        if not 0.0 < self.cache_eviction_ratio <= 1.0:
            raise ValueError(
                f"cache_eviction_ratio must be in (0, 1], got {self.cache_eviction_ratio}"
            )
        if self.offload_max_in_flight < 1:
            raise ValueError(
                f"offload_max_in_flight must be at least 1, got {self.offload_max_in_flight}"
            )


def config_from_mapping(raw: Dict[str, Any], source: str = "config") -> EngineConfig:
    """Build an EngineConfig from a parsed YAML mapping, rejecting unknown keys."""
    known = {f.name for f in fields(EngineConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ValueError(f"{source}: unknown setting(s): {', '.join(unknown)}")
    return EngineConfig(**raw)


def load_config(path: Optional[Path] = None) -> EngineConfig:
    """Load settings from YAML. A missing or unreadable file yields the defaults."""
    config_path = path or DEFAULT_CONFIG_PATH
    if not config_path.exists():
        return EngineConfig()
    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
    except (yaml.YAMLError, OSError) as e:
        logger.warning("Could not load config from %s: %s", config_path, e)
        return EngineConfig()
    if raw is None:
        return EngineConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"{config_path.name}: expected a mapping of settings")
    return config_from_mapping(raw, source=config_path.name)
