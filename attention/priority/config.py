"""
Priority configurations.

A configuration is an immutable, named weighting policy. The queue builder
takes one as a parameter; nothing in the engine reads a "current" config
from module state. A variant is a new object built with ``derive()``.
"""

import logging
import math
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

import yaml

from attention.errors import ConfigError

logger = logging.getLogger(__name__)

DIMENSIONS = ("urgency", "importance", "recency", "commitment", "effort")


def _freeze_weights(weights: Mapping[str, float]) -> Mapping[str, float]:
    unknown = set(weights) - set(DIMENSIONS)
    if unknown:
        raise ConfigError(f"Unknown weight dimension(s): {', '.join(sorted(unknown))}")
    frozen = {}
    for dim in DIMENSIONS:
        value = float(weights.get(dim, 0.0))
        if math.isnan(value) or not 0.0 <= value <= 1.0:
            raise ConfigError(f"Weight for {dim!r} must be within [0, 1], got {value!r}")
        frozen[dim] = value
    return MappingProxyType(frozen)


@dataclass(frozen=True)
class PriorityConfig:
    """Weights, selection limits and source thresholds for one config version."""

    name: str
    weights: Mapping[str, float] = field(default_factory=dict)
    max_items: int = 10
    min_score: float = 0.0
    # None = unbounded
    max_items_per_source: int | None = None
    company_stale_threshold: int = 14  # days
    task_stale_threshold: int = 7  # days
    calendar_upcoming_window: int = 48  # hours
    inbox_urgent_window: int = 4  # hours
    description: str = ""

    def __post_init__(self):
        if not self.name:
            raise ConfigError("PriorityConfig needs a name")
        object.__setattr__(self, "weights", _freeze_weights(self.weights))
        if self.max_items < 1:
            raise ConfigError(f"{self.name}: max_items must be >= 1")
        if not 0.0 <= self.min_score <= 1.0:
            raise ConfigError(f"{self.name}: min_score must be within [0, 1]")
        if self.max_items_per_source is not None and self.max_items_per_source < 1:
            raise ConfigError(f"{self.name}: max_items_per_source must be >= 1 or unbounded")
        total = sum(self.weights.values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            logger.warning("Priority config %s weights sum to %.3f, not 1.0", self.name, total)

    def __hash__(self):
        return hash((self.name, tuple(self.weights.items())))

    def weight(self, dimension: str) -> float:
        return self.weights.get(dimension, 0.0)

    def is_weighted(self, dimension: str) -> bool:
        return self.weight(dimension) > 0.0

    def derive(self, name: str, **changes: Any) -> "PriorityConfig":
        """New named config based on this one. ``weights`` merges by dimension."""
        if "weights" in changes:
            changes["weights"] = {**self.weights, **changes["weights"]}
        return replace(self, name=name, **changes)

    def to_dict(self) -> dict:
        data = {f.name: getattr(self, f.name) for f in fields(self)}
        data["weights"] = dict(self.weights)
        return data


V1_CONFIG = PriorityConfig(
    name="v1",
    weights={"urgency": 0.6, "importance": 0.4},
    max_items=8,
    min_score=0.0,
    max_items_per_source=None,
    description="Production: urgency and importance only; recency computed for debugging.",
)

V2_CONFIG = PriorityConfig(
    name="v2",
    weights={
        "urgency": 0.30,
        "importance": 0.25,
        "recency": 0.10,
        "commitment": 0.25,
        "effort": 0.10,
    },
    max_items=12,
    min_score=0.2,
    max_items_per_source=4,
    description="Five dimensions with a score floor and a per-source diversity cap.",
)

DEFAULT_CONFIG = PriorityConfig(
    name="default",
    weights={"urgency": 0.35, "importance": 0.30, "recency": 0.15, "commitment": 0.20},
    max_items=10,
    min_score=0.3,
    max_items_per_source=3,
    description="Balanced weighting without effort.",
)

BUILTIN_CONFIGS = (V1_CONFIG, V2_CONFIG, DEFAULT_CONFIG)
ACTIVE_CONFIG_NAME = "v1"


class ConfigRegistry:
    """Named configurations available to a deployment."""

    def __init__(self, configs=BUILTIN_CONFIGS):
        self._configs: dict[str, PriorityConfig] = {}
        for config in configs:
            self.register(config)

    def register(self, config: PriorityConfig, replace_existing: bool = False) -> None:
        if config.name in self._configs and not replace_existing:
            raise ConfigError(f"Priority config {config.name!r} is already registered")
        self._configs[config.name] = config

    def get(self, name: str) -> PriorityConfig:
        try:
            return self._configs[name]
        except KeyError:
            raise ConfigError(
                f"Unknown priority config {name!r}; known: {', '.join(self.names())}"
            ) from None

    def names(self) -> list[str]:
        return list(self._configs)

    def __contains__(self, name: str) -> bool:
        return name in self._configs

    def __iter__(self):
        return iter(self._configs.values())


_FIELD_NAMES = {f.name for f in fields(PriorityConfig)}


def config_from_mapping(name: str, data: Mapping[str, Any], registry: ConfigRegistry) -> PriorityConfig:
    """Build a config from parsed YAML. ``extends`` names a registered base."""
    data = dict(data)
    base_name = data.pop("extends", None)
    unknown = set(data) - _FIELD_NAMES
    if unknown:
        raise ConfigError(f"{name}: unknown config field(s): {', '.join(sorted(unknown))}")
    if base_name:
        return registry.get(base_name).derive(name, **data)
    return PriorityConfig(name=name, **data)


def load_configs(path: str | Path, registry: ConfigRegistry | None = None) -> ConfigRegistry:
    """
    Register every config declared in a YAML file:

        configs:
          v2_focus:
            extends: v2
            max_items: 5

    Later entries may extend earlier ones.
    """
    registry = registry or ConfigRegistry()
    path = Path(path)
    try:
        with open(path) as f:
            document = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    declared = document.get("configs") or {}
    if not isinstance(declared, dict):
        raise ConfigError(f"{path}: 'configs' must be a mapping")

    for name, body in declared.items():
        if not isinstance(body, dict):
            raise ConfigError(f"{path}: config {name!r} must be a mapping")
        try:
            config = config_from_mapping(str(name), body, registry)
        except TypeError as e:
            raise ConfigError(f"{path}: config {name!r}: {e}") from e
        registry.register(config, replace_existing=True)
        logger.debug("Loaded priority config %s from %s", name, path)
    return registry


def default_registry(path: str | Path | None = None) -> ConfigRegistry:
    """Built-in configs plus those declared in the deployment YAML, if present."""
    from attention import paths

    registry = ConfigRegistry()
    path = Path(path) if path else paths.priority_config_path()
    if path.exists():
        load_configs(path, registry)
    else:
        logger.info("No priority config file at %s; using built-in configs", path)
    return registry
