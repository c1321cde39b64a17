"""
Unified priority scoring.

Usage:
    from attention.priority import V1_CONFIG, build_priority_queue

    queue = build_priority_queue({"task": tasks, "inbox": messages}, V1_CONFIG, now)
    for item in queue.items:
        print(item.priority_score, item.title, item.reasoning)
"""

from .adapters import ADAPTERS, map_to_priority_item
from .config import (
    ACTIVE_CONFIG_NAME,
    DEFAULT_CONFIG,
    V1_CONFIG,
    V2_CONFIG,
    ConfigRegistry,
    PriorityConfig,
    default_registry,
    load_configs,
)
from .engine import PriorityQueue, PriorityService, SourceReader, build_priority_queue
from .rules import select_top_items
from .scoring import DimensionScores, aggregate, generate_signals
from .types import IconType, PriorityItem, PrioritySignal, SourceType

__all__ = [
    "ADAPTERS",
    "map_to_priority_item",
    "ACTIVE_CONFIG_NAME",
    "DEFAULT_CONFIG",
    "V1_CONFIG",
    "V2_CONFIG",
    "ConfigRegistry",
    "PriorityConfig",
    "default_registry",
    "load_configs",
    "PriorityQueue",
    "PriorityService",
    "SourceReader",
    "build_priority_queue",
    "select_top_items",
    "DimensionScores",
    "aggregate",
    "generate_signals",
    "IconType",
    "PriorityItem",
    "PrioritySignal",
    "SourceType",
]
