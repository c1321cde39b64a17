"""
Priority API Router: the ranked attention queue.

Endpoints:
- GET /api/priority/queue: top items for a user under a named config
- GET /api/priority/configs: configs known to this deployment
"""

import logging

from fastapi import APIRouter, HTTPException, Query

from api.response_models import PriorityConfigListResponse, PriorityQueueResponse
from attention.errors import ConfigError
from attention.priority.config import ACTIVE_CONFIG_NAME, ConfigRegistry, default_registry
from attention.priority.engine import PriorityService
from attention.priority.types import SourceType
from attention.state_store import get_store
from attention.time_utils import parse_timestamp, utc_now

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/priority", tags=["priority"])

# Global instances
_registry: ConfigRegistry | None = None
_service: PriorityService | None = None


def get_config_registry() -> ConfigRegistry:
    """Get or load the config registry (built-ins plus the YAML file)."""
    global _registry
    if _registry is None:
        _registry = default_registry()
    return _registry


def get_priority_service() -> PriorityService:
    global _service
    store = get_store()
    if _service is None or _service.reader.store is not store:
        _service = PriorityService(store)
    return _service


@router.get("/queue", response_model=PriorityQueueResponse)
async def get_priority_queue(
    created_by: str = Query(..., min_length=1, description="Owning user id"),
    config: str = Query(default=ACTIVE_CONFIG_NAME, description="Priority config name"),
    now: str | None = Query(default=None, description="Evaluate as of this ISO timestamp"),
    source_type: list[str] | None = Query(default=None, description="Restrict to these sources"),
    available_minutes: int | None = Query(default=None, ge=0),
    include_all: bool = Query(default=False, description="Also return every scored item"),
):
    """Build the ranked queue for a user."""
    try:
        priority_config = get_config_registry().get(config)
    except ConfigError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    try:
        at = parse_timestamp(now) if now else utc_now()
        if at is None:
            raise ValueError(f"Invalid timestamp for 'now': {now!r}")
        source_types = [SourceType.parse(t) for t in source_type] if source_type else None

        queue = get_priority_service().build_queue(
            created_by,
            priority_config,
            now=at,
            source_types=source_types,
            available_minutes=available_minutes,
        )
        return queue.to_dict(include_all=include_all)

    except ValueError as e:
        logger.error(f"Invalid request: {str(e)}")
        raise HTTPException(status_code=400, detail=str(e)) from e
    except Exception as e:
        logger.error(f"Error building priority queue: {str(e)}")
        raise HTTPException(status_code=500, detail="Internal server error") from e


@router.get("/configs", response_model=PriorityConfigListResponse)
async def list_priority_configs():
    """List every registered config with its weights and limits."""
    registry = get_config_registry()
    return {"active": ACTIVE_CONFIG_NAME, "configs": [c.to_dict() for c in registry]}
