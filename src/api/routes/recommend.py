"""Recommendation endpoints for the MarketRec API.

This module provides the item-to-item ("more like this") and user-to-item
("recommended for you") endpoints, plus operator endpoints for inspecting and
reloading the embedding cache.
"""

import logging
import time
from dataclasses import asdict
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field

from src.api.dependencies import (
    get_cache,
    get_config,
    get_current_user_id,
    get_metrics,
    get_recommendation_service,
)
from src.api.metrics import KIND_PERSONALIZED, KIND_SIMILAR, MetricsService
from src.config import ServiceConfig
from src.recommender.cache import EmbeddingCache
from src.recommender.service import RecommendationService
from src.store.models import ItemDisplayRecord

# Configure module logger
logger = logging.getLogger(__name__)

# Create API routers
router = APIRouter(
    prefix="/items",
    tags=["recommendations"],
)

admin_router = APIRouter(
    prefix="/admin/cache",
    tags=["admin"],
)


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests.

    Attributes:
        items: Recommended items, best match first.
    """

    items: List[ItemDisplayRecord] = Field(
        ..., description="Recommended items in rank order"
    )


class SkippedRowResponse(BaseModel):
    item_id: str
    reason: str


class CacheReloadResponse(BaseModel):
    """Result of an explicit cache reload."""

    loaded: int = Field(..., description="Entries in the cache after the reload")
    skipped: List[SkippedRowResponse] = Field(
        default_factory=list, description="Stored embeddings that could not be parsed"
    )
    duration_ms: float = Field(..., description="Reload duration in milliseconds")


class CacheStatusResponse(BaseModel):
    count: int = Field(..., description="Number of cached embeddings")


def _resolve_limit(limit: Optional[int], default: int, config: ServiceConfig) -> int:
    if limit is None:
        return default
    if limit > config.max_recommendation_limit:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"limit must not exceed {config.max_recommendation_limit}",
        )
    return limit


@router.get("/recommend", response_model=RecommendationResponse)
def get_personalized_recommendations(
    limit: Optional[int] = Query(default=None, ge=1),
    user_id: str = Depends(get_current_user_id),
    service: RecommendationService = Depends(get_recommendation_service),
    config: ServiceConfig = Depends(get_config),
    metrics: MetricsService = Depends(get_metrics),
) -> RecommendationResponse:
    """Recommend items based on everything the caller has liked.

    Args:
        limit: Number of items to return (default: PERSONALIZED_LIMIT).
        user_id: Caller, from the X-User-ID header.

    Returns:
        RecommendationResponse with items in rank order. Empty when the user
        has no likes with embeddings.

    Example:
        GET /items/recommend?limit=10  (X-User-ID: u42)
    """
    limit = _resolve_limit(limit, config.personalized_limit, config)

    start_time = time.time()
    items = service.get_personalized_recommendations(user_id, limit)
    metrics.record_recommendation(
        KIND_PERSONALIZED, (time.time() - start_time) * 1000, len(items)
    )

    return RecommendationResponse(items=items)


@router.get("/{item_id}/recommend", response_model=RecommendationResponse)
def get_similar_items(
    item_id: str,
    limit: Optional[int] = Query(default=None, ge=1),
    service: RecommendationService = Depends(get_recommendation_service),
    config: ServiceConfig = Depends(get_config),
    metrics: MetricsService = Depends(get_metrics),
) -> RecommendationResponse:
    """Recommend items similar to ``item_id``.

    Args:
        item_id: Target item.
        limit: Number of items to return (default: SIMILAR_ITEMS_LIMIT).

    Returns:
        RecommendationResponse with items in rank order. Empty when the
        target item has no embedding.

    Example:
        GET /items/01HX.../recommend?limit=4
    """
    limit = _resolve_limit(limit, config.similar_items_limit, config)

    start_time = time.time()
    items = service.get_similar_items(item_id, limit)
    metrics.record_recommendation(
        KIND_SIMILAR, (time.time() - start_time) * 1000, len(items)
    )

    return RecommendationResponse(items=items)


@admin_router.get("", response_model=CacheStatusResponse)
def get_cache_status(cache: EmbeddingCache = Depends(get_cache)) -> CacheStatusResponse:
    """Number of embeddings currently cached."""
    return CacheStatusResponse(count=cache.count())


@admin_router.post("/reload", response_model=CacheReloadResponse)
def reload_cache(cache: EmbeddingCache = Depends(get_cache)) -> CacheReloadResponse:
    """Reload the embedding cache from the database.

    Useful after bulk changes made outside the API (e.g. the embedding
    backfill script). On a store failure the previous cache contents stay in
    place and the error is returned as 503.
    """
    logger.info("Reloading embedding cache...")
    report = cache.reload()

    return CacheReloadResponse(
        loaded=report.loaded,
        skipped=[SkippedRowResponse(**asdict(row)) for row in report.skipped],
        duration_ms=report.duration_ms,
    )
