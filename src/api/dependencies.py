"""Request-scoped accessors for the components wired up in ``create_app``."""

from typing import Optional

from fastapi import Header, Request

from src.api.metrics import MetricsService
from src.config import ServiceConfig
from src.exceptions import AuthenticationRequiredError
from src.marketplace.items import ItemWriteService
from src.recommender.cache import EmbeddingCache
from src.recommender.service import RecommendationService

USER_ID_HEADER = "X-User-ID"


def get_config(request: Request) -> ServiceConfig:
    return request.app.state.config


def get_cache(request: Request) -> EmbeddingCache:
    return request.app.state.embedding_cache


def get_recommendation_service(request: Request) -> RecommendationService:
    return request.app.state.recommendation_service


def get_item_write_service(request: Request) -> ItemWriteService:
    return request.app.state.item_write_service


def get_metrics(request: Request) -> MetricsService:
    return request.app.state.metrics


def get_current_user_id(
    x_user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER)
) -> str:
    """User identity of the caller.

    Authentication happens upstream; this service only trusts the header it
    forwards.
    """
    if x_user_id is None or not x_user_id.strip():
        raise AuthenticationRequiredError()
    return x_user_id.strip()
