"""FastAPI application main module.

``create_app`` is the composition root: it builds the database engine, the
stores, the embedding cache, the recommendation and write services, and the
metrics service, and hangs them off ``app.state`` for the route handlers.
Nothing is kept in module-level globals, so tests can build as many
independent apps as they like.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.engine import Engine

from src import __version__
from src.api.logging_config import RequestLoggingMiddleware
from src.api.metrics import MetricsService
from src.api.routes import items, recommend
from src.config import ServiceConfig
from src.exceptions import MarketRecException
from src.marketplace.items import ItemWriteService
from src.recommender.cache import EmbeddingCache
from src.recommender.embed import HashingTextEmbedder
from src.recommender.service import RecommendationService
from src.store.db import create_db_engine, init_db
from src.store.item_store import ItemStore
from src.store.like_store import LikeStore

# Configure module logger
logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ServiceConfig] = None,
    *,
    engine: Optional[Engine] = None,
    embedder: Optional[Any] = None,
) -> FastAPI:
    """Build the MarketRec application.

    Args:
        config: Service settings. Defaults to ``ServiceConfig.from_env()``.
        engine: Pre-built SQLAlchemy engine. Defaults to one built from
            ``config.database_url``.
        embedder: Text embedder with an ``embed(text)`` method. Defaults to a
            HashingTextEmbedder of ``config.embedding_dim``.

    Returns:
        Configured FastAPI application.
    """
    if config is None:
        config = ServiceConfig.from_env()
    if engine is None:
        engine = create_db_engine(config.database_url)
    if config.create_schema:
        init_db(engine)
    if embedder is None:
        embedder = HashingTextEmbedder(embedding_dim=config.embedding_dim)

    item_store = ItemStore(engine)
    like_store = LikeStore(engine)
    embedding_cache = EmbeddingCache.from_store(item_store)

    app = FastAPI(
        title="MarketRec API",
        description="Embedding-based item recommendations for a marketplace",
        version=__version__,
    )

    app.state.config = config
    app.state.engine = engine
    app.state.embedding_cache = embedding_cache
    app.state.recommendation_service = RecommendationService(
        cache=embedding_cache,
        item_store=item_store,
        like_store=like_store,
    )
    app.state.item_write_service = ItemWriteService(
        item_store=item_store,
        like_store=like_store,
        cache=embedding_cache,
        embedder=embedder,
    )
    app.state.metrics = MetricsService()

    app.add_middleware(RequestLoggingMiddleware)
    app.add_exception_handler(MarketRecException, _handle_marketrec_exception)

    # Include routers
    app.include_router(recommend.router)
    app.include_router(recommend.admin_router)
    app.include_router(items.router)

    @app.get("/ping")
    def ping() -> Dict[str, str]:
        """Health check endpoint.

        Returns:
            Dictionary with status key set to "ok".

        Example:
            >>> response = client.get("/ping")
            >>> assert response.json() == {"status": "ok"}
        """
        return {"status": "ok"}

    @app.get("/status")
    def service_status(request: Request) -> Dict[str, Any]:
        """Cache size and recommendation metrics."""
        return {
            "version": __version__,
            "cached_embeddings": request.app.state.embedding_cache.count(),
            "metrics": request.app.state.metrics.get_metrics(),
        }

    logger.info(
        "Application created",
        extra={"cached_embeddings": embedding_cache.count()},
    )
    return app


async def _handle_marketrec_exception(
    request: Request, exc: MarketRecException
) -> JSONResponse:
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        exc.message,
        extra={
            "path": str(request.url.path),
            "status_code": exc.status_code,
            "error_type": type(exc).__name__,
        },
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": type(exc).__name__,
            "message": exc.message,
            "details": exc.details,
        },
    )


if __name__ == "__main__":
    import sys
    from pathlib import Path

    import uvicorn

    # Add project root to Python path for imports
    project_root = Path(__file__).parent.parent.parent
    sys.path.insert(0, str(project_root))

    from src.api.logging_config import setup_logging

    setup_logging(ServiceConfig.from_env().log_level)

    uvicorn.run(
        "src.api.main:create_app",
        factory=True,
        host="0.0.0.0",
        port=8000,
    )
