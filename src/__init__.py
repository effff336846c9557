"""MarketRec: embedding-based recommendations for a marketplace backend.

This package provides the recommendation core of a second-hand marketplace:
an in-memory embedding cache kept in step with the relational store, and the
similarity ranking that serves item-to-item and user-to-item queries.

Modules:
    api: FastAPI application and REST API endpoints
    recommender: Embedding cache, similarity ranking and recommendation service
    store: Relational persistence for items, embeddings and likes
    marketplace: Write-path use-cases that keep the cache synchronized
"""

__version__ = "0.1.0"
