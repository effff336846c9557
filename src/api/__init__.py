"""FastAPI application module for MarketRec.

This module contains the application factory, route handlers, and API
endpoints for the recommendation service: item-to-item and personalized
recommendations, the item write paths that keep the embedding cache in sync,
and cache administration.
"""
