"""Recommendation core for MarketRec.

This module contains the in-memory embedding cache, the cosine-similarity
ranking that runs over it, and the service that turns rankings into item
recommendations for the API.
"""
