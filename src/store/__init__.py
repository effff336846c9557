"""Relational persistence for MarketRec.

Thin data-access layer over SQLAlchemy Core: item rows with their optional
embedding column, item images, and likes.
"""
