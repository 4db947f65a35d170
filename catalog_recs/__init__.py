"""Catalog Recommendation Service: related products and best sellers."""

__version__ = "2.0.0"
