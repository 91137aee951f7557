"""Hybrid fuzzy + vector context retrieval over a markdown note workspace."""

__version__ = "0.1.0"
