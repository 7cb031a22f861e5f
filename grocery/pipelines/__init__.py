"""Retrieval and ranking pipelines for search, suggestions and price optimization.

Each step takes its store and embedder explicitly so it can be called from
API handlers and tests alike.
"""
