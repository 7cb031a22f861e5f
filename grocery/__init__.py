"""Backend package: DB mapping, retrieval pipelines, APIs.

This package serves grocery search, autocomplete suggestions and price
optimization on top of a hosted Postgres + pgvector catalog.
"""
