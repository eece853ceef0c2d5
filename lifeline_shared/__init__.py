"""Shared building blocks for the Civic Lifeline API and workers.

Geometry helpers, cache keys, the Redis response cache, the retrying
upstream fetcher, logging and metrics live here so that both the API
service and the ingest workers use one implementation.
"""

__version__ = "0.1.0"
