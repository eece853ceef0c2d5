"""Batch ingest workers that populate the document store."""

__version__ = "0.1.0"
