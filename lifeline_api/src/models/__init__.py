"""Data models for the FastAPI service.

This package contains Pydantic models for query validation, response
bodies and persisted community resources.
"""
