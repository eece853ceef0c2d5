"""Civic Lifeline HTTP API."""
