"""Civic Lifeline batch workers."""
