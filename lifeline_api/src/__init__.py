"""FastAPI service for the Civic Lifeline data API.

This package provides REST endpoints that proxy, normalize and cache
government datasets (USDA SNAP, HUD, BLS, FCC) and the community
resource submission and moderation flow.
"""

__version__ = "0.1.0"
