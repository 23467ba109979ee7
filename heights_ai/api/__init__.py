"""
API layer - FastAPI application

Usage:
    uvicorn heights_ai.api.main:app --reload
"""

from heights_ai.api.main import app, create_app

__all__ = ["app", "create_app"]
