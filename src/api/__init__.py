"""
API module for the grading assistant.

Provides the FastAPI application factory for web access.
"""

from api.app import create_app

__all__ = ['create_app']
