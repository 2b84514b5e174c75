"""
FastAPI Blog Posts backend package.

This module marks the 'src.api' directory as a Python package and exposes
the application factory and default app instance for convenience imports.
"""

from .main import app, create_app  # noqa: F401
