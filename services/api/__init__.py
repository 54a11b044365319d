"""
HTTP API (FastAPI).
"""

from .app import create_app
from .deps import AppServices, build_services

__all__ = ["AppServices", "build_services", "create_app"]
