"""
HTTP routes.

Each module exposes a factory that closes over the services it needs.
"""

from .api import create_api_router
from .dashboard import create_dashboard_router
from .tracking import create_tracking_router

__all__ = ["create_api_router", "create_dashboard_router", "create_tracking_router"]
