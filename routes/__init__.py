"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.bulk_update import router as bulk_update_router

__all__ = [
    "bulk_update_router",
]
