"""
API route modules.

Each module defines routes for one domain area.
"""

from routes.stock_upload import router as stock_upload_router

__all__ = [
    "stock_upload_router",
]
