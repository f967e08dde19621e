"""
app/api/routers package marker.
"""

from app.api.routers.analytics import router as analytics_router
from app.api.routers.records import router as records_router
from app.api.routers.sync import router as sync_router
from app.api.routers.webhooks import router as webhooks_router

__all__ = [
    "analytics_router",
    "records_router",
    "sync_router",
    "webhooks_router",
]
