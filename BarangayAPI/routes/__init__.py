from .requests import router as requests_router
from .blotter import router as blotter_router
from .announcements import router as announcements_router
from .notifications import router as notifications_router
from .events import router as events_router

__all__ = [
    "requests_router",
    "blotter_router",
    "announcements_router",
    "notifications_router",
    "events_router",
]
