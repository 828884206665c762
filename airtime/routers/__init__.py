from airtime.routers.api import router as api_router
from airtime.routers.schedule import router as schedule_router

__all__ = ["api_router", "schedule_router"]
