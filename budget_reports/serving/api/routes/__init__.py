"""
API Routes Module
"""
from .health import router as health_router
from .reports import router as reports_router
from .census import router as census_router

__all__ = [
    "health_router",
    "reports_router",
    "census_router",
]
