"""
API Routes.
"""
from .health import router as health_router
from .project import router as project_router

__all__ = ["health_router", "project_router"]
