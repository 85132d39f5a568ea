from fastapi import APIRouter, Request

from catalog_filters import __version__
from catalog_filters.core.config import settings

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """Health check endpoint."""
    controller = getattr(request.app.state, "controller", None)
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "version": __version__,
        "open_sessions": controller.open_sessions if controller is not None else 0,
    }
