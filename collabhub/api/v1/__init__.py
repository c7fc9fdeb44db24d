"""
API v1 Router
"""

from fastapi import APIRouter

from collabhub import __version__

from . import realtime

router = APIRouter()

router.include_router(realtime.router, tags=["Realtime"])


@router.get("/", tags=["API"])
async def api_root():
    """API root: returns version and available endpoints."""
    return {
        "api": "v1",
        "version": __version__,
        "endpoints": [
            "/ws",
            "/presence",
            "/presence/{userId}",
        ],
    }
