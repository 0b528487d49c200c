"""API routers."""

from fastapi import APIRouter

from spotlens.api.routers import health, playlists

api_router = APIRouter()
api_router.include_router(playlists.router)

__all__ = ["api_router", "health", "playlists"]
