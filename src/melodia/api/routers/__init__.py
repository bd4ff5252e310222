"""API router initialization."""

# Hey future me, this aggregates every sub-router; main.py mounts it under /api, so
# songs.router's "/popular" becomes /api/songs/popular. Health lives outside /api.

from fastapi import APIRouter

from melodia.api.routers import albums, artists, health, me, playlists, songs, users

api_router = APIRouter()

api_router.include_router(songs.router, prefix="/songs", tags=["Songs"])
api_router.include_router(albums.router, prefix="/albums", tags=["Albums"])
api_router.include_router(artists.router, prefix="/artists", tags=["Artists"])
api_router.include_router(playlists.router, prefix="/playlists", tags=["Playlists"])
api_router.include_router(users.router, prefix="/users", tags=["Users"])
api_router.include_router(me.router, prefix="/me", tags=["Me"])

__all__ = [
    "albums",
    "api_router",
    "artists",
    "health",
    "me",
    "playlists",
    "songs",
    "users",
]
