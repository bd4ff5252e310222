"""Application services."""

from melodia.application.services.album_service import AlbumService
from melodia.application.services.artist_service import ArtistService
from melodia.application.services.library_view_service import LibraryViewService
from melodia.application.services.song_service import SongService

__all__ = [
    "AlbumService",
    "ArtistService",
    "LibraryViewService",
    "SongService",
]
