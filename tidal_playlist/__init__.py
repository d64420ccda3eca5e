"""
tidal-playlist: build TIDAL playlists from your favorite artists

tidal-playlist reads the artists a user has marked as favorite on TIDAL,
optionally narrows them down with a whitelist or blacklist, draws a number
of artists at random and picks one random track from a random album of each
draw. The resulting tracks are written to a playlist, replacing any playlist
that already carries the same name.

## Package Layout

**Configuration (`tidal_playlist/config/`)**
- Settings from YAML files, a `.env` file and `TIDAL_*` environment variables
- OAuth2 login (PKCE or client credentials), token storage and refresh

**TIDAL Integration (`tidal_playlist/tidal/`)**
- JSON:API client with cursor pagination and request admission control
- Data models for artists, albums, tracks, playlists and tokens

**Playlist Builder (`tidal_playlist/builder/`)**
- Filter, sampling, track collection and playlist upsert pipeline

**Utilities (`tidal_playlist/utils/`)**
- Console/file logging with progress bars, duration and batching helpers

## Command Line

    tidal-playlist auth                 # interactive browser login
    tidal-playlist create "My Mix" -c 30
    tidal-playlist create --dry-run     # preview without writing
    tidal-playlist version
"""

__version__ = "0.1.0"
__author__ = "tidal-playlist contributors"
__description__ = "Build TIDAL playlists from random tracks of your favorite artists"

from .exceptions import APIError, AuthError, BuildError, ConfigError, TidalPlaylistError

__all__ = [
    '__version__',
    'TidalPlaylistError',
    'ConfigError',
    'AuthError',
    'APIError',
    'BuildError',
]
