"""
TIDAL integration package

- client.py: TidalClient, the JSON:API client, and RequestGate
- models.py: ArtistID, Artist, Album, Track, Playlist and OAuthToken

Only the models are re-exported here; import the client from
``tidal_playlist.tidal.client``, which depends on the config package.
"""

from .models import Album, Artist, ArtistID, OAuthToken, Playlist, Track

__all__ = [
    'ArtistID',
    'Artist',
    'Album',
    'Track',
    'Playlist',
    'OAuthToken',
]
