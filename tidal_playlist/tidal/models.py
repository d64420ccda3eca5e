"""
Data models for TIDAL catalog, collection and playlist information

This module defines the plain records the rest of the application works with.
Every model is built from a TIDAL JSON:API resource object through a
``from_api_data()`` factory, so the API client is the only place that knows
the shape of the vendor's envelopes.

A JSON:API resource object looks like::

    {
        "id": "3346",
        "type": "artists",
        "attributes": {"name": "Daft Punk", ...},
        "relationships": {...}
    }

Models:

- ArtistID: identifier-only reference returned by the favorites listing
- Artist: identifier plus display name
- Album: identifier, title, optional artists, release date and track count
- Track: identifier, title, duration, optional album/artist linkage
- Playlist: canonical identifier and title, normalized once at construction
- OAuthToken: access/refresh token pair with an absolute expiry

Playlist Normalization:

The service has returned playlists in two shapes over time: the JSON:API
``id`` with ``attributes.name``, and a legacy shape with ``uuid`` and
``title``. ``Playlist.from_api_data()`` resolves both into a single ``id``
(preferring ``id`` over ``uuid``) and a single ``title`` (preferring
``title`` over ``name``). Nothing downstream ever sees the raw fields.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from ..utils.helpers import parse_iso_duration


def _attributes(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return the JSON:API attributes object, or an empty dict"""
    return data.get('attributes') or {}


@dataclass(frozen=True)
class ArtistID:
    """
    Reference to an artist the user marked as favorite

    Only the identifier is known; full details require a separate
    artist lookup.
    """
    id: str

    @classmethod
    def from_api_data(cls, data: Dict[str, Any]) -> 'ArtistID':
        return cls(id=str(data['id']))


@dataclass
class Artist:
    """
    Artist profile with display name

    Attributes:
        id: TIDAL artist identifier
        name: Display name (empty for stub records built after a failed lookup)
    """
    id: str
    name: str = ""

    @classmethod
    def from_api_data(cls, data: Dict[str, Any]) -> 'Artist':
        """
        Build an Artist from a JSON:API resource object

        Args:
            data: Resource object with ``id`` and ``attributes.name``

        Returns:
            Artist instance
        """
        return cls(
            id=str(data['id']),
            name=_attributes(data).get('name', '') or ''
        )


@dataclass
class Album:
    """
    Album metadata used to pick a random track

    Attributes:
        id: TIDAL album identifier
        title: Album title
        artists: Contributing artists, when the response includes them
        release_date: Release date string as returned by the API
        number_of_tracks: Track count, when the response includes it
    """
    id: str
    title: str
    artists: List[Artist] = field(default_factory=list)
    release_date: Optional[str] = None
    number_of_tracks: Optional[int] = None

    @classmethod
    def from_api_data(cls, data: Dict[str, Any]) -> 'Album':
        """
        Build an Album from a JSON:API resource object

        Handles both the current ``numberOfItems`` attribute and the older
        ``numberOfTracks`` spelling.
        """
        attributes = _attributes(data)
        track_count = attributes.get('numberOfItems', attributes.get('numberOfTracks'))

        return cls(
            id=str(data['id']),
            title=attributes.get('title', '') or '',
            release_date=attributes.get('releaseDate'),
            number_of_tracks=int(track_count) if track_count is not None else None
        )


@dataclass
class Track:
    """
    Single track, the unit written into a playlist

    Attributes:
        id: TIDAL track identifier
        title: Track title
        duration: Duration in seconds (0 when unknown)
        track_number: Position on its album, when known
        album_id: Identifier of the album the track was fetched from
        artists: Artists credited on the track
    """
    id: str
    title: str
    duration: int = 0
    track_number: Optional[int] = None
    album_id: Optional[str] = None
    artists: List[Artist] = field(default_factory=list)

    @classmethod
    def from_api_data(cls, data: Dict[str, Any], album_id: Optional[str] = None) -> 'Track':
        """
        Build a Track from a JSON:API resource object

        Args:
            data: Resource object with ``attributes.title`` and ``attributes.duration``
            album_id: Album the track was included with

        Returns:
            Track instance with the duration converted to seconds
        """
        attributes = _attributes(data)
        duration = attributes.get('duration')
        if isinstance(duration, str):
            seconds = parse_iso_duration(duration) or 0
        else:
            seconds = int(duration or 0)

        return cls(
            id=str(data['id']),
            title=attributes.get('title', '') or '',
            duration=seconds,
            track_number=attributes.get('trackNumber'),
            album_id=album_id
        )

    @property
    def primary_artist(self) -> str:
        """Name of the first credited artist, or an empty string"""
        return self.artists[0].name if self.artists else ""


@dataclass
class Playlist:
    """
    User playlist with a canonical identifier and title

    Attributes:
        id: Effective playlist identifier
        title: Effective playlist title, used for exact-match lookups
        description: Playlist description
        number_of_tracks: Item count, when the response includes it
    """
    id: str
    title: str
    description: str = ""
    number_of_tracks: Optional[int] = None

    @classmethod
    def from_api_data(cls, data: Dict[str, Any]) -> 'Playlist':
        """
        Build a Playlist from either the JSON:API or the legacy response shape

        The identifier prefers ``id`` over ``uuid``; the title prefers
        ``title`` over ``name``. Both are looked up inside ``attributes``
        first and at the top level second.

        Args:
            data: Playlist resource object

        Returns:
            Playlist with resolved id and title
        """
        attributes = _attributes(data)

        def pick(*keys: str) -> str:
            for key in keys:
                value = attributes.get(key) or data.get(key)
                if value:
                    return str(value)
            return ""

        track_count = attributes.get('numberOfItems', data.get('numberOfTracks'))

        return cls(
            id=str(data.get('id') or data.get('uuid') or ''),
            title=pick('title', 'name'),
            description=pick('description'),
            number_of_tracks=int(track_count) if track_count is not None else None
        )


@dataclass
class OAuthToken:
    """
    OAuth2 token pair persisted between runs

    Attributes:
        access_token: Bearer token sent with every API request
        token_type: Usually "Bearer"
        expires_at: Absolute expiry, timezone-aware UTC
        refresh_token: Refresh token (absent for client-credentials tokens)
    """
    access_token: str
    token_type: str
    expires_at: datetime
    refresh_token: str = ""

    @classmethod
    def from_token_response(cls, data: Dict[str, Any], refresh_token: str = "") -> 'OAuthToken':
        """
        Build a token from an OAuth2 token endpoint response

        Args:
            data: JSON body with access_token, token_type, expires_in and
                  optionally refresh_token
            refresh_token: Refresh token to keep when the response omits one

        Returns:
            OAuthToken with expires_in converted to an absolute timestamp
        """
        expires_in = int(data.get('expires_in', 3600))
        return cls(
            access_token=data['access_token'],
            token_type=data.get('token_type', 'Bearer'),
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=data.get('refresh_token') or refresh_token
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'OAuthToken':
        """Build a token from its persisted JSON form"""
        expires_at = datetime.fromisoformat(data['expires_at'])
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)

        return cls(
            access_token=data['access_token'],
            token_type=data.get('token_type', 'Bearer'),
            expires_at=expires_at,
            refresh_token=data.get('refresh_token') or ""
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize to the persisted JSON form"""
        return {
            'access_token': self.access_token,
            'refresh_token': self.refresh_token,
            'token_type': self.token_type,
            'expires_at': self.expires_at.isoformat(),
        }

    def expires_within(self, seconds: float) -> bool:
        """True if the token expires within the given number of seconds"""
        return self.expires_at <= datetime.now(timezone.utc) + timedelta(seconds=seconds)
