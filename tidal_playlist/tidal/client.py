"""
TIDAL API client for collection, catalog and playlist operations

This module provides the client interface for the TIDAL developer API
(``https://openapi.tidal.com``). It handles authentication headers, request
admission control, JSON:API decoding, cursor pagination and conversion to
internal models. It owns no business logic: the playlist builder decides
what to fetch and what to write.

Architecture Overview:

1. **Admission Control**: ``RequestGate`` lets exactly one request be in flight
   and holds its permit for a fixed cooldown after the response arrives.
   This serializes all outbound calls at a fixed rate. There is no burst
   allowance and no retry.

2. **Authentication**: every request asks the auth manager for a valid token,
   which refreshes transparently when the stored token is about to expire.

3. **JSON:API Decoding**: primary records live under ``data``, related records
   requested with ``include=`` under ``included``, and the pagination cursor
   under ``links.meta.nextCursor``.

4. **Error Handling**: HTTP status >= 400 and transport failures raise
   ``APIError``; each public operation re-raises with its own context so the
   final message reads like "failed to fetch artist: API error (status 404): ...".

Usage Examples:

    auth = TidalAuth(settings)
    client = TidalClient(auth, settings)

    for artist_id in client.get_favorite_artists():
        print(artist_id.id)

    playlist = client.create_or_update_playlist("Mix", "Generated", track_ids)
"""

import threading
import time
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any, Dict, Iterator, List, Optional

import requests

from ..config.settings import Settings, get_settings
from ..exceptions import APIError
from ..utils.helpers import chunk_list
from ..utils.logger import get_logger, log_performance
from .models import Album, Artist, ArtistID, Playlist, Track

if TYPE_CHECKING:
    from ..config.auth import TidalAuth


JSON_API_MEDIA_TYPE = "application/vnd.api+json"

# Maximum number of items the API accepts per playlist write
BATCH_SIZE = 20

# Albums considered per artist
DEFAULT_ALBUM_LIMIT = 100


class RequestGate:
    """
    Admission control for outbound requests

    Owns a bounded semaphore with ``max_concurrent`` permits. A permit is
    taken before a request starts and given back only after ``cooldown``
    seconds have passed since the request finished, so with one permit the
    client issues at most one request per (latency + cooldown).
    """

    def __init__(self, max_concurrent: int = 1, cooldown: float = 0.3):
        self._permits = threading.BoundedSemaphore(max_concurrent)
        self.cooldown = cooldown

    @contextmanager
    def admit(self) -> Iterator[None]:
        """Hold a permit for the duration of the block plus the cooldown"""
        self._permits.acquire()
        try:
            yield
        finally:
            if self.cooldown > 0:
                time.sleep(self.cooldown)
            self._permits.release()


class TidalClient:
    """
    TIDAL developer API client

    Provides a high-level interface for every TIDAL operation the playlist
    builder needs: favorite artists, artist and album lookups, and the
    playlist create/delete/attach calls behind the upsert.

    Attributes:
        auth: Token provider (``get_valid_token()``)
        settings: Application settings (country code, network options)
        session: Underlying ``requests.Session``
        gate: Request admission control
    """

    def __init__(
        self,
        auth: 'TidalAuth',
        settings: Optional[Settings] = None,
        session: Optional[requests.Session] = None,
        gate: Optional[RequestGate] = None
    ):
        """
        Initialize the client

        Args:
            auth: Authentication manager supplying bearer tokens
            settings: Settings to use, defaults to the global instance
            session: HTTP session, a new one is created when omitted
            gate: Admission control, defaults to one permit with the
                  configured ``network.request_delay`` cooldown
        """
        self.auth = auth
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.session = session or requests.Session()
        self.gate = gate or RequestGate(max_concurrent=1, cooldown=self.settings.network.request_delay)

        self.base_url = self.settings.network.base_url.rstrip('/')
        self.country_code = self.settings.tidal.country_code
        self.timeout = self.settings.network.request_timeout

        self._user_id: Optional[str] = None

    # -------- transport --------

    @log_performance
    def _request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        payload: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Perform an authenticated request and decode the JSON body

        Args:
            method: HTTP method
            endpoint: Path below the base URL, e.g. "/v2/artists/1"
            params: Query parameters
            payload: JSON:API request document

        Returns:
            Decoded JSON body, or an empty dict for empty responses

        Raises:
            APIError: On transport failure or HTTP status >= 400
            AuthError: If no valid token can be obtained
        """
        with self.gate.admit():
            token = self.auth.get_valid_token()
            headers = {
                'Authorization': f"Bearer {token.access_token}",
                'Accept': JSON_API_MEDIA_TYPE,
                'Content-Type': JSON_API_MEDIA_TYPE,
            }

            self.logger.debug(f"{method} {endpoint} params={params}")
            try:
                response = self.session.request(
                    method,
                    f"{self.base_url}{endpoint}",
                    params=params,
                    json=payload,
                    headers=headers,
                    timeout=self.timeout
                )
            except requests.RequestException as e:
                raise APIError(f"request failed: {e}", details={'endpoint': endpoint}) from e

        if response.status_code >= 400:
            raise APIError(
                self._error_message(response),
                status_code=response.status_code,
                details={'endpoint': endpoint, 'method': method}
            )

        if not response.content:
            return {}

        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"failed to parse response: {e}", details={'endpoint': endpoint}) from e

    @staticmethod
    def _error_message(response: requests.Response) -> str:
        """
        Extract the most specific error message from an error response

        Understands JSON:API ``errors`` arrays and the older
        ``{"status": ..., "userMessage"/"message": ...}`` body.
        """
        try:
            body = response.json()
        except ValueError:
            body = None

        if isinstance(body, dict):
            errors = body.get('errors')
            if isinstance(errors, list) and errors:
                first = errors[0] or {}
                detail = first.get('detail') or first.get('title') or first.get('code')
                if detail:
                    return f"API error (status {response.status_code}): {detail}"

            message = body.get('userMessage') or body.get('message')
            if message:
                return f"API error (status {body.get('status', response.status_code)}): {message}"

        return f"HTTP error {response.status_code}: {response.text}"

    def _paginate(self, endpoint: str, params: Optional[Dict[str, Any]] = None) -> Iterator[Dict[str, Any]]:
        """
        Yield resource objects from a cursor-paginated collection

        Follows ``links.meta.nextCursor`` until it is empty.
        """
        params = dict(params or {})
        cursor = None

        while True:
            page_params = dict(params)
            if cursor:
                page_params['page[cursor]'] = cursor

            body = self._request('GET', endpoint, params=page_params or None)
            for item in body.get('data') or []:
                yield item

            cursor = ((body.get('links') or {}).get('meta') or {}).get('nextCursor')
            if not cursor:
                break

    # -------- user --------

    def get_user_id(self) -> str:
        """
        Retrieve the current user's ID

        The ID is fetched once per client and cached.

        Returns:
            TIDAL user identifier

        Raises:
            APIError: If the request fails or the response has no ID
        """
        if self._user_id:
            return self._user_id

        try:
            body = self._request('GET', '/v2/users/me')
        except APIError as e:
            raise APIError(f"failed to get user info: {e}", e.status_code, e.details) from e

        user_id = (body.get('data') or {}).get('id')
        if not user_id:
            raise APIError(f"no user ID in response: {body}")

        self._user_id = str(user_id)
        return self._user_id

    # -------- artists --------

    def get_favorite_artists(self) -> List[ArtistID]:
        """
        Retrieve all favorite artists of the current user

        Returns:
            Artist references in the order the API returns them
        """
        user_id = self.get_user_id()
        endpoint = f"/v2/userCollections/{user_id}/relationships/artists"

        try:
            artists = [ArtistID.from_api_data(item) for item in self._paginate(endpoint)]
        except APIError as e:
            raise APIError(f"failed to fetch favorite artists: {e}", e.status_code, e.details) from e

        self.logger.debug(f"Fetched {len(artists)} favorite artists")
        return artists

    def get_artist(self, artist_id: str) -> Artist:
        """
        Retrieve information about a specific artist

        Args:
            artist_id: TIDAL artist identifier

        Returns:
            Artist with display name
        """
        try:
            body = self._request('GET', f"/v2/artists/{artist_id}", params={'countryCode': self.country_code})
            return Artist.from_api_data(body['data'])
        except APIError as e:
            raise APIError(f"failed to fetch artist: {e}", e.status_code, e.details) from e
        except (KeyError, TypeError) as e:
            raise APIError(f"failed to parse artist {artist_id}: missing {e}") from e

    def get_artist_albums(self, artist_id: str, limit: int = DEFAULT_ALBUM_LIMIT) -> List[Album]:
        """
        Retrieve albums for a specific artist

        Uses ``include=albums`` and reads the album resources from
        ``included``.

        Args:
            artist_id: TIDAL artist identifier
            limit: Maximum number of albums returned

        Returns:
            Up to ``limit`` albums
        """
        try:
            body = self._request(
                'GET',
                f"/v2/artists/{artist_id}",
                params={'include': 'albums', 'countryCode': self.country_code}
            )
        except APIError as e:
            raise APIError(f"failed to fetch artist albums: {e}", e.status_code, e.details) from e

        try:
            albums = [
                Album.from_api_data(item)
                for item in body.get('included') or []
                if item.get('type') == 'albums'
            ]
        except (AttributeError, KeyError, TypeError) as e:
            raise APIError(f"failed to parse albums of artist {artist_id}: {e!r}") from e
        return albums[:limit]

    # -------- albums --------

    def get_album_tracks(self, album_id: str) -> List[Track]:
        """
        Retrieve all tracks of an album

        Uses ``include=items`` and reads the track resources from
        ``included``; videos on the album are skipped.

        Args:
            album_id: TIDAL album identifier

        Returns:
            Tracks of the album
        """
        try:
            body = self._request(
                'GET',
                f"/v2/albums/{album_id}",
                params={'include': 'items', 'countryCode': self.country_code}
            )
        except APIError as e:
            raise APIError(f"failed to fetch album tracks: {e}", e.status_code, e.details) from e

        try:
            return [
                Track.from_api_data(item, album_id=album_id)
                for item in body.get('included') or []
                if item.get('type') == 'tracks'
            ]
        except (AttributeError, KeyError, TypeError) as e:
            raise APIError(f"failed to parse tracks of album {album_id}: {e!r}") from e

    # -------- playlists --------

    def get_user_playlists(self) -> List[Playlist]:
        """
        Retrieve all playlists owned by the current user

        Returns:
            Playlists with canonical id and title
        """
        user_id = self.get_user_id()

        try:
            return [
                Playlist.from_api_data(item)
                for item in self._paginate('/v2/playlists', params={'filter[owners.id]': user_id})
            ]
        except APIError as e:
            raise APIError(f"failed to fetch playlists: {e}", e.status_code, e.details) from e

    def get_playlist(self, playlist_id: str) -> Playlist:
        """
        Retrieve a specific playlist

        Args:
            playlist_id: Playlist identifier

        Returns:
            Playlist with canonical id and title
        """
        try:
            body = self._request('GET', f"/v2/playlists/{playlist_id}")
        except APIError as e:
            raise APIError(f"failed to fetch playlist: {e}", e.status_code, e.details) from e

        return Playlist.from_api_data(body.get('data') or {})

    def create_playlist(self, title: str, description: str) -> Playlist:
        """
        Create a new, empty playlist

        Args:
            title: Playlist name
            description: Playlist description

        Returns:
            The created playlist
        """
        payload = {
            'data': {
                'type': 'playlists',
                'attributes': {
                    'name': title,
                    'description': description,
                },
            },
        }

        try:
            body = self._request('POST', '/v2/playlists', payload=payload)
        except APIError as e:
            raise APIError(f"failed to create playlist: {e}", e.status_code, e.details) from e

        playlist = Playlist.from_api_data(body.get('data') or {})
        if not playlist.id:
            raise APIError(f"failed to create playlist: no playlist ID in response: {body}")
        return playlist

    def update_playlist_metadata(self, playlist_id: str, title: str, description: str) -> None:
        """
        Update a playlist's title and description

        Args:
            playlist_id: Playlist identifier
            title: New name
            description: New description
        """
        payload = {
            'data': {
                'id': playlist_id,
                'type': 'playlists',
                'attributes': {
                    'name': title,
                    'description': description,
                },
            },
        }

        try:
            self._request('PATCH', f"/v2/playlists/{playlist_id}", payload=payload)
        except APIError as e:
            raise APIError(f"failed to update playlist: {e}", e.status_code, e.details) from e

    def set_playlist_tracks(self, playlist_id: str, track_ids: List[str]) -> None:
        """
        Append tracks to a playlist in batches of BATCH_SIZE

        Batches are written in order. A failing batch aborts the remaining
        ones; earlier batches stay on the playlist.

        Args:
            playlist_id: Playlist identifier
            track_ids: Track identifiers in playlist order
        """
        endpoint = f"/v2/playlists/{playlist_id}/relationships/items"
        added = 0

        for batch in chunk_list(track_ids, BATCH_SIZE):
            payload = {'data': [{'type': 'tracks', 'id': track_id} for track_id in batch]}
            try:
                self._request('POST', endpoint, payload=payload)
            except APIError as e:
                raise APIError(
                    f"failed to add tracks to playlist: {e}",
                    e.status_code,
                    {**e.details, 'playlist_id': playlist_id, 'tracks_added': added}
                ) from e

            added += len(batch)
            self.logger.console_info(f"Added {added} tracks...")

    def delete_playlist(self, playlist_id: str) -> None:
        """
        Delete a playlist

        Args:
            playlist_id: Playlist identifier
        """
        try:
            self._request('DELETE', f"/v2/playlists/{playlist_id}")
        except APIError as e:
            raise APIError(f"failed to delete playlist: {e}", e.status_code, e.details) from e

    def find_playlist_by_name(self, name: str) -> Optional[Playlist]:
        """
        Find the first playlist whose title equals ``name`` exactly

        Returns:
            Matching playlist or None
        """
        matches = self.find_all_playlists_by_name(name)
        return matches[0] if matches else None

    def find_all_playlists_by_name(self, name: str) -> List[Playlist]:
        """
        Find all playlists whose title equals ``name`` exactly

        Returns:
            Matching playlists, possibly empty
        """
        try:
            playlists = self.get_user_playlists()
        except APIError as e:
            raise APIError(f"failed to get user playlists: {e}", e.status_code, e.details) from e

        return [playlist for playlist in playlists if playlist.title == name]

    def create_or_update_playlist(self, name: str, description: str, track_ids: List[str]) -> Playlist:
        """
        Replace every playlist named ``name`` with a new one holding ``track_ids``

        Existing playlists with the exact same title are deleted, one new
        playlist is created, and the tracks are attached in batches.

        Args:
            name: Playlist title
            description: Playlist description
            track_ids: Track identifiers in playlist order

        Returns:
            The newly created playlist
        """
        try:
            existing = self.find_all_playlists_by_name(name)
        except APIError as e:
            raise APIError(f"failed to search for existing playlists: {e}", e.status_code, e.details) from e

        for playlist in existing:
            self.logger.info(f"Deleting existing playlist '{playlist.title}' ({playlist.id})")
            try:
                self.delete_playlist(playlist.id)
            except APIError as e:
                raise APIError(f"failed to delete playlist {playlist.id}: {e}", e.status_code, e.details) from e

        self.logger.console_info(f"Creating new playlist '{name}'...")
        playlist = self.create_playlist(name, description)

        self.set_playlist_tracks(playlist.id, track_ids)
        playlist.number_of_tracks = len(track_ids)
        return playlist
