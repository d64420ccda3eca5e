"""
Playlist generation from the user's favorite artists

The builder runs one sequential pipeline:

    favorite artists -> filter -> random artist draws -> one random track
    per draw -> playlist upsert

Every draw picks an artist uniformly at random (with replacement), then one
random album of that artist, then one random track of that album. Lookups
that fail for a single draw only empty that draw's slot; failures of a whole
stage (listing favorites, nothing left to use, writing the playlist) abort
the run with a BuildError.
"""

import random
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, TypeVar

from ..config.settings import Settings
from ..exceptions import APIError, BuildError
from ..tidal.client import DEFAULT_ALBUM_LIMIT, TidalClient
from ..tidal.models import Album, Artist, ArtistID, Playlist, Track
from ..utils.helpers import format_duration, truncate_string
from ..utils.logger import create_operation_logger, get_logger

T = TypeVar('T')

PLAYLIST_DESCRIPTION = "Generated by tidal-playlist"

# Number of tracks listed in the dry-run preview
PREVIEW_LIMIT = 10


def select_random_items(count: int, source: Sequence[T], rng: Optional[random.Random] = None) -> List[T]:
    """
    Draw ``count`` items uniformly at random, with replacement

    The same item may be drawn several times and ``count`` may exceed
    ``len(source)``.

    Args:
        count: Number of draws
        source: Non-empty sequence to draw from
        rng: Random generator, defaults to the module-level one

    Returns:
        List of exactly ``count`` items
    """
    if not source:
        raise ValueError("cannot select items from an empty source")

    rng = rng or random
    return [rng.choice(source) for _ in range(count)]


@dataclass
class BuildResult:
    """
    Outcome of a playlist build

    Attributes:
        name: Playlist title
        tracks: Tracks written (or that would be written in a dry run)
        requested: Number of draws requested
        playlist: The created playlist, None in a dry run
        dry_run: Whether remote state was left untouched
    """
    name: str
    tracks: List[Track] = field(default_factory=list)
    requested: int = 0
    playlist: Optional[Playlist] = None
    dry_run: bool = False

    @property
    def total_duration(self) -> int:
        return sum(track.duration for track in self.tracks)


class PlaylistBuilder:
    """
    Orchestrates fetch, filter, sampling, track collection and playlist upsert

    Attributes:
        client: TIDAL API client
        settings: Settings providing the draw count and artist filters
        rng: Random generator used for every draw
    """

    def __init__(self, client: TidalClient, settings: Settings, rng: Optional[random.Random] = None):
        self.client = client
        self.settings = settings
        self.rng = rng or random.Random()
        self.logger = get_logger(__name__)

    def filter_artists(self, artists: List[ArtistID]) -> List[ArtistID]:
        """
        Apply the whitelist or, failing that, the blacklist

        A non-empty whitelist keeps only listed artists and ignores the
        blacklist. Otherwise a non-empty blacklist drops listed artists.
        Identifiers are compared case-insensitively and input order is kept.

        Args:
            artists: Favorite artists

        Returns:
            Filtered artists, possibly empty
        """
        whitelist = self._normalized(self.settings.filters.whitelist)
        if whitelist:
            return [artist for artist in artists if artist.id.lower() in whitelist]

        blacklist = self._normalized(self.settings.filters.blacklist)
        if blacklist:
            return [artist for artist in artists if artist.id.lower() not in blacklist]

        return list(artists)

    @staticmethod
    def _normalized(entries) -> set:
        return {str(entry).lower() for entry in entries or []}

    def collect_tracks(self, artists: List[ArtistID]) -> List[Optional[Track]]:
        """
        Pick one random track for every drawn artist

        Draws are visited sorted by artist id, so albums are fetched once per
        run of the same artist and reused. Each result is written back to the
        draw's original position.

        Args:
            artists: Drawn artists, duplicates allowed

        Returns:
            List as long as ``artists``; None marks a slot whose artist,
            album or track lookup failed
        """
        result: List[Optional[Track]] = [None] * len(artists)
        order = sorted(range(len(artists)), key=lambda index: artists[index].id)

        operation = create_operation_logger(__name__, "Collecting tracks")
        operation.start("\nCollecting tracks from artists...")

        last_artist_id: Optional[str] = None
        albums: List[Album] = []

        for step, index in enumerate(order, 1):
            artist_id = artists[index].id
            artist = self._fetch_artist(artist_id)

            if artist_id != last_artist_id:
                fetched = self._fetch_albums(artist)
                if not fetched:
                    operation.progress(f"skipped {artist_id}", step, len(order))
                    continue
                last_artist_id = artist_id
                albums = fetched
                self.logger.info(f"{artist.name} ({artist.id}): {len(albums)} albums")

            track = self._pick_track(self.rng.choice(albums), artist)
            result[index] = track
            operation.progress(artist.name or artist.id, step, len(order))

        collected = sum(1 for track in result if track is not None)
        operation.complete(f"Collected {collected} of {len(artists)} tracks")
        return result

    def _fetch_artist(self, artist_id: str) -> Artist:
        try:
            return self.client.get_artist(artist_id)
        except APIError as e:
            self.logger.warning(f"Warning: failed to get more information about the artist {artist_id}: {e}")
            return Artist(id=artist_id)

    def _fetch_albums(self, artist: Artist) -> List[Album]:
        try:
            albums = self.client.get_artist_albums(artist.id, DEFAULT_ALBUM_LIMIT)
        except APIError as e:
            self.logger.warning(f"Warning: failed to get albums for {artist.id}: {e}")
            return []

        if not albums:
            self.logger.warning(f"Warning: no albums found for {artist.id}")
        return albums

    def _pick_track(self, album: Album, artist: Artist) -> Optional[Track]:
        try:
            tracks = self.client.get_album_tracks(album.id)
        except APIError as e:
            self.logger.warning(f"Warning: failed to get tracks of album {album.id}: {e}")
            return None

        if not tracks:
            self.logger.info(f"Album {album.id} has no tracks")
            return None

        track = self.rng.choice(tracks)
        if not track.artists:
            track.artists = [artist]
        self.logger.info(f"  {album.title} - {track.title}")
        return track

    def build_playlist(self, playlist_name: str, dry_run: bool = False) -> BuildResult:
        """
        Run the whole pipeline and write (or preview) the playlist

        Args:
            playlist_name: Title of the playlist to create or replace
            dry_run: Only preview the tracks, write nothing

        Returns:
            BuildResult describing what was (or would be) written

        Raises:
            BuildError: If a pipeline stage fails
        """
        self.logger.console_info("Fetching favorite artists...")
        try:
            artists = self.client.get_favorite_artists()
        except APIError as e:
            raise BuildError(f"failed to fetch favorite artists: {e}") from e
        self.logger.console_info(f"Found {len(artists)} favorite artists")

        filtered = self.filter_artists(artists)
        self.logger.console_info(f"After filtering: {len(filtered)} artists")
        if not filtered:
            raise BuildError("no artists remaining after filtering")

        count = self.settings.playlist.count
        selected = select_random_items(count, filtered, self.rng)

        slots = self.collect_tracks(selected)
        tracks = [track for track in slots if track is not None]
        self.logger.console_info(f"Final track count: {len(tracks)}")
        if not tracks:
            raise BuildError("no tracks collected from artists")

        result = BuildResult(name=playlist_name, tracks=tracks, requested=count, dry_run=dry_run)

        if dry_run:
            self._print_preview(result)
            return result

        self.logger.console_info(f"\nCreating/updating playlist '{playlist_name}'...")
        try:
            result.playlist = self.client.create_or_update_playlist(
                playlist_name,
                PLAYLIST_DESCRIPTION,
                [track.id for track in tracks]
            )
        except APIError as e:
            raise BuildError(f"failed to create/update playlist: {e}") from e

        self.logger.console_info(
            f"\nSuccess! Playlist '{result.playlist.title}' created/updated with {len(tracks)} tracks "
            f"({format_duration(result.total_duration)})"
        )
        return result

    def _print_preview(self, result: BuildResult) -> None:
        self.logger.console_info("\n=== DRY RUN MODE ===")
        self.logger.console_info(
            f"Would create/update playlist '{result.name}' with {len(result.tracks)} tracks"
        )
        self.logger.console_info("\nTracks:")
        for position, track in enumerate(result.tracks[:PREVIEW_LIMIT], 1):
            self.logger.console_info(
                f"  {position}. {track.primary_artist} - {truncate_string(track.title, 80)}"
            )
        if len(result.tracks) > PREVIEW_LIMIT:
            self.logger.console_info("  ...")
