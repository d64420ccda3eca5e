"""
Exception classes for tidal-playlist.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary, and distinguishes one failure mode of the tool.

Exception Hierarchy:
    TidalPlaylistError (base)
        ConfigError - Configuration file or environment issues
        AuthError - Missing, expired or rejected OAuth credentials
        APIError - TIDAL API request failures
        BuildError - Playlist pipeline stage failures
"""

from typing import Any, Dict, Optional


class TidalPlaylistError(Exception):
    """
    Base exception for all tidal-playlist errors.

    All custom exceptions in this project inherit from this class,
    allowing callers to catch every application error with a single
    except clause.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (ids, URLs, ...).

    Example:
        try:
            builder.build_playlist("Mix")
        except TidalPlaylistError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context about
                     the error. Common keys include:
                     - 'playlist_id': playlist involved in the error
                     - 'endpoint': API endpoint that failed
                     - 'path': file path that could not be read or written
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(TidalPlaylistError):
    """
    Raised when the configuration cannot be loaded or is invalid.

    This is a CRITICAL error that stops program execution.

    Common causes:
        - Explicit --config path does not exist
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id, client_secret)
        - Invalid field values (e.g. playlist.count below 1)
    """
    pass


class AuthError(TidalPlaylistError):
    """
    Raised when no usable OAuth token can be obtained.

    This is a CRITICAL setup error: the user has to run
    ``tidal-playlist auth`` again.

    Common causes:
        - No saved token file
        - Refresh token rejected by the authorization server
        - Interactive login timed out or was denied
    """
    pass


class APIError(TidalPlaylistError):
    """
    Raised when a TIDAL API request fails.

    Can be fatal (favorite-artist listing, playlist writes) or tolerated
    by the caller (single artist/album lookups during track collection).

    Attributes:
        status_code: HTTP status code, or None for transport failures.
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None
    ) -> None:
        super().__init__(message, details)
        self.status_code = status_code


class BuildError(TidalPlaylistError):
    """
    Raised when a stage of the playlist pipeline fails.

    Wraps the underlying cause with the stage that failed, e.g.
    "failed to fetch favorite artists: ..." or
    "no artists remaining after filtering".
    """
    pass
