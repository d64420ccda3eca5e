"""
OAuth2 authentication and token management for the TIDAL API

This module implements the OAuth2 flows used by tidal-playlist. It handles the
authorization process, secure token storage, automatic token refresh, and
provides a valid bearer token to the API client on demand.

Key features:
- OAuth 2.1 authorization code flow with PKCE (S256) for interactive login
- Client credentials flow for non-interactive use
- Token refresh, falling back to client credentials for tokens without
  a refresh token
- Token storage with owner-only file permissions
- Local HTTP callback server running only for the duration of a login

The interactive flow:
1. Generate a PKCE verifier/challenge pair and the authorization URL
2. Start a local callback server in a background thread
3. Open the browser for user consent
4. Wait (at most five minutes) for the callback to deliver the code
5. Exchange the code and the verifier for an access/refresh token pair
6. Store the token for future runs

The callback server hands its result to the waiting flow through a one-shot
``concurrent.futures.Future``; the server is shut down as soon as the future
is resolved or the timeout elapses.
"""

import base64
import hashlib
import json
import os
import secrets
import threading
import urllib.parse
import webbrowser
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from http.server import BaseHTTPRequestHandler, HTTPServer
from pathlib import Path
from typing import Optional, Tuple

import requests

from ..exceptions import AuthError
from ..tidal.models import OAuthToken
from ..utils.helpers import ensure_directory
from ..utils.logger import get_logger
from .settings import Settings, get_settings


AUTH_URL = "https://login.tidal.com/authorize"
TOKEN_URL = "https://auth.tidal.com/v1/oauth2/token"

# Seconds to wait for the browser callback
LOGIN_TIMEOUT = 300

# Tokens expiring within this many seconds are refreshed before use
EXPIRY_MARGIN = 60

CALLBACK_PAGE = """
<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
    <h1>{title}</h1>
    <p>{message}</p>
</body>
</html>
"""


def generate_pkce_pair() -> Tuple[str, str]:
    """
    Generate a PKCE code verifier and its S256 challenge

    Returns:
        Tuple of (verifier, challenge), both base64url without padding
    """
    verifier = base64.urlsafe_b64encode(secrets.token_bytes(32)).rstrip(b'=').decode('ascii')
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    challenge = base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')
    return verifier, challenge


class CallbackServer(HTTPServer):
    """
    Local HTTP server receiving the OAuth redirect

    Attributes:
        result: One-shot future resolved with the authorization code, or
                failed with an AuthError when the provider reports an error
        callback_path: Path component the redirect URL points at
        expected_state: State sent with the authorization request; a
                        callback carrying any other state is rejected
    """

    def __init__(
        self,
        address: Tuple[str, int],
        callback_path: str = "/callback",
        expected_state: Optional[str] = None
    ):
        super().__init__(address, CallbackHandler)
        self.result: Future = Future()
        self.callback_path = callback_path
        self.expected_state = expected_state


class CallbackHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for OAuth2 callback processing

    Extracts the authorization code (or error) from the redirect and resolves
    the server's result future. Only the first callback counts.
    """

    server: CallbackServer

    def do_GET(self):
        """
        Handle GET request from OAuth callback

        The callback URL format is:
        - Success: /callback?code=AUTHORIZATION_CODE&state=STATE
        - Error: /callback?error=ERROR_CODE&error_description=DESCRIPTION
        """
        parsed_url = urllib.parse.urlparse(self.path)
        if parsed_url.path != self.server.callback_path:
            self.send_response(404)
            self.end_headers()
            return

        query_params = urllib.parse.parse_qs(parsed_url.query)

        state = query_params.get('state', [None])[0]
        if 'code' in query_params and self.server.expected_state and state != self.server.expected_state:
            self._respond(400, "Authentication failed", "Error: state mismatch")
            self._resolve(error="state mismatch")
        elif 'code' in query_params:
            self._respond(200, "Authentication successful!", "You can close this window and return to the terminal.")
            self._resolve(code=query_params['code'][0])
        else:
            error = query_params.get('error', ['no code in callback'])[0]
            description = query_params.get('error_description', [''])[0]
            self._respond(400, "Authentication failed", f"Error: {error} {description}".strip())
            self._resolve(error=f"{error} {description}".strip())

    def _respond(self, status: int, title: str, message: str) -> None:
        self.send_response(status)
        self.send_header('Content-type', 'text/html')
        self.end_headers()
        self.wfile.write(CALLBACK_PAGE.format(title=title, message=message).encode())

    def _resolve(self, code: Optional[str] = None, error: Optional[str] = None) -> None:
        result = self.server.result
        if result.done():
            return
        if code:
            result.set_result(code)
        else:
            result.set_exception(AuthError(f"authorization failed: {error}"))

    def log_message(self, format, *args):
        """Suppress HTTP server logs to keep console output clean"""
        pass


class TidalAuth:
    """
    TIDAL OAuth2 authentication and token management

    Responsibilities:
    - Interactive PKCE login and client credentials login
    - Token storage and retrieval
    - Refresh before expiration
    - Supplying a valid access token to the API client

    Attributes:
        settings: Application settings instance
        token_file: Path to the token storage file
        client_id: TIDAL application client ID
        client_secret: TIDAL application client secret
        redirect_uri: OAuth2 callback URL
        scopes: Requested permission scopes
    """

    def __init__(self, settings: Optional[Settings] = None, session: Optional[requests.Session] = None):
        """
        Initialize authentication manager with application settings

        Args:
            settings: Settings to use, defaults to the global instance
            session: HTTP session for token endpoint calls
        """
        self.settings = settings or get_settings()
        self.logger = get_logger(__name__)
        self.session = session or requests.Session()

        self.token_file: Path = self.settings.get_token_storage_path()
        self.client_id = self.settings.tidal.client_id
        self.client_secret = self.settings.tidal.client_secret
        self.redirect_uri = self.settings.tidal.redirect_url
        self.scopes = self.settings.tidal.scopes
        self.timeout = self.settings.network.request_timeout

        self._token: Optional[OAuthToken] = None

    # -------- storage --------

    def load_token(self) -> Optional[OAuthToken]:
        """
        Load the stored token from file

        Returns:
            OAuthToken if the file exists and is well formed, None otherwise
        """
        if not self.token_file.exists():
            return None

        try:
            with open(self.token_file, 'r', encoding='utf-8') as f:
                return OAuthToken.from_dict(json.load(f))
        except (OSError, ValueError, KeyError, TypeError) as e:
            self.logger.warning(f"Failed to load stored token from {self.token_file}: {e}")
            return None

    def save_token(self, token: OAuthToken) -> None:
        """
        Save token to the storage file with owner-only permissions

        Args:
            token: Token to persist

        Raises:
            AuthError: If the file cannot be written
        """
        try:
            ensure_directory(self.token_file.parent, mode=0o700)
            fd = os.open(self.token_file, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                # O_CREAT leaves the mode of an existing file untouched
                self.token_file.chmod(0o600)
                json.dump(token.to_dict(), f, indent=2)
        except OSError as e:
            raise AuthError(f"failed to save token: {e}", details={'path': str(self.token_file)}) from e

        self._token = token
        self.logger.debug(f"Token saved to {self.token_file}, expires at {token.expires_at.isoformat()}")

    def revoke_token(self) -> None:
        """
        Delete stored credentials and clear the cached token

        Note:
            This only removes local token storage; the token stays valid on
            the server until it expires.
        """
        if self.token_file.exists():
            self.token_file.unlink()
            self.logger.info("Stored token deleted")
        self._token = None

    # -------- token endpoint --------

    def _request_token(self, data: dict, auth: Optional[Tuple[str, str]] = None) -> dict:
        """
        POST to the token endpoint and return the decoded JSON body

        Raises:
            AuthError: On transport errors, non-200 responses or bad JSON
        """
        try:
            response = self.session.post(TOKEN_URL, data=data, auth=auth, timeout=self.timeout)
        except requests.RequestException as e:
            raise AuthError(f"token request failed: {e}") from e

        if response.status_code != 200:
            raise AuthError(
                f"token request failed with status {response.status_code}: {response.text}",
                details={'grant_type': data.get('grant_type')}
            )

        try:
            return response.json()
        except ValueError as e:
            raise AuthError(f"failed to parse token response: {e}") from e

    def login_with_client_credentials(self) -> OAuthToken:
        """
        Obtain a token with the client credentials grant (no browser needed)

        Tokens from this flow carry no refresh token and have no user context.

        Returns:
            The new, persisted token
        """
        self._require_credentials()

        data = self._request_token(
            {'grant_type': 'client_credentials'},
            auth=(self.client_id, self.client_secret)
        )
        token = OAuthToken.from_token_response(data)
        self.save_token(token)
        return token

    def build_authorization_url(self, challenge: str, state: str) -> str:
        """Build the authorize URL for the PKCE flow"""
        params = {
            'response_type': 'code',
            'client_id': self.client_id,
            'redirect_uri': self.redirect_uri,
            'scope': ' '.join(self.scopes),
            'state': state,
            'code_challenge': challenge,
            'code_challenge_method': 'S256',
        }
        return f"{AUTH_URL}?{urllib.parse.urlencode(params)}"

    def exchange_code(self, code: str, verifier: str) -> OAuthToken:
        """
        Exchange an authorization code for a token pair and persist it

        Args:
            code: Authorization code from the callback
            verifier: PKCE code verifier matching the challenge sent earlier

        Returns:
            The new, persisted token
        """
        data = self._request_token({
            'grant_type': 'authorization_code',
            'code': code,
            'redirect_uri': self.redirect_uri,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
            'code_verifier': verifier,
        })
        token = OAuthToken.from_token_response(data)
        self.save_token(token)
        return token

    def login(self, timeout: float = LOGIN_TIMEOUT, open_browser: bool = True) -> OAuthToken:
        """
        Run the interactive PKCE authorization code flow

        Args:
            timeout: Seconds to wait for the browser callback
            open_browser: Try to open the authorization URL automatically

        Returns:
            The new, persisted token

        Raises:
            AuthError: On timeout, denied consent or failed code exchange
        """
        self._require_credentials()

        verifier, challenge = generate_pkce_pair()
        state = secrets.token_urlsafe(16)
        authorization_url = self.build_authorization_url(challenge, state)

        redirect = urllib.parse.urlparse(self.redirect_uri)
        try:
            server = CallbackServer(
                (redirect.hostname or 'localhost', redirect.port or 8080),
                callback_path=redirect.path or '/callback',
                expected_state=state
            )
        except OSError as e:
            raise AuthError(f"callback server error: {e}") from e

        server_thread = threading.Thread(target=server.serve_forever, daemon=True)
        server_thread.start()

        try:
            self.logger.console_info("Please open the following URL in your browser to authenticate:")
            self.logger.console_info(authorization_url)
            if open_browser:
                webbrowser.open(authorization_url)
            self.logger.console_info("\nWaiting for authentication...")

            try:
                code = server.result.result(timeout=timeout)
            except FutureTimeoutError as e:
                raise AuthError("authentication timeout") from e
        finally:
            server.shutdown()
            server.server_close()

        try:
            return self.exchange_code(code, verifier)
        except AuthError as e:
            raise AuthError(f"failed to exchange code for token: {e}") from e

    # -------- refresh --------

    def refresh(self, token: OAuthToken) -> OAuthToken:
        """
        Refresh an expired token

        Tokens without a refresh token (client credentials) are renewed by
        running the client credentials grant again.

        Args:
            token: Current token

        Returns:
            The replacement token, already persisted
        """
        if not token.refresh_token:
            self.logger.debug("Token has no refresh token, renewing with client credentials")
            return self.login_with_client_credentials()

        data = self._request_token({
            'grant_type': 'refresh_token',
            'refresh_token': token.refresh_token,
            'client_id': self.client_id,
            'client_secret': self.client_secret,
        })
        new_token = OAuthToken.from_token_response(data, refresh_token=token.refresh_token)
        self.save_token(new_token)
        self.logger.debug("Access token refreshed")
        return new_token

    def get_valid_token(self) -> OAuthToken:
        """
        Get a valid access token, refreshing it when it is about to expire

        Returns:
            Token valid for at least EXPIRY_MARGIN seconds

        Raises:
            AuthError: If no token is stored or the refresh fails
        """
        if self._token is None:
            self._token = self.load_token()

        if self._token is None:
            raise AuthError("no saved token found, please run 'tidal-playlist auth' first")

        if self._token.expires_within(EXPIRY_MARGIN):
            try:
                self._token = self.refresh(self._token)
            except AuthError as e:
                raise AuthError(
                    f"failed to refresh token, please run 'tidal-playlist auth' again: {e}"
                ) from e

        return self._token

    def _require_credentials(self) -> None:
        if not self.client_id or not self.client_secret:
            raise AuthError("tidal.client_id and tidal.client_secret must be configured")
