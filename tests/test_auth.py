"""Test OAuth2 authentication and token storage"""

import base64
import hashlib
import json
import os
import stat
import threading
import urllib.parse
from concurrent.futures import Future
from concurrent.futures import TimeoutError as FutureTimeoutError
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import Mock, patch

import pytest
import requests

from tidal_playlist.config.auth import TOKEN_URL, CallbackHandler, CallbackServer, TidalAuth, generate_pkce_pair
from tidal_playlist.exceptions import AuthError
from tidal_playlist.tidal.models import OAuthToken


@pytest.fixture
def auth(settings, mock_session):
    return TidalAuth(settings, session=mock_session)


@pytest.fixture
def expired_token():
    return OAuthToken(
        access_token='old-access',
        token_type='Bearer',
        expires_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        refresh_token='refresh-123'
    )


def token_body(access_token='new-access', **extra):
    body = {'access_token': access_token, 'token_type': 'Bearer', 'expires_in': 3600}
    body.update(extra)
    return body


class TestPKCE:
    """Test PKCE verifier/challenge generation"""

    def test_challenge_is_s256_of_verifier(self):
        """Test the challenge is the S256 digest of the verifier"""
        verifier, challenge = generate_pkce_pair()
        digest = hashlib.sha256(verifier.encode('ascii')).digest()
        expected = base64.urlsafe_b64encode(digest).rstrip(b'=').decode('ascii')
        assert challenge == expected

    def test_verifier_is_unpadded_base64url(self):
        """Test verifier encoding"""
        verifier, _ = generate_pkce_pair()
        # 32 random bytes encode to 43 characters without padding
        assert len(verifier) == 43
        assert '=' not in verifier
        assert '+' not in verifier and '/' not in verifier

    def test_pairs_are_random(self):
        """Test each call returns a new verifier"""
        assert generate_pkce_pair()[0] != generate_pkce_pair()[0]

    def test_authorization_url(self, auth):
        """Test authorization URL parameters"""
        url = auth.build_authorization_url('challenge-xyz', 'state-1')
        parsed = urllib.parse.urlparse(url)
        query = urllib.parse.parse_qs(parsed.query)

        assert url.startswith('https://login.tidal.com/authorize?')
        assert query['client_id'] == ['test-client']
        assert query['code_challenge'] == ['challenge-xyz']
        assert query['code_challenge_method'] == ['S256']
        assert query['response_type'] == ['code']
        assert query['redirect_uri'] == ['http://localhost:8080/callback']
        assert 'playlists.write' in query['scope'][0].split(' ')


class TestTokenStorage:
    """Test token persistence"""

    def test_save_and_load(self, auth, valid_token):
        """Test token save and load"""
        auth.save_token(valid_token)

        assert auth.token_file.exists()
        assert json.loads(auth.token_file.read_text())['access_token'] == 'access-123'
        assert auth.load_token() == valid_token

    def test_owner_only_permissions(self, auth, valid_token):
        """Test token file and directory permissions"""
        auth.save_token(valid_token)

        assert stat.S_IMODE(auth.token_file.stat().st_mode) == 0o600
        assert stat.S_IMODE(auth.token_file.parent.stat().st_mode) & 0o077 == 0

    def test_existing_file_private_before_write(self, auth, valid_token):
        """Test a world-readable token file is tightened before the token is written"""
        auth.token_file.parent.mkdir(parents=True)
        auth.token_file.write_text('{}')
        auth.token_file.chmod(0o644)
        modes = []
        real_dump = json.dump

        def dump(obj, f, **kwargs):
            modes.append(stat.S_IMODE(auth.token_file.stat().st_mode))
            real_dump(obj, f, **kwargs)

        with patch('tidal_playlist.config.auth.json.dump', side_effect=dump):
            auth.save_token(valid_token)

        assert modes == [0o600]
        assert auth.load_token() == valid_token

    def test_new_file_created_private(self, auth, valid_token):
        """Test the token file is created with owner-only permissions"""
        with patch('tidal_playlist.config.auth.os.open', wraps=os.open) as mock_open:
            auth.save_token(valid_token)

        assert mock_open.call_args[0][2] == 0o600
        assert stat.S_IMODE(auth.token_file.stat().st_mode) == 0o600

    def test_load_missing(self, auth):
        """Test loading without a token file"""
        assert auth.load_token() is None

    def test_load_corrupt(self, auth):
        """Test loading a corrupt token file"""
        auth.token_file.parent.mkdir(parents=True)
        auth.token_file.write_text("{not json")
        assert auth.load_token() is None

    def test_revoke(self, auth, valid_token):
        """Test token revocation"""
        auth.save_token(valid_token)
        auth.revoke_token()

        assert not auth.token_file.exists()
        with pytest.raises(AuthError):
            auth.get_valid_token()


class TestTokenLifecycle:
    """Test token refresh and validity checks"""

    def test_no_token(self, auth):
        """Test missing token error"""
        with pytest.raises(AuthError, match="please run 'tidal-playlist auth' first"):
            auth.get_valid_token()

    def test_valid_token_is_used_as_is(self, auth, valid_token, mock_session):
        """Test a valid token is not refreshed"""
        auth.save_token(valid_token)

        assert auth.get_valid_token() == valid_token
        mock_session.post.assert_not_called()

    def test_valid_token_loaded_from_file(self, settings, valid_token, mock_session):
        """Test a new manager reads the stored token"""
        TidalAuth(settings, session=mock_session).save_token(valid_token)

        fresh = TidalAuth(settings, session=mock_session)
        assert fresh.get_valid_token().access_token == 'access-123'

    def test_expired_token_is_refreshed(self, auth, expired_token, mock_session, make_response):
        """Test expired token refresh"""
        auth.save_token(expired_token)
        mock_session.post.return_value = make_response(token_body())

        token = auth.get_valid_token()

        assert token.access_token == 'new-access'
        # The response carried no refresh token, the old one is kept
        assert token.refresh_token == 'refresh-123'
        assert not token.expires_within(60)

        args, kwargs = mock_session.post.call_args
        assert args[0] == TOKEN_URL
        assert kwargs['data']['grant_type'] == 'refresh_token'
        assert kwargs['data']['refresh_token'] == 'refresh-123'

        # The refreshed token replaced the stored one
        assert auth.load_token().access_token == 'new-access'

    def test_token_without_refresh_uses_client_credentials(self, auth, expired_token, mock_session, make_response):
        """Test renewal through client credentials"""
        expired_token.refresh_token = ''
        auth.save_token(expired_token)
        mock_session.post.return_value = make_response(token_body('cc-access'))

        token = auth.get_valid_token()

        assert token.access_token == 'cc-access'
        _, kwargs = mock_session.post.call_args
        assert kwargs['data'] == {'grant_type': 'client_credentials'}
        assert kwargs['auth'] == ('test-client', 'test-secret')

    def test_refresh_failure(self, auth, expired_token, mock_session, make_response):
        """Test refresh failure"""
        auth.save_token(expired_token)
        mock_session.post.return_value = make_response({'error': 'invalid_grant'}, status_code=400)

        with pytest.raises(AuthError, match="run 'tidal-playlist auth' again"):
            auth.get_valid_token()

    def test_client_credentials_login(self, auth, mock_session, make_response):
        """Test client credentials login"""
        mock_session.post.return_value = make_response(token_body('cc-access'))

        token = auth.login_with_client_credentials()

        assert token.access_token == 'cc-access'
        assert token.refresh_token == ''
        assert auth.load_token() == token

    def test_client_credentials_require_secret(self, auth, mock_session):
        """Test client credentials without a secret"""
        auth.client_secret = ''
        with pytest.raises(AuthError):
            auth.login_with_client_credentials()
        mock_session.post.assert_not_called()


class TestCallback:
    """Test the one-shot callback result"""

    def make_handler(self, path='/callback', expected_state='expected'):
        handler = CallbackHandler.__new__(CallbackHandler)
        handler.server = SimpleNamespace(result=Future(), callback_path='/callback', expected_state=expected_state)
        handler.path = path
        handler._respond = Mock()
        return handler

    def test_first_code_wins(self):
        """Test only the first callback is kept"""
        handler = self.make_handler()
        handler._resolve(code='first')
        handler._resolve(code='second')
        assert handler.server.result.result(timeout=0) == 'first'

    def test_error_fails_the_future(self):
        """Test callback errors"""
        handler = self.make_handler()
        handler._resolve(error='access_denied')
        with pytest.raises(AuthError, match='access_denied'):
            handler.server.result.result(timeout=0)

    def test_forged_state_rejected(self):
        """Test a callback whose state differs from the login's state fails the login"""
        handler = self.make_handler('/callback?code=ATTACKER&state=forged')

        handler.do_GET()

        with pytest.raises(AuthError, match='state mismatch'):
            handler.server.result.result(timeout=0)
        assert handler._respond.call_args[0][0] == 400

    def test_missing_state_rejected(self):
        """Test a callback without a state is rejected"""
        handler = self.make_handler('/callback?code=ATTACKER')

        handler.do_GET()

        with pytest.raises(AuthError, match='state mismatch'):
            handler.server.result.result(timeout=0)

    def test_matching_state_accepted(self):
        """Test a callback carrying the login's state resolves the code"""
        handler = self.make_handler('/callback?code=good-code&state=expected')

        handler.do_GET()

        assert handler.server.result.result(timeout=0) == 'good-code'
        assert handler._respond.call_args[0][0] == 200

    def test_forged_state_over_http(self):
        """Test a real callback server rejects a forged state"""
        server = CallbackServer(('127.0.0.1', 0), expected_state='expected')
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        session = requests.Session()
        session.trust_env = False
        try:
            port = server.server_address[1]
            response = session.get(f'http://127.0.0.1:{port}/callback?code=ATTACKER&state=forged', timeout=5)

            assert response.status_code == 400
            with pytest.raises(AuthError, match='state mismatch'):
                server.result.result(timeout=5)
        finally:
            server.shutdown()
            server.server_close()
            session.close()


class TestInteractiveLogin:
    """Test the PKCE login flow with the callback server mocked out"""

    @patch('tidal_playlist.config.auth.CallbackServer')
    def test_login_exchanges_code(self, mock_server_class, auth, mock_session, make_response):
        """Test code exchange after the callback"""
        server = mock_server_class.return_value
        server.result.result.return_value = 'auth-code'
        mock_session.post.return_value = make_response(token_body(refresh_token='r-1'))

        token = auth.login(timeout=1, open_browser=False)

        assert token.access_token == 'new-access'
        assert token.refresh_token == 'r-1'
        server.result.result.assert_called_once_with(timeout=1)
        server.shutdown.assert_called_once()

        data = mock_session.post.call_args.kwargs['data']
        assert data['grant_type'] == 'authorization_code'
        assert data['code'] == 'auth-code'
        assert len(data['code_verifier']) == 43
        assert auth.load_token() == token

    @patch('tidal_playlist.config.auth.CallbackServer')
    def test_login_timeout(self, mock_server_class, auth, mock_session):
        """Test login timeout"""
        server = mock_server_class.return_value
        server.result.result.side_effect = FutureTimeoutError()

        with pytest.raises(AuthError, match='authentication timeout'):
            auth.login(timeout=0.01, open_browser=False)

        server.shutdown.assert_called_once()
        server.server_close.assert_called_once()
        mock_session.post.assert_not_called()

    @patch('tidal_playlist.config.auth.webbrowser.open')
    @patch('tidal_playlist.config.auth.CallbackServer')
    def test_login_opens_browser(self, mock_server_class, mock_open, auth, mock_session, make_response):
        """Test the browser is opened with the login state"""
        mock_server_class.return_value.result.result.return_value = 'auth-code'
        mock_session.post.return_value = make_response(token_body())

        auth.login(timeout=1)

        url = mock_open.call_args[0][0]
        assert url.startswith('https://login.tidal.com/authorize?')
        state = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)['state'][0]
        assert mock_server_class.call_args.kwargs['expected_state'] == state

    @patch('tidal_playlist.config.auth.CallbackServer')
    def test_failed_exchange(self, mock_server_class, auth, mock_session, make_response):
        """Test failed code exchange"""
        mock_server_class.return_value.result.result.return_value = 'auth-code'
        mock_session.post.return_value = make_response(None, status_code=500, text='boom')

        with pytest.raises(AuthError, match='failed to exchange code for token'):
            auth.login(timeout=1, open_browser=False)
