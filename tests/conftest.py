"""Test configuration and fixtures"""

import json
import logging
import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import Mock

import pytest
import yaml

from tidal_playlist.config.settings import Settings
from tidal_playlist.tidal.client import RequestGate, TidalClient
from tidal_playlist.tidal.models import OAuthToken


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def config_file(temp_dir):
    """Minimal valid config file inside the temp directory"""
    path = temp_dir / "config.yaml"
    path.write_text(yaml.safe_dump({
        'tidal': {
            'client_id': 'test-client',
            'client_secret': 'test-secret',
            'country_code': 'DE',
        },
        'playlist': {'default_name': 'Test Mix', 'count': 5},
        'network': {'request_delay': 0},
        'security': {
            'token_storage_path': str(temp_dir / "auth" / "token.json"),
            'config_directory': str(temp_dir),
        },
    }))
    return path


@pytest.fixture
def settings(config_file):
    """Settings loaded from the temp config, environment ignored"""
    return Settings(config_path=str(config_file), load_env=False)


@pytest.fixture
def valid_token():
    return OAuthToken(
        access_token='access-123',
        token_type='Bearer',
        expires_at=datetime.now(timezone.utc) + timedelta(hours=1),
        refresh_token='refresh-123'
    )


@pytest.fixture
def mock_auth(valid_token):
    """Auth manager that always hands out a valid token"""
    auth = Mock()
    auth.get_valid_token.return_value = valid_token
    return auth


@pytest.fixture
def mock_session():
    return Mock()


@pytest.fixture
def client(mock_auth, settings, mock_session):
    """TidalClient with a mocked HTTP session and no cooldown"""
    return TidalClient(mock_auth, settings, session=mock_session, gate=RequestGate(cooldown=0))


def _make_response(body=None, status_code=200, text=None):
    """Build a fake requests.Response"""
    response = Mock()
    response.status_code = status_code
    if body is None:
        response.content = b''
        response.json.side_effect = ValueError("no JSON body")
        response.text = text or ''
    else:
        response.content = json.dumps(body).encode()
        response.json.return_value = body
        response.text = text if text is not None else json.dumps(body)
    return response


@pytest.fixture
def restore_root_logger():
    """Put back the root logger handlers replaced by setup_logging"""
    root = logging.getLogger()
    handlers = root.handlers[:]
    level = root.level
    yield root
    for handler in root.handlers[:]:
        if handler not in handlers:
            handler.close()
        root.removeHandler(handler)
    for handler in handlers:
        root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def sample_album_response():
    """Artist document with included albums, as returned with include=albums"""
    return {
        'data': {'id': '100', 'type': 'artists', 'attributes': {'name': 'Test Artist'}},
        'included': [
            {
                'id': '200',
                'type': 'albums',
                'attributes': {'title': 'First Album', 'releaseDate': '2020-01-01', 'numberOfItems': 10},
            },
            {'id': '300', 'type': 'artists', 'attributes': {'name': 'Someone Else'}},
            {
                'id': '201',
                'type': 'albums',
                'attributes': {'title': 'Second Album', 'numberOfTracks': 8},
            },
        ],
    }


@pytest.fixture
def sample_tracks_response():
    """Album document with included items, as returned with include=items"""
    return {
        'data': {'id': '200', 'type': 'albums', 'attributes': {'title': 'First Album'}},
        'included': [
            {'id': '1', 'type': 'tracks', 'attributes': {'title': 'Opening', 'duration': 'PT3M20S', 'trackNumber': 1}},
            {'id': '2', 'type': 'videos', 'attributes': {'title': 'Making Of', 'duration': 'PT10M'}},
            {'id': '3', 'type': 'tracks', 'attributes': {'title': 'Closing', 'duration': 'PT4M', 'trackNumber': 2}},
        ],
    }


@pytest.fixture
def make_response():
    """Factory for fake requests.Response objects"""
    return _make_response
