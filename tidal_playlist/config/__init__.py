"""
Configuration management package for tidal-playlist

Two components live here:

1. Settings Management (settings.py):
   - Application configuration from YAML files, `.env` and environment variables
   - Validation collecting every problem at once
   - Lazily created global instance

2. Authentication Management (auth.py):
   - PKCE authorization code flow and client credentials flow
   - Token storage with owner-only permissions and automatic refresh

Factory Functions:
- get_settings(): Singleton access to application settings
- reload_settings(): Reload settings, optionally from a specific file
"""

from .settings import Settings, get_settings, reload_settings
from .auth import TidalAuth, generate_pkce_pair

__all__ = [
    'Settings',
    'get_settings',
    'reload_settings',
    'TidalAuth',
    'generate_pkce_pair',
]
