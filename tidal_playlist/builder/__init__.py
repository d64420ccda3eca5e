"""
Playlist builder package
Turns favorite artists into a randomly sampled playlist
"""

from .playlist import BuildResult, PlaylistBuilder, select_random_items

__all__ = [
    'PlaylistBuilder',
    'BuildResult',
    'select_random_items',
]
