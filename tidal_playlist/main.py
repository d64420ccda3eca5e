"""
Main CLI interface for tidal-playlist

This module provides the command-line interface and serves as the primary
entry point for user interactions with the application.

The CLI is built using the Click framework and provides:
- auth: authenticate with TIDAL (browser login or client credentials)
- create: build a playlist from random tracks of your favorite artists
- version: show the application version

Global options (``--config``, ``--verbose``) are stored on the Click context;
each command loads its settings and configures logging from them before
doing any work.
"""

import functools
import sys
from typing import Optional

import click

from . import __version__
from .builder.playlist import PlaylistBuilder
from .config.auth import TidalAuth
from .config.settings import Settings, reload_settings
from .tidal.client import TidalClient
from .utils.helpers import format_duration
from .utils.logger import configure_from_settings, get_logger


logger = get_logger(__name__)


def handle_error(func):
    """
    Decorator to handle common CLI errors gracefully

    Wraps CLI command functions to provide consistent error handling across
    all commands. Any exception becomes a red "Error: ..." line on stderr and
    exit code 1; Ctrl-C exits with 130.

    Args:
        func: The CLI command function to wrap

    Returns:
        Wrapped function with error handling
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except KeyboardInterrupt:
            # Handle user cancellation gracefully
            click.echo(click.style("\n\nOperation cancelled by user", fg='yellow'))
            sys.exit(130)  # Standard exit code for SIGINT
        except Exception as e:
            # Log error for debugging and show user-friendly message
            logger.debug(f"Command failed: {e}", exc_info=True)
            click.echo(click.style(f"Error: {e}", fg='red'), err=True)
            sys.exit(1)
    return wrapper


def load_settings(ctx: click.Context, config: Optional[str] = None) -> Settings:
    """
    Load settings for a command and configure logging from them

    A command-level ``--config`` wins over the global one.

    Args:
        ctx: Click context holding the global options
        config: Config path given to the command itself

    Returns:
        Loaded (not yet validated) settings
    """
    options = ctx.obj or {}
    settings = reload_settings(config or options.get('config'))
    configure_from_settings(settings, verbose=options.get('verbose', False))

    if settings.loaded_from:
        logger.debug(f"Loaded config: {settings.loaded_from}")
    return settings


# Main CLI group - root command that all subcommands attach to
@click.group()
@click.option('--config', type=click.Path(), help='Path to config file')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose output')
@click.pass_context
def cli(ctx, config, verbose):
    """
    tidal-playlist - Build TIDAL playlists from your favorite artists

    Draws random artists from your TIDAL favorites, picks one random track
    for each draw and writes them to a playlist, replacing any playlist with
    the same name.
    """
    ctx.ensure_object(dict)
    ctx.obj['config'] = config
    ctx.obj['verbose'] = verbose


@cli.command()
@click.option('--client-credentials', is_flag=True,
              help='Use the client credentials flow instead of the browser login')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
@handle_error
def auth(ctx, client_credentials, config):
    """
    Authenticate with TIDAL

    Opens the browser for the OAuth2 login (PKCE) and stores the resulting
    token. With --client-credentials a token is obtained without user
    interaction; it has no user context.
    """
    settings = load_settings(ctx, config)
    settings.validate()

    auth_manager = TidalAuth(settings)

    if client_credentials:
        click.echo("Authenticating with client credentials...")
        token = auth_manager.login_with_client_credentials()
    else:
        click.echo("Starting TIDAL authentication...")
        token = auth_manager.login()

    click.echo(click.style("Authentication successful!", fg='green'))
    click.echo(f"Token saved to {auth_manager.token_file}")
    click.echo(f"Token expires at: {token.expires_at.astimezone().strftime('%Y-%m-%d %H:%M:%S %Z')}")


@cli.command()
@click.argument('name', required=False)
@click.option('--name', '-n', 'name_option', help='Playlist name')
@click.option('--count', '-c', type=int, help='Number of tracks to draw')
@click.option('--dry-run', is_flag=True, help='Show what would be created without writing anything')
@click.option('--config', type=click.Path(), help='Path to config file')
@click.pass_context
@handle_error
def create(ctx, name, name_option, count, dry_run, config):
    """
    Create or replace a playlist from your favorite artists

    NAME defaults to --name, then to playlist.default_name from the config.
    """
    settings = load_settings(ctx, config)

    # Override before validation so an invalid --count is reported
    if count is not None:
        settings.playlist.count = count
    settings.validate()

    playlist_name = name or name_option or settings.playlist.default_name

    client = TidalClient(TidalAuth(settings), settings)
    builder = PlaylistBuilder(client, settings)

    click.echo(f"Building playlist '{playlist_name}' with {settings.playlist.count} tracks")
    result = builder.build_playlist(playlist_name, dry_run=dry_run)

    if result.dry_run:
        click.echo(f"\nDry run: {len(result.tracks)} tracks, {format_duration(result.total_duration)}")
    else:
        click.echo(click.style(f"\nPlaylist ID: {result.playlist.id}", fg='green'))


@cli.command()
def version():
    """Show version information"""
    click.echo(f"tidal-playlist v{__version__}")


if __name__ == '__main__':
    cli()
