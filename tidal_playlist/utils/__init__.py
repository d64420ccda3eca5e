"""
Utilities package
Logging and small helper functions
"""

from .logger import (
    get_logger,
    configure_from_settings,
    setup_logging,
    OperationLogger,
    create_operation_logger,
    log_performance
)
from .helpers import (
    format_duration,
    parse_duration_string,
    parse_iso_duration,
    chunk_list,
    parse_comma_list,
    truncate_string,
    ensure_directory
)

__all__ = [
    # Logger exports
    'get_logger',
    'configure_from_settings',
    'setup_logging',
    'OperationLogger',
    'create_operation_logger',
    'log_performance',

    # Helper exports
    'format_duration',
    'parse_duration_string',
    'parse_iso_duration',
    'chunk_list',
    'parse_comma_list',
    'truncate_string',
    'ensure_directory',
]
