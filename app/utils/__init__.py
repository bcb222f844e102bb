"""
Common utilities package for the task assignment API.

Logging setup and timestamp coercion. Query decoding lives in
``app.utils.query_parser`` and is imported from there directly.
"""

from app.utils.logger import cleanup_old_logs, setup_logger
from app.utils.timestamps import parse_timestamp

__all__ = [
    # Logging utilities
    "setup_logger",
    "cleanup_old_logs",
    # Timestamp utilities
    "parse_timestamp",
]
