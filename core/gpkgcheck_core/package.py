"""
Read-only access to a GeoPackage file.
"""

import logging
import os
import sqlite3
from pathlib import Path

logger = logging.getLogger(__name__)

SQLITE_HEADER = b'SQLite format 3\x00'


class PackageError(Exception):
    """Raised when a package file cannot be opened."""


def open_package(path):
    """Open ``path`` read-only and return a sqlite3 connection.

    The connection uses the ``mode=ro`` URI flag so no statement issued
    through it can modify the file.

    Raises:
        PackageError: the file does not exist, cannot be read or is not an
            SQLite database.
    """
    if not os.path.isfile(path):
        raise PackageError(f"Package not found: {path}")
    try:
        with open(path, 'rb') as f:
            header = f.read(len(SQLITE_HEADER))
    except OSError as e:
        raise PackageError(f"Cannot read package: {path}: {e}") from e
    if header != SQLITE_HEADER:
        raise PackageError(f"Not an SQLite database: {path}")

    uri = Path(path).resolve().as_uri() + '?mode=ro'
    logger.debug("Opening %s", uri)
    try:
        conn = sqlite3.connect(uri, uri=True)
    except sqlite3.Error as e:
        raise PackageError(f"Cannot open package: {path}: {e}") from e
    conn.row_factory = sqlite3.Row
    return conn
