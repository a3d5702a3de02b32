"""
Schema introspection over a read-only SQLite connection.

All identifier interpolation goes through quote_identifier(); all queries
go through SchemaIntrospector.query(), which applies the per-query deadline
and translates sqlite3 failures into InfrastructureError.
"""

import logging
import sqlite3
import threading
import time
from contextlib import contextmanager

from .errors import InfrastructureError
from .model import ColumnSpec

logger = logging.getLogger(__name__)

# SQLite VM instructions between deadline checks
PROGRESS_STEPS = 1000


def quote_identifier(name):
    """Return ``name`` as a double-quoted SQL identifier.

    Raises ValueError for values that cannot name a schema object.
    """
    if not isinstance(name, str) or not name:
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    if '\x00' in name:
        raise ValueError(f"SQL identifier contains NUL: {name!r}")
    return '"' + name.replace('"', '""') + '"'


def escape_like(value, escape='\\'):
    """Escape LIKE wildcards so ``value`` matches literally."""
    return (value.replace(escape, escape + escape)
                 .replace('%', escape + '%')
                 .replace('_', escape + '_'))


class Deadline:
    """Per-query time limit that can also be cancelled from another thread.

    ``seconds`` of None or 0 disables the time limit; cancel() still works.
    """

    def __init__(self, seconds=None):
        self.seconds = seconds or None
        self._cancelled = threading.Event()

    def cancel(self):
        self._cancelled.set()

    @property
    def cancelled(self):
        return self._cancelled.is_set()

    def handler(self):
        """Build a progress handler for one query."""
        expires = time.monotonic() + self.seconds if self.seconds else None

        def _progress():
            if self._cancelled.is_set():
                return 1
            if expires is not None and time.monotonic() > expires:
                return 1
            return 0
        return _progress


class SchemaIntrospector:
    def __init__(self, conn: sqlite3.Connection, deadline: Deadline = None):
        self.conn = conn
        self.deadline = deadline or Deadline()

    # ------------------------------------------------------------------
    # Query plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _guarded(self, sql):
        try:
            self.conn.set_progress_handler(self.deadline.handler(), PROGRESS_STEPS)
            yield
        except sqlite3.OperationalError as e:
            if str(e) == 'interrupted':
                reason = 'cancelled' if self.deadline.cancelled else \
                    f'timed out after {self.deadline.seconds}s'
                raise InfrastructureError(f"Query {reason}: {sql}", sql=sql) from e
            raise InfrastructureError(f"Query failed: {e}", sql=sql) from e
        except sqlite3.DatabaseError as e:
            raise InfrastructureError(f"Database error: {e}", sql=sql, fatal=True) from e
        finally:
            try:
                self.conn.set_progress_handler(None, 0)
            except sqlite3.ProgrammingError:
                pass  # connection already closed

    def query(self, sql, params=()):
        """Execute a read-only query and return all rows as sqlite3.Row."""
        logger.debug("query: %s %r", sql, params)
        with self._guarded(sql):
            cursor = self.conn.cursor()
            cursor.row_factory = sqlite3.Row
            cursor.execute(sql, params)
            return cursor.fetchall()

    def scalar(self, sql, params=()):
        rows = self.query(sql, params)
        return rows[0][0] if rows else None

    # ------------------------------------------------------------------
    # Catalog
    # ------------------------------------------------------------------

    def table_exists(self, name):
        """True if a table or view called ``name`` exists."""
        try:
            quote_identifier(name)
        except ValueError:
            return False
        return self.scalar(
            "SELECT COUNT(*) FROM sqlite_master "
            "WHERE type IN ('table', 'view') AND name = ? COLLATE NOCASE",
            (name,)) > 0

    def columns(self, table):
        """Column shapes for ``table`` in declaration order."""
        quote_identifier(table)
        rows = self.query("SELECT * FROM pragma_table_info(?) ORDER BY cid", (table,))
        return [ColumnSpec.from_pragma(r) for r in rows]

    def primary_key_columns(self, table):
        """Primary key column names ordered by key position (empty if none)."""
        cols = [c for c in self.columns(table) if c.pk_ordinal]
        return [c.name for c in sorted(cols, key=lambda c: c.pk_ordinal)]

    def schema_sql(self, name, type_='table'):
        """Generating SQL text of one schema object, or None."""
        quote_identifier(name)
        rows = self.query(
            "SELECT sql FROM sqlite_master WHERE type = ? AND name = ?",
            (type_, name))
        return rows[0]['sql'] if rows else None

    def schema_sql_with_prefix(self, prefix, type_='trigger'):
        """(name, sql) pairs whose name starts with ``prefix``, sorted by name."""
        quote_identifier(prefix)
        rows = self.query(
            "SELECT name, sql FROM sqlite_master "
            "WHERE type = ? AND name LIKE ? ESCAPE '\\'",
            (type_, escape_like(prefix) + '%'))
        # LIKE is case-insensitive; keep the prefix match exact
        pairs = [(r['name'], r['sql']) for r in rows if r['name'].startswith(prefix)]
        return sorted(pairs)

    # ------------------------------------------------------------------
    # Data
    # ------------------------------------------------------------------

    def distinct_values(self, table, column):
        sql = f"SELECT DISTINCT {quote_identifier(column)} FROM {quote_identifier(table)}"
        return [r[0] for r in self.query(sql)]

    def column_values(self, table, column):
        sql = f"SELECT {quote_identifier(column)} FROM {quote_identifier(table)}"
        return [r[0] for r in self.query(sql)]
