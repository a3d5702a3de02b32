"""
Referential integrity between tables without native foreign keys.
"""

import logging

from .errors import (ColumnInvalid, MissingTable, NotInContents, NotPrimaryKey,
                     OrphanReference)

logger = logging.getLogger(__name__)


def _sort_key(value):
    # NULL first, then numbers, then everything else by text
    if value is None:
        return (0, 0, '')
    if isinstance(value, (int, float)):
        return (1, value, '')
    return (2, 0, str(value))


class ReferentialIntegrityChecker:
    def __init__(self, introspector, registry):
        self.introspector = introspector
        self.registry = registry

    def check_table_exists(self, table):
        if not self.introspector.table_exists(table):
            raise MissingTable(table)

    def check_column_exists(self, table, column):
        # a double-quoted unknown column would silently read as a string literal
        if column not in {c.name for c in self.introspector.columns(table)}:
            raise ColumnInvalid(table, column, "column does not exist")

    def check_is_primary_key(self, table, expected_column):
        """Raise NotPrimaryKey unless ``expected_column`` is the table's sole pk column."""
        self.check_table_exists(table)
        pk = self.introspector.primary_key_columns(table)
        if pk != [expected_column]:
            actual = ', '.join(pk) if pk else None
            raise NotPrimaryKey(table, expected_column, actual)

    def check_foreign_values(self, mapping_table, id_column, referenced_table,
                             referenced_column):
        """Every distinct ``id_column`` value must exist in the referenced column.

        Raises:
            MissingTable: either table is absent.
            OrphanReference: naming the first unmatched value (in sorted
                order); all unmatched values are on ``.orphans``.
        """
        self.check_table_exists(mapping_table)
        self.check_table_exists(referenced_table)
        self.check_column_exists(mapping_table, id_column)
        self.check_column_exists(referenced_table, referenced_column)

        referenced = set(self.introspector.column_values(referenced_table, referenced_column))
        orphans = [v for v in self.introspector.distinct_values(mapping_table, id_column)
                   if v is None or v not in referenced]
        if orphans:
            orphans.sort(key=_sort_key)
            logger.debug("%s.%s: %d orphan value(s) against %s.%s", mapping_table,
                         id_column, len(orphans), referenced_table, referenced_column)
            raise OrphanReference(mapping_table, id_column, orphans[0],
                                  referenced_table=referenced_table, orphans=orphans)

    def check_contents_membership(self, table, role=None):
        if not self.registry.is_in_contents(table):
            raise NotInContents(table, role=role)
