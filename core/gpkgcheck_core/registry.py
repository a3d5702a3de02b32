"""
Extension registry: reads gpkg_extensions, gpkg_contents,
gpkg_geometry_columns and gpkgext_relations.
"""

import logging

from .errors import MissingTable
from .model import ExtensionDeclaration, Relation

logger = logging.getLogger(__name__)

EXTENSIONS_TABLE = 'gpkg_extensions'
CONTENTS_TABLE = 'gpkg_contents'
GEOMETRY_COLUMNS_TABLE = 'gpkg_geometry_columns'
RELATIONS_TABLE = 'gpkgext_relations'

RELATED_TABLES_EXTENSIONS = frozenset({'related_tables', 'gpkg_related_tables'})
RTREE_EXTENSION = 'gpkg_rtree_index'


def _placeholders(values):
    return ', '.join('?' for _ in values)


class ExtensionRegistry:
    def __init__(self, introspector):
        self.introspector = introspector

    def is_extension_active(self, names):
        """True iff gpkg_extensions exists and declares any of ``names``."""
        names = sorted(set(names))
        if not names or not self.introspector.table_exists(EXTENSIONS_TABLE):
            return False
        count = self.introspector.scalar(
            f"SELECT COUNT(*) FROM {EXTENSIONS_TABLE} "
            f"WHERE extension_name IN ({_placeholders(names)})", names)
        return count > 0

    def load_declaration_rows(self):
        """Every row of gpkg_extensions (empty if the table is absent)."""
        if not self.introspector.table_exists(EXTENSIONS_TABLE):
            return []
        rows = self.introspector.query(
            f"SELECT table_name, column_name, extension_name, definition, scope "
            f"FROM {EXTENSIONS_TABLE}")
        return [ExtensionDeclaration.from_row(r) for r in rows]

    def declarations_for_table(self, table_name, names):
        return [d for d in self.load_declaration_rows()
                if d.table_name == table_name and d.extension_name in names]

    def mapping_declarations(self, names=RELATED_TABLES_EXTENSIONS):
        """Related-tables declarations naming a table other than gpkgext_relations."""
        return [d for d in self.load_declaration_rows()
                if d.extension_name in names and d.table_name is not None
                and d.table_name != RELATIONS_TABLE]

    def load_relations(self):
        """All gpkgext_relations rows, unfiltered.

        Raises:
            MissingTable: gpkgext_relations does not exist.
        """
        if not self.introspector.table_exists(RELATIONS_TABLE):
            raise MissingTable(RELATIONS_TABLE)
        rows = self.introspector.query(f"SELECT * FROM {RELATIONS_TABLE}")
        relations = [Relation.from_row(r) for r in rows]
        logger.debug("Loaded %d relation(s)", len(relations))
        return relations

    def is_in_contents(self, table_name):
        if not self.introspector.table_exists(CONTENTS_TABLE):
            return False
        return self.introspector.scalar(
            f"SELECT COUNT(*) FROM {CONTENTS_TABLE} WHERE table_name = ?",
            (table_name,)) > 0

    def contents_data_type(self, table_name):
        if not self.introspector.table_exists(CONTENTS_TABLE):
            return None
        return self.introspector.scalar(
            f"SELECT data_type FROM {CONTENTS_TABLE} WHERE table_name = ?",
            (table_name,))

    def geometry_columns(self):
        """(table_name, column_name) pairs from gpkg_geometry_columns.

        Raises:
            MissingTable: gpkg_geometry_columns does not exist.
        """
        if not self.introspector.table_exists(GEOMETRY_COLUMNS_TABLE):
            raise MissingTable(GEOMETRY_COLUMNS_TABLE)
        rows = self.introspector.query(
            f"SELECT table_name, column_name FROM {GEOMETRY_COLUMNS_TABLE}")
        return [(r['table_name'], r['column_name']) for r in rows]

    def indexed_geometry_columns(self):
        """Geometry columns whose table is registered under gpkg_rtree_index."""
        indexed_tables = {d.table_name for d in self.load_declaration_rows()
                          if d.extension_name == RTREE_EXTENSION}
        return [(t, c) for t, c in self.geometry_columns() if t in indexed_tables]
