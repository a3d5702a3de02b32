"""
Data model: rows read from the GeoPackage catalog and derived shapes.

Nothing here is persisted by the engine; every instance is built fresh
from the connection for one validation run.
"""

from dataclasses import dataclass
from typing import Any, Optional


class _Any:
    """Sentinel for an expectation attribute that is not checked."""

    def __repr__(self):
        return 'ANY'


ANY = _Any()


@dataclass(frozen=True)
class ExtensionDeclaration:
    table_name: Optional[str]
    column_name: Optional[str]
    extension_name: str
    definition: Optional[str]
    scope: Optional[str]

    @classmethod
    def from_row(cls, row):
        return cls(
            table_name=row['table_name'],
            column_name=row['column_name'],
            extension_name=row['extension_name'],
            definition=row['definition'],
            scope=row['scope'],
        )


@dataclass(frozen=True)
class Relation:
    id: Any
    base_table_name: str
    related_table_name: str
    relation_name: str
    mapping_table_name: str
    base_primary_column: str = 'id'
    related_primary_column: str = 'id'

    @classmethod
    def from_row(cls, row):
        keys = row.keys()

        def get(key, default=None):
            return row[key] if key in keys else default

        return cls(
            id=get('id'),
            base_table_name=get('base_table_name'),
            base_primary_column=get('base_primary_column', 'id'),
            related_table_name=get('related_table_name'),
            related_primary_column=get('related_primary_column', 'id'),
            relation_name=get('relation_name'),
            mapping_table_name=get('mapping_table_name'),
        )


@dataclass(frozen=True)
class ColumnSpec:
    """Shape of one column.

    Introspection fills every attribute. As an expectation, attributes left
    as ``ANY`` are not checked; ``default_value=None`` means "no default".
    """
    name: str
    declared_type: Any = ANY
    not_null: Any = ANY
    default_value: Any = ANY
    pk_ordinal: Any = ANY

    @classmethod
    def from_pragma(cls, row):
        # pragma_table_info row: (cid, name, type, notnull, dflt_value, pk)
        return cls(
            name=row['name'],
            declared_type=row['type'],
            not_null=bool(row['notnull']),
            default_value=row['dflt_value'],
            pk_ordinal=row['pk'],
        )


@dataclass(frozen=True)
class TriggerTemplate:
    logical_name: str          # 'virtual table', 'insert trigger', 'update trigger 1', ...
    timing: Optional[str]      # 'AFTER' (None for the virtual table)
    event: Optional[str]       # 'INSERT', 'UPDATE OF <c>', 'UPDATE', 'DELETE'
    subject_table: str
    subject_column: str
    artifact_name: str         # name of the schema object in sqlite_master
    body_pattern: Any          # compiled re.Pattern, anchored via fullmatch

    def matches(self, sql):
        return sql is not None and self.body_pattern.fullmatch(sql.strip()) is not None
