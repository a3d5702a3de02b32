"""
Related Tables Extension rules (OGC 18-000).

Each rule is recorded under its conformance test id. Rules that apply per
relation or per table record one outcome per subject.
"""

import logging
import re

from .constraints import ConstraintChecker
from .errors import (ColumnInvalid, ContentsTypeInvalid, ExtensionRowInvalid,
                     Inapplicable, InfrastructureError, MissingTable, RelationNameInvalid)
from .model import ColumnSpec
from .referential import ReferentialIntegrityChecker
from .registry import (EXTENSIONS_TABLE, RELATED_TABLES_EXTENSIONS,
                       RELATIONS_TABLE, ExtensionRegistry)

logger = logging.getLogger(__name__)

SUITE = 'related_tables'
CONFORMANCE_CLASS = 'Related Tables Extension'

R_RELATIONS_DECLARED = '/conf/table-defs/ger'
R_MAPPING_DECLARED = '/conf/table-defs/extensions-gerr'
R_MAPPING_ROWS = '/conf/table-defs/extensions-udmt'
R_RELATIONS_TABLE = '/conf/table-defs/relations'
R_BASE_TABLES = '/conf/table-defs/ger-base'
R_BASE_CONTENTS = '/conf/table-defs/ger-base-contents'
R_RELATED_TABLES = '/conf/table-defs/ger-related'
R_RELATED_CONTENTS = '/conf/table-defs/ger-related-contents'
R_MAPPING_TABLES = '/conf/table-defs/ger-udmt'
R_RELATION_NAMES = '/conf/table-defs/ger-relname'
R_MAPPING_SCHEMA = '/conf/table-defs/udmt'
R_MAPPING_BASE = '/conf/table-defs/udmt-base'
R_MAPPING_RELATED = '/conf/table-defs/udmt-related'
R_MEDIA_TABLES = '/conf/media/table-def'
R_SIMPLE_ATTRIBUTES = '/conf/simple-attributes/table-def'

RULES = (
    R_RELATIONS_DECLARED, R_MAPPING_DECLARED, R_MAPPING_ROWS, R_RELATIONS_TABLE,
    R_BASE_TABLES, R_BASE_CONTENTS, R_RELATED_TABLES, R_RELATED_CONTENTS,
    R_MAPPING_TABLES, R_RELATION_NAMES, R_MAPPING_SCHEMA, R_MAPPING_BASE,
    R_MAPPING_RELATED, R_MEDIA_TABLES, R_SIMPLE_ATTRIBUTES,
)

ACCEPTED_DEFINITIONS = frozenset({
    'TBD',
    'http://docs.opengeospatial.org/is/18-000/18-000.html',
})
REQUIRED_SCOPE = 'read-write'

RELATION_NAMES = frozenset({'features', 'simple_attributes', 'media'})
# x-<author><sep><name>, case-sensitive; a segment is word characters other than '_'
EXTENDED_RELATION_NAME = re.compile(r'x-[^\W_]+[-_][^\W_]+')

RELATIONS_COLUMNS = [
    ColumnSpec('id'),
    ColumnSpec('base_table_name', 'TEXT', True),
    ColumnSpec('base_primary_column', 'TEXT', True, "'id'"),
    ColumnSpec('related_table_name', 'TEXT', True),
    ColumnSpec('related_primary_column', 'TEXT', True, "'id'"),
    ColumnSpec('relation_name', 'TEXT', True),
    ColumnSpec('mapping_table_name', 'TEXT', True),
]

MAPPING_COLUMNS = [
    ColumnSpec('base_id', 'INTEGER', True, None, 0),
    ColumnSpec('related_id', 'INTEGER', True, None, 0),
]

MEDIA_COLUMNS = [
    ColumnSpec('data', 'BLOB', True),
    ColumnSpec('content_type', 'TEXT', True),
]

DISALLOWED_SIMPLE_TYPES = frozenset({'BLOB', 'NULL', ''})


def is_valid_relation_name(name):
    if not isinstance(name, str):
        return False
    return name in RELATION_NAMES or EXTENDED_RELATION_NAME.fullmatch(name) is not None


def missing_declaration_attributes(decl, check_extension_name=False):
    """Names of the gpkg_extensions attributes ``decl`` gets wrong."""
    missing = []
    if decl.column_name is not None:
        missing.append('column_name')
    if check_extension_name and decl.extension_name not in RELATED_TABLES_EXTENSIONS:
        missing.append('extension_name')
    if decl.definition not in ACCEPTED_DEFINITIONS:
        missing.append('definition')
    if decl.scope != REQUIRED_SCOPE:
        missing.append('scope')
    return missing


def _unique(values):
    return list(dict.fromkeys(values))


class RelatedTablesSuite:
    name = SUITE
    rules = RULES

    def __init__(self, introspector):
        self.introspector = introspector
        self.registry = ExtensionRegistry(introspector)
        self.constraints = ConstraintChecker(introspector)
        self.referential = ReferentialIntegrityChecker(introspector, self.registry)

    def is_applicable(self):
        return self.registry.is_extension_active(RELATED_TABLES_EXTENSIONS)

    # ------------------------------------------------------------------
    # gpkg_extensions rows
    # ------------------------------------------------------------------

    def check_relations_table_declared(self):
        rows = [d for d in self.registry.load_declaration_rows()
                if d.table_name == RELATIONS_TABLE]
        if not rows:
            raise ExtensionRowInvalid(RELATIONS_TABLE)
        missing = missing_declaration_attributes(rows[0], check_extension_name=True)
        if missing:
            raise ExtensionRowInvalid(f"{RELATIONS_TABLE} - missing row flag(s) "
                                      f"{', '.join(missing)}")

    def _mapping_declarations(self):
        decls = self.registry.mapping_declarations(RELATED_TABLES_EXTENSIONS)
        if not decls:
            raise ExtensionRowInvalid("at least one mapping table row")
        return decls

    def check_mapping_tables_declared(self):
        for decl in self._mapping_declarations():
            self.referential.check_table_exists(decl.table_name)

    @staticmethod
    def check_mapping_declaration(decl):
        missing = missing_declaration_attributes(decl)
        if missing:
            raise ExtensionRowInvalid(f"{decl.table_name} - missing row flag(s) "
                                      f"{', '.join(missing)}")

    # ------------------------------------------------------------------
    # gpkgext_relations and the tables it names
    # ------------------------------------------------------------------

    def check_relations_table_definition(self):
        self.referential.check_table_exists(RELATIONS_TABLE)
        self.referential.check_is_primary_key(RELATIONS_TABLE, 'id')
        self.constraints.check_columns(RELATIONS_TABLE, RELATIONS_COLUMNS)

    @staticmethod
    def check_relation_name(relation):
        if not is_valid_relation_name(relation.relation_name):
            raise RelationNameInvalid(relation.relation_name, relation.base_table_name)

    def check_mapping_table_schema(self, mapping_table):
        self.referential.check_table_exists(mapping_table)
        self.constraints.check_columns(mapping_table, MAPPING_COLUMNS)

    def check_mapping_base(self, relation):
        self.referential.check_foreign_values(
            relation.mapping_table_name, 'base_id',
            relation.base_table_name, relation.base_primary_column)
        self.referential.check_is_primary_key(
            relation.base_table_name, relation.base_primary_column)

    def check_mapping_related(self, relation):
        self.referential.check_foreign_values(
            relation.mapping_table_name, 'related_id',
            relation.related_table_name, relation.related_primary_column)
        self.referential.check_is_primary_key(
            relation.related_table_name, relation.related_primary_column)

    def _check_attributes_table(self, table):
        self.referential.check_table_exists(table)
        if not self.introspector.primary_key_columns(table):
            raise ColumnInvalid(table, '(primary key)', 'table has no primary key')
        data_type = self.registry.contents_data_type(table)
        if data_type != 'attributes':
            raise ContentsTypeInvalid(table, 'attributes', data_type)

    def check_media_table(self, table):
        self._check_attributes_table(table)
        self.constraints.check_columns(table, MEDIA_COLUMNS)

    def check_simple_attributes_table(self, table):
        self._check_attributes_table(table)
        for column in self.introspector.columns(table):
            if column.pk_ordinal:
                continue
            if (column.declared_type or '').strip().upper() in DISALLOWED_SIMPLE_TYPES:
                raise ColumnInvalid(table, column.name,
                                    f"type {column.declared_type or 'none'} is not allowed")

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def run(self, runner):
        try:
            applicable = self.is_applicable()
        except InfrastructureError as e:
            if e.fatal:
                raise
            runner.record_all(RULES, EXTENSIONS_TABLE, e)
            return
        if not applicable:
            reason = str(Inapplicable(CONFORMANCE_CLASS))
            logger.warning("Skipping %s: %s", SUITE, reason)
            for rule_id in RULES:
                runner.skip(rule_id, reason)
            return

        logger.info("Running %s rules", SUITE)
        runner.evaluate(R_RELATIONS_DECLARED, RELATIONS_TABLE,
                        self.check_relations_table_declared)
        runner.evaluate(R_MAPPING_DECLARED, EXTENSIONS_TABLE,
                        self.check_mapping_tables_declared)

        ok, decls = runner.prerequisite(R_MAPPING_ROWS, EXTENSIONS_TABLE,
                                        self._mapping_declarations)
        if ok:
            for decl in decls:
                runner.evaluate(R_MAPPING_ROWS, decl.table_name,
                                self.check_mapping_declaration, decl)

        runner.evaluate(R_RELATIONS_TABLE, RELATIONS_TABLE,
                        self.check_relations_table_definition)

        relation_rules = (R_BASE_TABLES, R_BASE_CONTENTS, R_RELATED_TABLES,
                          R_RELATED_CONTENTS, R_MAPPING_TABLES, R_RELATION_NAMES,
                          R_MAPPING_SCHEMA, R_MAPPING_BASE, R_MAPPING_RELATED,
                          R_MEDIA_TABLES, R_SIMPLE_ATTRIBUTES)
        try:
            relations = self.registry.load_relations()
        except (MissingTable, InfrastructureError) as e:
            if getattr(e, "fatal", False):
                raise
            # every relation rule fails the same way
            runner.record_all(relation_rules, RELATIONS_TABLE, e)
            return
        self.run_relation_rules(runner, relations)

    def run_relation_rules(self, runner, relations):
        base_tables = _unique(r.base_table_name for r in relations)
        related_tables = _unique(r.related_table_name for r in relations)
        mapping_tables = _unique(r.mapping_table_name for r in relations)

        for table in base_tables:
            runner.evaluate(R_BASE_TABLES, table, self.referential.check_table_exists, table)
        for table in base_tables:
            runner.evaluate(R_BASE_CONTENTS, table,
                            self.referential.check_contents_membership, table, 'base')
        for table in related_tables:
            runner.evaluate(R_RELATED_TABLES, table, self.referential.check_table_exists, table)
        for table in related_tables:
            runner.evaluate(R_RELATED_CONTENTS, table,
                            self.referential.check_contents_membership, table, 'related')
        for table in mapping_tables:
            runner.evaluate(R_MAPPING_TABLES, table, self.referential.check_table_exists, table)
        for relation in relations:
            runner.evaluate(R_RELATION_NAMES, relation.base_table_name,
                            self.check_relation_name, relation)
        for table in mapping_tables:
            runner.evaluate(R_MAPPING_SCHEMA, table, self.check_mapping_table_schema, table)
        for relation in relations:
            runner.evaluate(R_MAPPING_BASE, relation.mapping_table_name,
                            self.check_mapping_base, relation)
        for relation in relations:
            runner.evaluate(R_MAPPING_RELATED, relation.mapping_table_name,
                            self.check_mapping_related, relation)

        for table in _unique(r.related_table_name for r in relations
                             if r.relation_name == 'media'):
            runner.evaluate(R_MEDIA_TABLES, table, self.check_media_table, table)
        for table in _unique(r.related_table_name for r in relations
                             if r.relation_name == 'simple_attributes'):
            runner.evaluate(R_SIMPLE_ATTRIBUTES, table,
                            self.check_simple_attributes_table, table)
