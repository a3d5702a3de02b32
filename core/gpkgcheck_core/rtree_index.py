"""
RTree Spatial Index Extension rules (OGC 12-128r13 Annex F.3).
"""

import logging

from .errors import (IllegalScope, Inapplicable, InfrastructureError,
                     InvalidReference)
from .registry import (EXTENSIONS_TABLE, GEOMETRY_COLUMNS_TABLE, RTREE_EXTENSION,
                       ExtensionRegistry)
from .templates import TemplateMatcher

logger = logging.getLogger(__name__)

SUITE = 'rtree_index'
CONFORMANCE_CLASS = 'RTree Spatial Index Extension'

R_EXTENSION_ROWS = '/extensions/rtree/extensions-rows'
R_IMPLEMENTATION = '/extensions/rtree/implementation'

RULES = (R_EXTENSION_ROWS, R_IMPLEMENTATION)

REQUIRED_SCOPE = 'write-only'


class RTreeIndexSuite:
    name = SUITE
    rules = RULES

    def __init__(self, introspector):
        self.introspector = introspector
        self.registry = ExtensionRegistry(introspector)
        self.matcher = TemplateMatcher(introspector)

    def is_applicable(self):
        return self.registry.is_extension_active({RTREE_EXTENSION})

    def rtree_declarations(self):
        return [d for d in self.registry.load_declaration_rows()
                if d.extension_name == RTREE_EXTENSION]

    @staticmethod
    def check_extension_row(decl, geometry_columns):
        """An rtree row must name a registered geometry column with write-only scope."""
        if decl.column_name is None or \
                (decl.table_name, decl.column_name) not in geometry_columns:
            raise InvalidReference(decl.table_name, decl.column_name)
        if decl.scope != REQUIRED_SCOPE:
            raise IllegalScope(RTREE_EXTENSION, REQUIRED_SCOPE, decl.scope)

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
        ok, geometry_columns = runner.prerequisite(
            R_EXTENSION_ROWS, GEOMETRY_COLUMNS_TABLE, self.registry.geometry_columns)
        if ok:
            geometry_columns = set(geometry_columns)
            ok, decls = runner.prerequisite(R_EXTENSION_ROWS, EXTENSIONS_TABLE,
                                            self.rtree_declarations)
            for decl in decls or []:
                runner.evaluate(R_EXTENSION_ROWS, f"{decl.table_name}.{decl.column_name}",
                                self.check_extension_row, decl, geometry_columns)

        ok, indexed = runner.prerequisite(R_IMPLEMENTATION, GEOMETRY_COLUMNS_TABLE,
                                          self.registry.indexed_geometry_columns)
        if not ok:
            return
        if not indexed:
            # declared but nothing to index; the extension-rows rule reports why
            logger.info("No indexed geometry columns found")
            return
        for table, column in indexed:
            subject = f"{table}.{column}"
            ok, artifacts = runner.prerequisite(R_IMPLEMENTATION, subject,
                                                self.matcher.fetch_artifacts, table, column)
            if not ok:
                continue
            for template, sql in artifacts:
                runner.evaluate(R_IMPLEMENTATION, f"{subject} ({template.logical_name})",
                                self.matcher.verify, template, sql)

