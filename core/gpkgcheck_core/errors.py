"""
Outcome-bearing exceptions for the conformance engine.

Three tiers:
  - Inapplicable: the extension is not declared; the rule group is skipped.
  - Violation (and subclasses): the package does not conform.
  - InfrastructureError: a query or the connection failed; never a verdict
    about the package itself.
"""


class ConformanceError(Exception):
    """Base exception for conformance checking."""


class Inapplicable(ConformanceError):
    """Raised when a conformance class is not in use by the package."""

    def __init__(self, conformance_class):
        self.conformance_class = conformance_class
        super().__init__(f"Conformance class {conformance_class} is not in use.")


class InfrastructureError(ConformanceError):
    """Raised when a query fails or times out.

    Non-fatal errors abort only the rule being evaluated. Fatal errors
    (broken connection, not a database) abort the whole run.
    """

    def __init__(self, message, sql=None, fatal=False):
        self.sql = sql
        self.fatal = fatal
        super().__init__(message)


# ---------------------------------------------------------------------------
# Violations
# ---------------------------------------------------------------------------

class Violation(ConformanceError):
    """A required structural, referential or template property is unmet."""

    kind = 'Violation'

    def __init__(self, message, expected=None, actual=None):
        self.expected = expected
        self.actual = actual
        super().__init__(message)

    @property
    def detail(self):
        msg = str(self)
        if self.expected is not None or self.actual is not None:
            msg += f" expected [{self.expected}] but found [{self.actual}]"
        return msg


class MissingTable(Violation):
    kind = 'MissingTable'

    def __init__(self, table):
        self.table = table
        super().__init__(f"The {table} table is missing.")


class SchemaViolation(Violation):
    """One or more expected columns were not observed with the right shape.

    ``missing_mask`` has one bit set per expected column (in declaration
    order) that was absent or failed a constraint; ``reasons`` maps each
    such column to a human-readable explanation.
    """

    kind = 'SchemaViolation'

    def __init__(self, table, missing_mask, reasons):
        self.table = table
        self.missing_mask = missing_mask
        self.reasons = reasons
        parts = '; '.join(f"{name}: {why}" for name, why in reasons.items())
        super().__init__(f"The table {table} failed column checks "
                         f"(missing mask {missing_mask:#b}): {parts}")


class NotPrimaryKey(Violation):
    kind = 'NotPrimaryKey'

    def __init__(self, table, expected_column, actual_column):
        self.table = table
        super().__init__(
            f"The column {expected_column} is not the primary key of table {table}.",
            expected=expected_column, actual=actual_column)


class OrphanReference(Violation):
    kind = 'OrphanReference'

    def __init__(self, mapping_table, id_column, value, referenced_table=None,
                 orphans=None):
        self.mapping_table = mapping_table
        self.id_column = id_column
        self.value = value
        self.referenced_table = referenced_table
        self.orphans = list(orphans) if orphans is not None else [value]
        role = 'base' if id_column == 'base_id' else 'related'
        msg = f"There is no {role} table row for mapping table {mapping_table} id {value}."
        if len(self.orphans) > 1:
            msg += f" ({len(self.orphans)} unmatched values in {id_column})"
        super().__init__(msg)


class NotInContents(Violation):
    kind = 'NotInContents'

    def __init__(self, table, role=None, source='gpkgext_relations'):
        self.table = table
        prefix = f"The {role} table" if role else "The table"
        super().__init__(f"{prefix} {table} from {source} does not exist in the contents table.")


class TriggerDefinitionInvalid(Violation):
    kind = 'TriggerDefinitionInvalid'

    def __init__(self, artifact, table, actual_sql=None):
        self.artifact = artifact
        self.table = table
        self.actual_sql = actual_sql
        super().__init__(f"The RTree {artifact} definition for table {table} is invalid.")


class ExtensionRowInvalid(Violation):
    kind = 'ExtensionRowInvalid'

    def __init__(self, what, extension='Related Tables Extension'):
        self.what = what
        super().__init__(f"Required row ({what}) for the {extension} is missing "
                         f"from gpkg_extensions.")


class RelationNameInvalid(Violation):
    kind = 'RelationNameInvalid'

    def __init__(self, relation_name, base_table_name):
        self.relation_name = relation_name
        super().__init__(f"The relation name ({relation_name}) in gpkgext_relations "
                         f"for base table name {base_table_name} is not valid.")


class InvalidReference(Violation):
    kind = 'InvalidReference'

    def __init__(self, table, column):
        super().__init__(f"The gpkg_rtree_index extension row for {table}.{column} "
                         f"does not reference a registered geometry column.")


class IllegalScope(Violation):
    kind = 'IllegalScope'

    def __init__(self, extension, expected_scope, actual_scope):
        super().__init__(f"The {extension} extension must use scope {expected_scope}.",
                         expected=expected_scope, actual=actual_scope)


class ColumnInvalid(Violation):
    """A single column of a related table has a disallowed shape."""

    kind = 'ColumnInvalid'

    def __init__(self, table, column, reason):
        self.table = table
        self.column = column
        super().__init__(f"The column {column} of table {table} is invalid: {reason}.")


class ContentsTypeInvalid(Violation):
    kind = 'ContentsTypeInvalid'

    def __init__(self, table, expected_type, actual_type):
        self.table = table
        super().__init__(f"The table {table} has the wrong data_type in gpkg_contents.",
                         expected=expected_type, actual=actual_type)
