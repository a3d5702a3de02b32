"""
Column constraint checking against introspected schema.

One pass over pragma_table_info; one bit per expected column that is
present with every checked attribute satisfied. The final mask must equal
the full mask, otherwise a SchemaViolation lists every unmet column.
"""

import logging

from .errors import SchemaViolation
from .model import ANY

logger = logging.getLogger(__name__)


def normalize_default(value):
    """Canonical form of a column default for comparison.

    A single-quoted string literal compares equal to its bare form
    ('id' == id); embedded doubled quotes are unescaped. No other forms
    are normalized: "id" (double-quoted), 0 vs 0.0, or letter case stay
    distinct.
    """
    if value is None:
        return None
    value = str(value)
    if len(value) >= 2 and value[0] == "'" and value[-1] == "'":
        return value[1:-1].replace("''", "'")
    return value


def _type_matches(expected, actual):
    # SQL type names are case-insensitive
    return (actual or '').strip().upper() == expected.strip().upper()


def column_mismatches(expected, observed):
    """Reasons why ``observed`` does not satisfy ``expected`` (empty if it does)."""
    reasons = []
    if expected.declared_type is not ANY and not _type_matches(expected.declared_type,
                                                               observed.declared_type):
        reasons.append(f"type expected [{expected.declared_type}] "
                       f"but found [{observed.declared_type}]")
    if expected.not_null is not ANY and bool(expected.not_null) != observed.not_null:
        reasons.append(f"notnull expected [{int(bool(expected.not_null))}] "
                       f"but found [{int(observed.not_null)}]")
    if expected.default_value is not ANY and \
            normalize_default(expected.default_value) != normalize_default(observed.default_value):
        reasons.append(f"default value expected [{expected.default_value}] "
                       f"but found [{observed.default_value}]")
    if expected.pk_ordinal is not ANY:
        if expected.pk_ordinal is True:
            if not observed.pk_ordinal:
                reasons.append("primary key expected but column is not part of it")
        elif expected.pk_ordinal != observed.pk_ordinal:
            reasons.append(f"primary key expected [{expected.pk_ordinal}] "
                           f"but found [{observed.pk_ordinal}]")
    return reasons


class ConstraintChecker:
    def __init__(self, introspector):
        self.introspector = introspector

    def check_columns(self, table, expected_specs):
        """Validate ``table``'s columns against ``expected_specs``.

        Unknown extra columns are ignored.

        Raises:
            SchemaViolation: with the mask of unmet expected columns and a
                reason per column.
        """
        full_mask = (1 << len(expected_specs)) - 1
        bit_for = {spec.name: i for i, spec in enumerate(expected_specs)}
        reasons = {}
        observed_mask = 0

        for column in self.introspector.columns(table):
            idx = bit_for.get(column.name)
            if idx is None:
                continue
            why = column_mismatches(expected_specs[idx], column)
            if why:
                reasons[column.name] = ', '.join(why)
            else:
                observed_mask |= 1 << idx

        missing_mask = full_mask & ~observed_mask
        if missing_mask:
            for spec in expected_specs:
                if missing_mask & (1 << bit_for[spec.name]) and spec.name not in reasons:
                    reasons[spec.name] = 'missing column'
            # keep reasons in declaration order
            ordered = {s.name: reasons[s.name] for s in expected_specs if s.name in reasons}
            logger.debug("%s: missing mask %#b", table, missing_mask)
            raise SchemaViolation(table, missing_mask, ordered)
