"""
Canonical SQL templates for the RTree spatial index and their matcher.

Templates are written as the canonical SQL text from the GeoPackage
standard (Annex F.3) with placeholders:

    {t}        feature table name
    {c}        geometry column name
    {rtree}    rtree_<t>_<c>
    {trigger}  name of the trigger being matched
    {i}        any identifier (the integer primary key column)

compile_template() turns the text into one case-insensitive pattern that
must match the whole generated SQL:
  - whitespace between two words is required (\\s+), around punctuation
    it is optional (\\s*);
  - named identifiers may be bare or double-quoted;
  - NOT NULL and IS NULL also accept NOTNULL and ISNULL, != accepts <>;
  - a trailing semicolon is optional.
"""

import logging
import re
from collections import namedtuple

from .errors import InvalidReference, TriggerDefinitionInvalid
from .model import TriggerTemplate

logger = logging.getLogger(__name__)

_TOKEN = re.compile(r'\{(\w+)\}|(\w+)|(!=|<>|[^\w\s])|(\s+)')

ANY_IDENTIFIER = r'(?:"(?:[^"]|"")+"|\w+)'

# keyword pairs SQLite also accepts written as one word
_FUSED_KEYWORDS = {('NOT', 'NULL'), ('IS', 'NULL')}


def identifier_pattern(name):
    """Pattern for ``name`` as a bare or double-quoted identifier."""
    quoted = '"' + name.replace('"', '""') + '"'
    return f'(?:{re.escape(quoted)}|{re.escape(name)})'


def rtree_name(table, column):
    return f'rtree_{table}_{column}'


def _joiner(prev, cur):
    prev_kind, prev_word = prev
    cur_kind, cur_word = cur
    if prev_kind == 'word' and cur_kind == 'word':
        if (prev_word, cur_word) in _FUSED_KEYWORDS:
            return r'\s*'
        return r'\s+'
    return r'\s*'


def compile_template(text, table, column, trigger=None):
    """Compile canonical template ``text`` for (table, column)."""
    values = {
        't': identifier_pattern(table),
        'c': identifier_pattern(column),
        'rtree': identifier_pattern(rtree_name(table, column)),
        'i': ANY_IDENTIFIER,
    }
    if trigger is not None:
        values['trigger'] = identifier_pattern(trigger)

    parts = []
    prev = None
    for m in _TOKEN.finditer(text):
        placeholder, word, punct, space = m.groups()
        if space:
            continue
        if placeholder:
            token, regex = ('word', None), values[placeholder]
        elif word:
            token, regex = ('word', word.upper()), re.escape(word)
        elif punct in ('!=', '<>'):
            token, regex = ('punct', None), '(?:!=|<>)'
        else:
            token, regex = ('punct', None), re.escape(punct)
        if prev is not None:
            parts.append(_joiner(prev, token))
        parts.append(regex)
        prev = token
    parts.append(r'\s*;?')
    return re.compile(''.join(parts), re.IGNORECASE)


# ---------------------------------------------------------------------------
# Template table
# ---------------------------------------------------------------------------

TemplateDef = namedtuple('TemplateDef', 'suffix timing event text')

_BBOX = 'ST_MinX(NEW.{c}), ST_MaxX(NEW.{c}), ST_MinY(NEW.{c}), ST_MaxY(NEW.{c})'

RTREE_TEMPLATES = {
    'virtual table': TemplateDef(
        None, None, None,
        'CREATE VIRTUAL TABLE {rtree} USING rtree(id, minx, maxx, miny, maxy)'),
    'insert trigger': TemplateDef(
        'insert', 'AFTER', 'INSERT',
        'CREATE TRIGGER {trigger} AFTER INSERT ON {t} '
        'WHEN (NEW.{c} NOT NULL AND NOT ST_IsEmpty(NEW.{c})) '
        'BEGIN INSERT OR REPLACE INTO {rtree} VALUES (NEW.{i}, ' + _BBOX + '); END'),
    'update trigger 1': TemplateDef(
        'update1', 'AFTER', 'UPDATE OF {c}',
        'CREATE TRIGGER {trigger} AFTER UPDATE OF {c} ON {t} '
        'WHEN OLD.{i} = NEW.{i} AND (NEW.{c} NOT NULL AND NOT ST_IsEmpty(NEW.{c})) '
        'BEGIN INSERT OR REPLACE INTO {rtree} VALUES (NEW.{i}, ' + _BBOX + '); END'),
    'update trigger 2': TemplateDef(
        'update2', 'AFTER', 'UPDATE OF {c}',
        'CREATE TRIGGER {trigger} AFTER UPDATE OF {c} ON {t} '
        'WHEN OLD.{i} = NEW.{i} AND (NEW.{c} IS NULL OR ST_IsEmpty(NEW.{c})) '
        'BEGIN DELETE FROM {rtree} WHERE {i} = OLD.{i}; END'),
    'update trigger 3': TemplateDef(
        'update3', 'AFTER', 'UPDATE OF {c}',
        'CREATE TRIGGER {trigger} AFTER UPDATE OF {c} ON {t} '
        'WHEN OLD.{i} != NEW.{i} AND (NEW.{c} NOT NULL AND NOT ST_IsEmpty(NEW.{c})) '
        'BEGIN DELETE FROM {rtree} WHERE {i} = OLD.{i}; '
        'INSERT OR REPLACE INTO {rtree} VALUES (NEW.{i}, ' + _BBOX + '); END'),
    'update trigger 4': TemplateDef(
        'update4', 'AFTER', 'UPDATE',
        'CREATE TRIGGER {trigger} AFTER UPDATE ON {t} '
        'WHEN OLD.{i} != NEW.{i} AND (NEW.{c} IS NULL OR ST_IsEmpty(NEW.{c})) '
        'BEGIN DELETE FROM {rtree} WHERE {i} IN (OLD.{i}, NEW.{i}); END'),
    'delete trigger': TemplateDef(
        'delete', 'AFTER', 'DELETE',
        'CREATE TRIGGER {trigger} AFTER DELETE ON {t} WHEN OLD.{c} NOT NULL '
        'BEGIN DELETE FROM {rtree} WHERE {i} = OLD.{i}; END'),
}

UPDATE_TRIGGERS = ('update trigger 1', 'update trigger 2',
                   'update trigger 3', 'update trigger 4')


def generate(logical_name, table, column):
    """Build the TriggerTemplate named ``logical_name`` for (table, column)."""
    tdef = RTREE_TEMPLATES[logical_name]
    base = rtree_name(table, column)
    artifact = f'{base}_{tdef.suffix}' if tdef.suffix else base
    event = tdef.event.replace('{c}', column) if tdef.event else None
    return TriggerTemplate(
        logical_name=logical_name,
        timing=tdef.timing,
        event=event,
        subject_table=table,
        subject_column=column,
        artifact_name=artifact,
        body_pattern=compile_template(tdef.text, table, column,
                                      trigger=artifact if tdef.suffix else None),
    )


class TemplateMatcher:
    def __init__(self, introspector):
        self.introspector = introspector

    def fetch_artifacts(self, table, column):
        """(TriggerTemplate, actual_sql) for all six artifacts.

        ``actual_sql`` is None when the artifact does not exist. Update
        triggers are matched positionally after sorting by full name.
        """
        if not isinstance(table, str) or not isinstance(column, str):
            # a NULL table_name or column_name in gpkg_geometry_columns
            raise InvalidReference(table, column)
        base = rtree_name(table, column)
        pairs = [
            (generate('virtual table', table, column),
             self.introspector.schema_sql(base, 'table')),
            (generate('insert trigger', table, column),
             self.introspector.schema_sql(f'{base}_insert', 'trigger')),
        ]
        updates = self.introspector.schema_sql_with_prefix(f'{base}_update', 'trigger')
        for pos, logical_name in enumerate(UPDATE_TRIGGERS):
            sql = updates[pos][1] if pos < len(updates) else None
            pairs.append((generate(logical_name, table, column), sql))
        pairs.append((generate('delete trigger', table, column),
                      self.introspector.schema_sql(f'{base}_delete', 'trigger')))
        return pairs

    @staticmethod
    def verify(template, sql):
        """Raise TriggerDefinitionInvalid unless ``sql`` matches ``template``."""
        if not template.matches(sql):
            logger.debug("%s for %s.%s does not match: %r", template.logical_name,
                         template.subject_table, template.subject_column, sql)
            raise TriggerDefinitionInvalid(template.logical_name,
                                           template.subject_table, sql)

    def check(self, table, column):
        """All template violations for one indexed column (empty if none)."""
        violations = []
        for template, sql in self.fetch_artifacts(table, column):
            try:
                self.verify(template, sql)
            except TriggerDefinitionInvalid as e:
                violations.append(e)
        return violations
