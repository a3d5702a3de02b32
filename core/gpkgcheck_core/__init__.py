"""gpkgcheck_core — pure-stdlib GeoPackage extension conformance engine."""

__version__ = "0.1.0"

from .errors import (
    ConformanceError, Inapplicable, InfrastructureError, Violation,
    MissingTable, SchemaViolation, NotPrimaryKey, OrphanReference,
    NotInContents, TriggerDefinitionInvalid, ExtensionRowInvalid,
    RelationNameInvalid, InvalidReference, IllegalScope, ColumnInvalid,
    ContentsTypeInvalid,
)
from .model import ANY, ColumnSpec, ExtensionDeclaration, Relation, TriggerTemplate
from .introspect import Deadline, SchemaIntrospector, quote_identifier
from .registry import ExtensionRegistry
from .constraints import ConstraintChecker
from .referential import ReferentialIntegrityChecker
from .templates import RTREE_TEMPLATES, TemplateMatcher, compile_template
from .outcomes import ConformanceReport, Outcome, RuleRunner, Status
from .package import PackageError, open_package
from .validate import (
    SUITES, get_query_timeout, list_suites, validate_connection, validate_db,
)
