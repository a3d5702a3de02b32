"""
Conformance validation entry points.

    report = validate_db('sample.gpkg')
    for outcome in report.failures:
        print(outcome.rule_id, outcome.subject, outcome.detail)
"""

import logging
import os

from .introspect import Deadline, SchemaIntrospector
from .outcomes import ConformanceReport, RuleRunner
from .package import open_package
from .related_tables import RelatedTablesSuite
from .rtree_index import RTreeIndexSuite

logger = logging.getLogger(__name__)

SUITES = {
    RelatedTablesSuite.name: RelatedTablesSuite,
    RTreeIndexSuite.name: RTreeIndexSuite,
}

DEFAULT_QUERY_TIMEOUT = 30.0


def get_query_timeout():
    """Per-query deadline in seconds from GPKGCHECK_QUERY_TIMEOUT (0 disables)."""
    raw = os.environ.get('GPKGCHECK_QUERY_TIMEOUT', '').strip()
    if not raw:
        return DEFAULT_QUERY_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring invalid GPKGCHECK_QUERY_TIMEOUT=%r", raw)
        return DEFAULT_QUERY_TIMEOUT


def list_suites():
    return [{'name': name, 'rules': list(cls.rules)} for name, cls in SUITES.items()]


def validate_connection(conn, suites=None, timeout=None, deadline=None, report=None):
    """Run the selected suites against an open connection.

    Args:
        conn: sqlite3 connection to the package (never written to).
        suites: iterable of suite names; all suites when None.
        timeout: per-query deadline in seconds; defaults to the environment.
        deadline: an existing Deadline (takes precedence over ``timeout``).
        report: sink to record into; a new ConformanceReport by default.

    Returns:
        The ConformanceReport.

    Raises:
        KeyError: unknown suite name.
        InfrastructureError: fatal database failure.
    """
    names = list(suites) if suites else list(SUITES)
    for name in names:
        if name not in SUITES:
            raise KeyError(f"Unknown suite: {name}")

    if deadline is None:
        deadline = Deadline(get_query_timeout() if timeout is None else timeout)
    introspector = SchemaIntrospector(conn, deadline)
    report = report if report is not None else ConformanceReport()
    runner = RuleRunner(report)

    for name in names:
        SUITES[name](introspector).run(runner)

    logger.info("Validation finished: %s", report.counts())
    return report


def validate_db(db_path, suites=None, timeout=None):
    """Open ``db_path`` read-only and validate it."""
    conn = open_package(db_path)
    try:
        report = ConformanceReport(package=os.path.basename(db_path))
        return validate_connection(conn, suites=suites, timeout=timeout, report=report)
    finally:
        conn.close()
