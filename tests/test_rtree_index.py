"""
Tests for the RTree Spatial Index Extension rules.
"""

from gpkgcheck_core import Status, validate_db
from gpkgcheck_core import rtree_index as ri

from conftest import RTREE_SCHEMA, rtree_sql


def _run(path):
    return validate_db(path, suites=['rtree_index'])


def _failed(report, rule_id):
    return [o for o in report.for_rule(rule_id) if o.status == Status.FAIL]


class TestConformantIndex:
    def test_no_failures(self, rtree_gpkg):
        report = _run(rtree_gpkg)
        assert report.ok

    def test_one_outcome_per_artifact(self, rtree_gpkg):
        outcomes = _run(rtree_gpkg).for_rule(ri.R_IMPLEMENTATION)
        assert len(outcomes) == 7
        assert outcomes[0].subject == 'roads.geom (virtual table)'
        assert outcomes[-1].subject == 'roads.geom (delete trigger)'

    def test_extension_row_passes(self, rtree_gpkg):
        outcome, = _run(rtree_gpkg).for_rule(ri.R_EXTENSION_ROWS)
        assert outcome.subject == 'roads.geom'
        assert outcome.status == Status.PASS

    def test_quoted_mixed_case_virtual_table(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, """
            DROP TABLE "rtree_roads_geom";
            create Virtual Table "rtree_roads_geom" Using RTREE ( id , minx , maxx , miny , maxy );
        """)
        assert _run(path).ok

    def test_two_indexed_tables(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, """
            CREATE TABLE rivers (id INTEGER PRIMARY KEY, shape BLOB);
            INSERT INTO gpkg_contents (table_name, data_type, identifier, srs_id)
                VALUES ('rivers', 'features', 'rivers', 4326);
            INSERT INTO gpkg_geometry_columns VALUES ('rivers', 'shape', 'LINESTRING', 4326, 0, 0);
            INSERT INTO gpkg_extensions VALUES
                ('rivers', 'shape', 'gpkg_rtree_index', 'GeoPackage 1.0 Specification Annex L', 'write-only');
        """, rtree_sql('rivers', 'shape'))
        report = _run(path)
        assert report.ok
        assert len(report.for_rule(ri.R_IMPLEMENTATION)) == 14


class TestApplicability:
    def test_not_declared(self, related_gpkg):
        report = _run(related_gpkg)
        assert [o.status for o in report.outcomes] == [Status.SKIP, Status.SKIP]
        assert report.outcomes[0].detail == \
            'Conformance class RTree Spatial Index Extension is not in use.'


class TestExtensionRows:
    def test_wrong_scope(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, """
            UPDATE gpkg_extensions SET scope = 'read-write'
            WHERE extension_name = 'gpkg_rtree_index';
        """)
        failed = _failed(_run(path), ri.R_EXTENSION_ROWS)
        assert len(failed) == 1
        assert failed[0].kind == 'IllegalScope'
        assert failed[0].detail.endswith('expected [write-only] but found [read-write]')

    def test_row_for_non_geometry_column(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, """
            INSERT INTO gpkg_extensions VALUES
                ('roads', 'name', 'gpkg_rtree_index', 'GeoPackage 1.0 Specification Annex L', 'write-only');
        """)
        report = _run(path)
        failed = _failed(report, ri.R_EXTENSION_ROWS)
        assert [o.subject for o in failed] == ['roads.name']
        assert failed[0].kind == 'InvalidReference'
        # the index itself is still checked for the real geometry column
        assert _failed(report, ri.R_IMPLEMENTATION) == []

    def test_missing_geometry_columns_table(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, 'DROP TABLE gpkg_geometry_columns;')
        report = _run(path)
        failed = _failed(report, ri.R_EXTENSION_ROWS)
        assert failed[0].detail == 'The gpkg_geometry_columns table is missing.'
        assert _failed(report, ri.R_IMPLEMENTATION)[0].kind == 'MissingTable'


class TestImplementation:
    def test_null_geometry_column_is_reported(self, gpkg_factory):
        """A NULL column_name for an indexed table fails instead of aborting the run."""
        path = gpkg_factory(RTREE_SCHEMA, """
            DROP TABLE gpkg_geometry_columns;
            CREATE TABLE gpkg_geometry_columns (
                table_name TEXT, column_name TEXT, geometry_type_name TEXT,
                srs_id INTEGER, z TINYINT, m TINYINT
            );
            INSERT INTO gpkg_geometry_columns VALUES
                ('roads', 'geom', 'LINESTRING', 4326, 0, 0),
                ('lakes', NULL, 'POLYGON', 4326, 0, 0);
            CREATE TABLE lakes (id INTEGER PRIMARY KEY, geom BLOB);
            INSERT INTO gpkg_extensions VALUES
                ('lakes', NULL, 'gpkg_rtree_index', 'GeoPackage 1.0 Specification Annex L', 'write-only');
        """)
        report = _run(path)
        failed = _failed(report, ri.R_IMPLEMENTATION)
        assert [(o.subject, o.kind) for o in failed] == [('lakes.None', 'InvalidReference')]
        assert [o.subject for o in _failed(report, ri.R_EXTENSION_ROWS)] == ['lakes.None']
        assert len(report.for_rule(ri.R_IMPLEMENTATION)) == 8

    def test_missing_update_trigger(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, 'DROP TRIGGER "rtree_roads_geom_update2";')
        failed = _failed(_run(path), ri.R_IMPLEMENTATION)
        assert failed[0].subject == 'roads.geom (update trigger 2)'
        assert failed[0].detail == 'The RTree update trigger 2 definition for table roads is invalid.'
        assert 'roads.geom (update trigger 1)' not in [o.subject for o in failed]

    def test_missing_virtual_table(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, 'DROP TABLE "rtree_roads_geom";')
        failed = _failed(_run(path), ri.R_IMPLEMENTATION)
        assert [o.subject for o in failed] == ['roads.geom (virtual table)']

    def test_altered_insert_trigger(self, gpkg_factory):
        path = gpkg_factory(RTREE_SCHEMA, """
            DROP TRIGGER "rtree_roads_geom_insert";
            CREATE TRIGGER "rtree_roads_geom_insert" AFTER INSERT ON "roads"
            BEGIN
              INSERT OR REPLACE INTO "rtree_roads_geom" VALUES (NEW.fid, 0, 0, 0, 0);
            END;
        """)
        failed = _failed(_run(path), ri.R_IMPLEMENTATION)
        assert [o.subject for o in failed] == ['roads.geom (insert trigger)']
        assert failed[0].kind == 'TriggerDefinitionInvalid'
