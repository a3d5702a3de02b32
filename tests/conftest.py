"""
Shared test fixtures for the GeoPackage conformance test suite.

Fixtures build small GeoPackage files in tmp_path with sqlite3:
  - related_gpkg: allCountries (features) related to info (simple_attributes)
    through mapping1 and to photos (media) through mapping2
  - rtree_gpkg: one feature table with a complete spatial index
  - gpkg_factory: builds a package from the base schema plus extra SQL
  - client: TestClient for the report service wired to related_gpkg
"""

import os
import sqlite3
import sys

import pytest

from gpkgcheck.app import app, _set_package_path

# CLI script lives outside the packages
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), 'scripts'))


CORE_SCHEMA = """
    CREATE TABLE gpkg_spatial_ref_sys (
        srs_name TEXT NOT NULL,
        srs_id INTEGER PRIMARY KEY,
        organization TEXT NOT NULL,
        organization_coordsys_id INTEGER NOT NULL,
        definition TEXT NOT NULL,
        description TEXT
    );
    INSERT INTO gpkg_spatial_ref_sys VALUES
        ('WGS 84 geodetic', 4326, 'EPSG', 4326, 'GEOGCS["WGS 84"]', NULL);

    CREATE TABLE gpkg_contents (
        table_name TEXT NOT NULL PRIMARY KEY,
        data_type TEXT NOT NULL,
        identifier TEXT UNIQUE,
        description TEXT DEFAULT '',
        last_change DATETIME NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%fZ','now')),
        min_x DOUBLE,
        min_y DOUBLE,
        max_x DOUBLE,
        max_y DOUBLE,
        srs_id INTEGER
    );

    CREATE TABLE gpkg_geometry_columns (
        table_name TEXT NOT NULL,
        column_name TEXT NOT NULL,
        geometry_type_name TEXT NOT NULL,
        srs_id INTEGER NOT NULL,
        z TINYINT NOT NULL,
        m TINYINT NOT NULL,
        CONSTRAINT pk_geom_cols PRIMARY KEY (table_name, column_name)
    );

    CREATE TABLE gpkg_extensions (
        table_name TEXT,
        column_name TEXT,
        extension_name TEXT NOT NULL,
        definition TEXT NOT NULL,
        scope TEXT NOT NULL,
        CONSTRAINT ge_tce UNIQUE (table_name, column_name, extension_name)
    );
"""

RELATED_SCHEMA = """
    CREATE TABLE allCountries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        geom BLOB
    );
    INSERT INTO allCountries (id, name) VALUES (1, 'Andorra'), (2, 'Belize'), (3, 'Chad');

    CREATE TABLE info (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        population INTEGER,
        capital TEXT
    );
    INSERT INTO info (id, population, capital) VALUES
        (1, 77000, 'Andorra la Vella'), (2, 400000, 'Belmopan'), (3, 16000000, 'N''Djamena');

    CREATE TABLE photos (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        data BLOB NOT NULL,
        content_type TEXT NOT NULL
    );
    INSERT INTO photos (id, data, content_type) VALUES (1, x'89504e47', 'image/png');

    CREATE TABLE mapping1 (base_id INTEGER NOT NULL, related_id INTEGER NOT NULL);
    INSERT INTO mapping1 VALUES (1, 1), (2, 2), (3, 3);

    CREATE TABLE mapping2 (base_id INTEGER NOT NULL, related_id INTEGER NOT NULL);
    INSERT INTO mapping2 VALUES (1, 1);

    CREATE TABLE gpkgext_relations (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        base_table_name TEXT NOT NULL,
        base_primary_column TEXT NOT NULL DEFAULT 'id',
        related_table_name TEXT NOT NULL,
        related_primary_column TEXT NOT NULL DEFAULT 'id',
        relation_name TEXT NOT NULL,
        mapping_table_name TEXT NOT NULL UNIQUE
    );
    INSERT INTO gpkgext_relations
        (base_table_name, base_primary_column, related_table_name,
         related_primary_column, relation_name, mapping_table_name)
    VALUES
        ('allCountries', 'id', 'info', 'id', 'simple_attributes', 'mapping1'),
        ('allCountries', 'id', 'photos', 'id', 'media', 'mapping2');

    INSERT INTO gpkg_contents (table_name, data_type, identifier, srs_id) VALUES
        ('allCountries', 'features', 'allCountries', 4326),
        ('info', 'attributes', 'info', NULL),
        ('photos', 'attributes', 'photos', NULL);
    INSERT INTO gpkg_geometry_columns VALUES ('allCountries', 'geom', 'POINT', 4326, 0, 0);

    INSERT INTO gpkg_extensions VALUES
        ('gpkgext_relations', NULL, 'related_tables', 'TBD', 'read-write'),
        ('mapping1', NULL, 'related_tables', 'TBD', 'read-write'),
        ('mapping2', NULL, 'related_tables', 'TBD', 'read-write');
"""


def rtree_sql(table, column, pk='id'):
    """Spatial index objects for (table, column) as written by GDAL/GeoPackage 1.2."""
    rt = f'rtree_{table}_{column}'
    return f"""
    CREATE VIRTUAL TABLE "{rt}" USING rtree(id, minx, maxx, miny, maxy);

    CREATE TRIGGER "{rt}_insert" AFTER INSERT ON "{table}"
      WHEN (new."{column}" NOT NULL AND NOT ST_IsEmpty(NEW."{column}"))
    BEGIN
      INSERT OR REPLACE INTO "{rt}" VALUES (
        NEW."{pk}",
        ST_MinX(NEW."{column}"), ST_MaxX(NEW."{column}"),
        ST_MinY(NEW."{column}"), ST_MaxY(NEW."{column}")
      );
    END;

    CREATE TRIGGER "{rt}_update1" AFTER UPDATE OF "{column}" ON "{table}"
      WHEN OLD."{pk}" = NEW."{pk}" AND
           (NEW."{column}" NOTNULL AND NOT ST_IsEmpty(NEW."{column}"))
    BEGIN
      INSERT OR REPLACE INTO "{rt}" VALUES (
        NEW."{pk}",
        ST_MinX(NEW."{column}"), ST_MaxX(NEW."{column}"),
        ST_MinY(NEW."{column}"), ST_MaxY(NEW."{column}")
      );
    END;

    CREATE TRIGGER "{rt}_update2" AFTER UPDATE OF "{column}" ON "{table}"
      WHEN OLD."{pk}" = NEW."{pk}" AND
           (NEW."{column}" IS NULL OR ST_IsEmpty(NEW."{column}"))
    BEGIN
      DELETE FROM "{rt}" WHERE id = OLD."{pk}";
    END;

    CREATE TRIGGER "{rt}_update3" AFTER UPDATE OF "{column}" ON "{table}"
      WHEN OLD."{pk}" != NEW."{pk}" AND
           (NEW."{column}" NOTNULL AND NOT ST_IsEmpty(NEW."{column}"))
    BEGIN
      DELETE FROM "{rt}" WHERE id = OLD."{pk}";
      INSERT OR REPLACE INTO "{rt}" VALUES (
        NEW."{pk}",
        ST_MinX(NEW."{column}"), ST_MaxX(NEW."{column}"),
        ST_MinY(NEW."{column}"), ST_MaxY(NEW."{column}")
      );
    END;

    CREATE TRIGGER "{rt}_update4" AFTER UPDATE ON "{table}"
      WHEN OLD."{pk}" != NEW."{pk}" AND
           (NEW."{column}" IS NULL OR ST_IsEmpty(NEW."{column}"))
    BEGIN
      DELETE FROM "{rt}" WHERE id IN (OLD."{pk}", NEW."{pk}");
    END;

    CREATE TRIGGER "{rt}_delete" AFTER DELETE ON "{table}"
      WHEN old."{column}" NOT NULL
    BEGIN
      DELETE FROM "{rt}" WHERE id = OLD."{pk}";
    END;
    """


RTREE_SCHEMA = """
    CREATE TABLE roads (
        fid INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT,
        geom BLOB
    );
    INSERT INTO roads (fid, name) VALUES (1, 'A1'), (2, 'B2');

    INSERT INTO gpkg_contents (table_name, data_type, identifier, srs_id)
        VALUES ('roads', 'features', 'roads', 4326);
    INSERT INTO gpkg_geometry_columns VALUES ('roads', 'geom', 'LINESTRING', 4326, 0, 0);
    INSERT INTO gpkg_extensions VALUES
        ('roads', 'geom', 'gpkg_rtree_index', 'GeoPackage 1.0 Specification Annex L', 'write-only');
""" + rtree_sql('roads', 'geom', pk='fid')


def build_package(path, *scripts):
    """Create a GeoPackage at ``path`` from the core schema plus ``scripts``."""
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(CORE_SCHEMA)
        for script in scripts:
            conn.executescript(script)
        conn.commit()
    except sqlite3.OperationalError as e:
        conn.close()
        if 'no such module: rtree' in str(e):
            pytest.skip("SQLite build lacks the rtree module")
        raise
    conn.close()
    return str(path)


@pytest.fixture
def gpkg_factory(tmp_path):
    """Return build(*scripts, name=...) creating packages under tmp_path."""
    counter = iter(range(1000))

    def build(*scripts, name=None):
        name = name or f"package_{next(counter)}.gpkg"
        return build_package(tmp_path / name, *scripts)
    return build


@pytest.fixture
def related_gpkg(gpkg_factory):
    """Conformant Related Tables package."""
    return gpkg_factory(RELATED_SCHEMA, name="related.gpkg")


@pytest.fixture
def rtree_gpkg(gpkg_factory):
    """Conformant RTree Spatial Index package."""
    return gpkg_factory(RTREE_SCHEMA, name="rtree.gpkg")


@pytest.fixture
def open_gpkg():
    """Open packages with the engine's connection settings; closed on teardown."""
    from gpkgcheck_core import open_package
    conns = []

    def _open(path):
        conn = open_package(path)
        conns.append(conn)
        return conn
    yield _open
    for conn in conns:
        conn.close()


@pytest.fixture
def client(related_gpkg):
    """TestClient for the report service wired to related_gpkg."""
    from starlette.testclient import TestClient

    _set_package_path(related_gpkg)
    with TestClient(app) as client:
        yield client
    _set_package_path(None)
