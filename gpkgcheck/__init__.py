"""gpkgcheck — report service and launchers for GeoPackage conformance checks."""

__version__ = "0.1.0"
