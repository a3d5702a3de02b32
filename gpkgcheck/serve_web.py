#!/usr/bin/env python3
"""
GeoPackage Conformance Report Service (production)

Production entry point for serving conformance reports via gunicorn/uvicorn.

Usage:
    # Direct run
    python -m gpkgcheck.serve_web --package sample.gpkg

    # With gunicorn
    gunicorn -c deploy/gunicorn.conf.py 'gpkgcheck.serve_web:create_app()'

Environment variables:
    GPKGCHECK_PATH          Path to the .gpkg file (required)
    GPKGCHECK_QUERY_TIMEOUT Per-query deadline in seconds (default: 30)
    GPKGCHECK_PORT          Server port (default: 8000)
    GPKGCHECK_WORKERS       Number of worker processes (default: 2)
    GPKGCHECK_LOG_LEVEL     Log level (default: info)
"""

import logging
import os
import sys


def create_app():
    """Application factory for gunicorn.

    Configures logging from GPKGCHECK_LOG_LEVEL, points the service at
    GPKGCHECK_PATH and returns the FastAPI app.
    """
    level = os.environ.get('GPKGCHECK_LOG_LEVEL', 'info').upper()
    logging.basicConfig(level=getattr(logging, level, logging.INFO),
                        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    from gpkgcheck.app import app, _set_package_path
    package = os.environ.get('GPKGCHECK_PATH')
    if package:
        _set_package_path(os.path.abspath(package))
    else:
        logging.getLogger(__name__).warning("GPKGCHECK_PATH is not set")
    return app


def main():
    """CLI entry point: run directly with uvicorn (no gunicorn needed)."""
    import argparse

    parser = argparse.ArgumentParser(description='GeoPackage Conformance Report Service')
    parser.add_argument('--package', type=str, default=None,
                        help='Path to a .gpkg file (overrides GPKGCHECK_PATH env)')
    parser.add_argument('--port', type=int, default=None,
                        help='Server port (overrides GPKGCHECK_PORT env, default: 8000)')
    parser.add_argument('--workers', type=int, default=None,
                        help='Number of workers (overrides GPKGCHECK_WORKERS env, default: 2)')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Per-query deadline (overrides GPKGCHECK_QUERY_TIMEOUT env)')
    parser.add_argument('--log-level', type=str, default=None,
                        help='Log level (overrides GPKGCHECK_LOG_LEVEL env, default: info)')
    args = parser.parse_args()

    # CLI args override env vars
    if args.package:
        os.environ['GPKGCHECK_PATH'] = os.path.abspath(args.package)
    if args.port:
        os.environ['GPKGCHECK_PORT'] = str(args.port)
    if args.workers:
        os.environ['GPKGCHECK_WORKERS'] = str(args.workers)
    if args.timeout is not None:
        os.environ['GPKGCHECK_QUERY_TIMEOUT'] = str(args.timeout)
    if args.log_level:
        os.environ['GPKGCHECK_LOG_LEVEL'] = args.log_level

    port = int(os.environ.get('GPKGCHECK_PORT', '8000'))
    workers = int(os.environ.get('GPKGCHECK_WORKERS', '2'))
    log_level = os.environ.get('GPKGCHECK_LOG_LEVEL', 'info')

    package = os.environ.get('GPKGCHECK_PATH')
    if not package:
        print("Error: GPKGCHECK_PATH environment variable or --package argument required",
              file=sys.stderr)
        sys.exit(1)

    print("=" * 60)
    print("GeoPackage Conformance Report Service (Production)")
    print("=" * 60)
    print(f"Package: {package}")
    print(f"Bind:    0.0.0.0:{port}")
    print(f"Workers: {workers}")
    print("=" * 60)
    print()

    import uvicorn
    uvicorn.run(
        'gpkgcheck.serve_web:create_app',
        host='0.0.0.0',
        port=port,
        workers=workers,
        log_level=log_level,
        factory=True,
    )


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        print("\nShutting down report service...")
        sys.exit(0)
