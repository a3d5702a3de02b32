#!/usr/bin/env python3
"""
GeoPackage Conformance Report Server (development)

Starts the report service for one package on localhost.
"""

import sys
import os


def main():
    import argparse
    parser = argparse.ArgumentParser()
    parser.add_argument('--package', type=str, required=True,
                        help='Path to the .gpkg file to validate')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Per-query deadline in seconds (0 disables)')
    parser.add_argument('--port', type=int, default=8080,
                        help='Server port (default: 8080)')
    args = parser.parse_args()

    package = os.path.abspath(args.package)
    if not os.path.isfile(package):
        print(f"Error: package not found: {package}", file=sys.stderr)
        sys.exit(1)

    port = args.port

    print("=" * 60)
    print("GeoPackage Conformance Report Server")
    print("=" * 60)
    print(f"Package: {package}")
    print(f"Server running at: http://localhost:{port}/api/report")
    print("Press Ctrl+C to stop the server")
    print("=" * 60)
    print()

    # Set before importing app
    os.environ['GPKGCHECK_PATH'] = package
    if args.timeout is not None:
        os.environ['GPKGCHECK_QUERY_TIMEOUT'] = str(args.timeout)

    try:
        import uvicorn
        from .app import app
        uvicorn.run(app, host='127.0.0.1', port=port, log_level='info')
    except OSError as e:
        print(f"Error: Could not start server: {e}", file=sys.stderr)
        print(f"Port {port} might already be in use.", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    try:
        main()
    except KeyboardInterrupt:
        print("\n\nShutting down report server...")
        sys.exit(0)
