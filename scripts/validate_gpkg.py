#!/usr/bin/env python3
"""
GeoPackage extension conformance checker — CLI wrapper.

Validation logic lives in gpkgcheck_core.validate.

Usage:
  python scripts/validate_gpkg.py sample.gpkg
  python scripts/validate_gpkg.py sample.gpkg --suite rtree_index --timeout 5
  # exit code 0: conformant, 1: failures or errors found, 2: usage or fatal error
"""

import argparse
import logging
import sys

from gpkgcheck_core import (SUITES, InfrastructureError, PackageError, Status,
                            validate_db)


def build_parser():
    parser = argparse.ArgumentParser(
        description='Check a GeoPackage against the Related Tables and RTree extensions')
    parser.add_argument('package', help='Path to the .gpkg file')
    parser.add_argument('--suite', action='append', choices=sorted(SUITES),
                        help='Suite to run (repeatable, default: all)')
    parser.add_argument('--timeout', type=float, default=None,
                        help='Per-query deadline in seconds (0 disables)')
    parser.add_argument('--verbose', '-v', action='store_true',
                        help='Also print passing and skipped outcomes')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.INFO if args.verbose else logging.WARNING,
                        format='%(levelname)s %(name)s: %(message)s')

    try:
        report = validate_db(args.package, suites=args.suite, timeout=args.timeout)
    except PackageError as e:
        print(f"  ERROR: {e}", file=sys.stderr)
        return 2
    except InfrastructureError as e:
        print(f"  FATAL: {e}", file=sys.stderr)
        return 2

    for o in report.outcomes:
        if o.status in (Status.FAIL, Status.ERROR) or args.verbose:
            subject = f" {o.subject}" if o.subject else ""
            print(f"  {o.status.value.upper()}[{o.rule_id}]{subject}: {o.detail}")

    counts = report.counts()
    summary = ', '.join(f"{n} {s}" for s, n in counts.items())
    if not report.ok:
        print(f"\n{len(report.failures)} failure(s), {len(report.errors)} error(s) ({summary})")
        return 1
    print(f"\nOK — {summary}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
