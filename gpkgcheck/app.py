"""
GeoPackage Conformance Report Service
FastAPI application serving conformance reports for one GeoPackage
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from typing import Optional
import logging
import os

logger = logging.getLogger(__name__)

from gpkgcheck_core import (SUITES, InfrastructureError, PackageError, list_suites,
                            validate_db)
from gpkgcheck import __version__ as ENGINE_VERSION

app = FastAPI(title="GeoPackage Conformance")

# Package to validate: set via GPKGCHECK_PATH env var or _set_package_path()
PACKAGE_PATH = os.environ.get('GPKGCHECK_PATH')


def _set_package_path(path: Optional[str]):
    """Set the served package path (for testing)."""
    global PACKAGE_PATH
    PACKAGE_PATH = path


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["GET", "OPTIONS"],
    allow_headers=["Content-Type"],
)


# ---------------------------------------------------------------------------
# Pydantic response models
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: str
    version: str
    package: Optional[str] = None

class SuiteItem(BaseModel):
    name: str
    rules: list[str]

class OutcomeItem(BaseModel):
    rule_id: str
    subject: Optional[str] = None
    status: str
    kind: Optional[str] = None
    detail: str = ""

class ReportResponse(BaseModel):
    package: Optional[str] = None
    ok: bool
    counts: dict[str, int]
    outcomes: list[OutcomeItem]

class ErrorResponse(BaseModel):
    error: str


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------

@app.get('/api/health', response_model=HealthResponse)
def api_health():
    """Liveness check"""
    package = os.path.basename(PACKAGE_PATH) if PACKAGE_PATH else None
    return {'status': 'ok', 'version': ENGINE_VERSION, 'package': package}


@app.get('/api/suites', response_model=list[SuiteItem])
def api_suites():
    """List the rule suites and their rule ids"""
    return list_suites()


@app.get('/api/report', response_model=ReportResponse,
         responses={404: {"model": ErrorResponse}, 400: {"model": ErrorResponse},
                    500: {"model": ErrorResponse}})
def api_report(suite: Optional[str] = None, timeout: Optional[float] = None):
    """Validate the configured package and return every rule outcome"""
    if not PACKAGE_PATH:
        return JSONResponse({'error': 'No package configured'}, status_code=404)
    if not os.path.isfile(PACKAGE_PATH):
        return JSONResponse({'error': f'Package not found: {PACKAGE_PATH}'}, status_code=404)
    if timeout is not None and timeout < 0:
        return JSONResponse({'error': 'timeout must not be negative'}, status_code=400)

    if suite is not None and suite not in SUITES:
        return JSONResponse({'error': f'Unknown suite: {suite}'}, status_code=400)

    suites = [suite] if suite else None
    try:
        report = validate_db(PACKAGE_PATH, suites=suites, timeout=timeout)
    except PackageError as e:
        return JSONResponse({'error': str(e)}, status_code=400)
    except InfrastructureError as e:
        logger.error("Validation of %s aborted: %s", PACKAGE_PATH, e)
        return JSONResponse({'error': str(e)}, status_code=500)
    return report.to_dict()
