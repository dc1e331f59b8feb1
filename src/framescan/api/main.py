"""FrameScan FastAPI application factory."""

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from framescan import __version__
from framescan.api.errors import (
    FrameScanHttpError,
    framescan_http_error_handler,
    generic_exception_handler,
    http_exception_handler,
    request_validation_error_handler,
    scan_error_handler,
)
from framescan.api.routes.credits import router as credits_router
from framescan.api.routes.health import router as health_router
from framescan.api.routes.reports import router as reports_router
from framescan.api.routes.scans import router as scans_router
from framescan.pipeline.errors import ScanError
from framescan.service import FrameScanService


def create_app(service: FrameScanService | None = None) -> FastAPI:
    """Create and configure the FrameScan API.

    Args:
        service: Service instance to serve. If None, builds one from the
            environment via FrameScanService.create().

    Returns:
        Configured FastAPI application instance.
    """
    app = FastAPI(
        title="FrameScan API",
        description="Frame scoring and credit-gated analysis",
        version=__version__,
    )
    app.state.service = service or FrameScanService.create()

    app.add_exception_handler(ScanError, scan_error_handler)
    app.add_exception_handler(FrameScanHttpError, framescan_http_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(ValidationError, request_validation_error_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    app.include_router(health_router)
    app.include_router(scans_router)
    app.include_router(reports_router)
    app.include_router(credits_router)

    return app
