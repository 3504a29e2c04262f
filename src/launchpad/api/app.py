"""FastAPI application factory for the launchpad JSON API."""

from __future__ import annotations

from typing import Any

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from launchpad.api.routes import api
from launchpad.exceptions import LaunchpadError

log = structlog.get_logger(__name__)

# Rejection code -> HTTP status. Unlisted codes are server-side failures.
STATUS_BY_CODE: dict[str, int] = {
    "invalid_ticker": 400,
    "invalid_amount": 400,
    "invalid_trade_kind": 400,
    "unknown_ticker": 404,
    "duplicate_ticker": 409,
    "curve_frozen": 422,
    "insufficient_units": 422,
    "supply_exceeded": 422,
    "slippage_exceeded": 422,
}


async def _launchpad_error_handler(request: Request, exc: Exception) -> JSONResponse:
    code = getattr(exc, "code", LaunchpadError.code)
    status_code = STATUS_BY_CODE.get(code, 500)
    log.info(
        "request_rejected",
        path=request.url.path,
        error=code,
        message=str(exc),
        status_code=status_code,
    )
    return JSONResponse(
        content={"error": code, "message": str(exc)}, status_code=status_code
    )


def create_app(lifespan: Any = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        lifespan: Optional async context manager for application lifespan events.
                  Used by main.py to inject startup/shutdown logic.

    Returns:
        FastAPI app with the /api router and LaunchpadError mapping. The caller
        sets ``app.state.engine`` before serving requests.
    """
    app = FastAPI(
        title="Launchpad",
        lifespan=lifespan,
    )
    app.state.engine = None

    app.add_exception_handler(LaunchpadError, _launchpad_error_handler)
    app.include_router(api.router, prefix="/api")

    return app
