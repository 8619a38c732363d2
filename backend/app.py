"""
DriftGuard Backend Application

FastAPI application exposing the check trigger, the reset callback and the
audit log. Each request is a stateless invocation.
"""

from contextlib import asynccontextmanager

from backend import log_config  # noqa: F401
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger

from backend.api import router as api_router
from core.driftguard.exceptions import AuthRejected, ConfigurationError, PayloadError


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan manager for startup/shutdown."""
    logger.info("DriftGuard starting")

    routes = [
        f"{getattr(route, 'path', '?')} - {getattr(route, 'methods', ['MOUNT'])}"
        for route in app.routes
    ]
    logger.info(f"Registered routes: {routes}")

    yield

    logger.info("DriftGuard shutting down")


app = FastAPI(
    title="DriftGuard API",
    description="Detects and resets stuck Netatmo thermostat relays",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error(f"Server misconfigured on {request.url.path}: {exc}")
    return JSONResponse(status_code=500, content={"error": "Server misconfigured", "details": str(exc)})


@app.exception_handler(AuthRejected)
async def auth_rejected_handler(request: Request, exc: AuthRejected):
    logger.warning(f"Unauthorized request to {request.url.path}: {exc}")
    return JSONResponse(status_code=401, content={"error": "Unauthorized"})


@app.exception_handler(PayloadError)
async def payload_error_handler(request: Request, exc: PayloadError):
    logger.error(f"Invalid payload on {request.url.path}: {exc}")
    return JSONResponse(status_code=400, content={"error": "Invalid payload", "details": str(exc)})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    """Handle all unhandled exceptions gracefully."""
    import traceback

    tb_str = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))

    logger.error(f"Unhandled exception: {exc}")
    logger.error(f"Request path: {request.url.path}")
    logger.error(f"Stack trace:\n{tb_str}")

    return JSONResponse(
        status_code=500,
        content={
            "detail": str(exc),
            "type": type(exc).__name__,
            "message": "Internal server error",
        },
    )


app.include_router(api_router)


# For development
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8080)
