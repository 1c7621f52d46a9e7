"""
FastAPI application for the wallet gateway.
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import Settings, load_settings
from .errors import GatewayError
from .routes_market import router as market_router
from .routes_p2p import router as p2p_router
from .routes_swap import router as swap_router
from .routes_wallet import router as wallet_router
from .services import Services

logger = logging.getLogger(__name__)


def _register_error_handlers(app: FastAPI):
    @app.exception_handler(GatewayError)
    async def gateway_error_handler(request: Request, exc: GatewayError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message} ({exc.details})")
        else:
            logger.info(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(error.get("loc", [])), "msg": error.get("msg")}
            for error in exc.errors()
        ]
        return JSONResponse(status_code=400, content={"error": "Invalid request", "details": details})

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error", "details": str(exc)}
        )


def create_app(settings: Optional[Settings] = None, services: Optional[Services] = None) -> FastAPI:
    """
    Build the gateway application.

    Args:
        settings: Gateway settings (loaded from the environment if None)
        services: Prebuilt service container; built from settings if None

    Returns:
        Configured FastAPI app
    """
    settings = settings or load_settings()
    owns_services = services is None
    services = services or Services.from_settings(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("Wallet gateway starting")
        yield
        if owns_services:
            await services.close()
        logger.info("Wallet gateway stopped")

    app = FastAPI(
        title="Solana Wallet Gateway",
        description="Multi-endpoint Solana RPC, quote aggregation and wallet API",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.services = services
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
        allow_headers=["*"],
    )
    _register_error_handlers(app)

    app.include_router(market_router)
    app.include_router(wallet_router)
    app.include_router(swap_router)
    app.include_router(p2p_router)
    return app
