"""
Credzi Backend - FastAPI Application
Main entry point for the Credzi credential service.
Issues, transfers and verifies educational certificates as Algorand NFTs.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse

from app.core.config import is_production, settings
from app.core.exceptions import (
    CredziException,
    UnknownError,
    ValidationError,
    error_body,
    get_exception_status_code,
)
from app.core.logging import get_logger, log_error, setup_logging

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.
    Handles startup and shutdown events.
    """
    # Startup
    setup_logging()
    yield
    # Shutdown
    from app.domain.repositories.certificate_repository import certificate_repository
    from app.domain.repositories.issuance_repository import (
        issuance_checkpoint_repository,
    )
    from app.domain.repositories.user_repository import user_repository

    for repository in (
        certificate_repository,
        user_repository,
        issuance_checkpoint_repository,
    ):
        await repository.disconnect()


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as {"error", "errorCode", "details"}."""

    @app.exception_handler(CredziException)
    async def credzi_exception_handler(request: Request, exc: CredziException):
        status_code = get_exception_status_code(exc)
        if status_code >= 500:
            logger.error(
                f"{request.method} {request.url.path} failed: {exc.error_code} {exc.message}"
            )
        else:
            logger.info(
                f"{request.method} {request.url.path} rejected: {exc.error_code} {exc.message}"
            )
        return JSONResponse(status_code=status_code, content=error_body(exc))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        details = [
            {
                "field": ".".join(str(part) for part in error["loc"] if part != "body"),
                "message": error["msg"],
            }
            for error in exc.errors()
        ]
        error = ValidationError("Validation failed", details=details)
        return JSONResponse(status_code=400, content=error_body(error))

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        log_error(exc, {"method": request.method, "path": request.url.path})
        error = UnknownError(details=str(exc))
        return JSONResponse(status_code=500, content=error_body(error))


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured FastAPI application instance
    """
    docs_enabled = not is_production()
    app = FastAPI(
        title=settings.APP_NAME,
        description="Educational credentials as Algorand NFTs - IPFS metadata, wallet-signed minting, opt-in and transfer, verification",
        version="1.0.0",
        debug=settings.DEBUG,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
        lifespan=lifespan,
    )

    cors_origins = settings.get_effective_cors_origins()
    logger.info(f"CORS configured with origins: {cors_origins}")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Host header check only; origins are handled by CORS
    if is_production():
        logger.info(
            f"TrustedHost middleware enabled with hosts: {settings.ALLOWED_HOSTS}"
        )
        app.add_middleware(
            TrustedHostMiddleware,
            allowed_hosts=settings.ALLOWED_HOSTS,
        )
    else:
        logger.info("TrustedHost middleware disabled (development mode)")

    register_exception_handlers(app)

    from app.api.routers import (
        certificate_router,
        issuance_router,
        signing_router,
        transaction_router,
        user_router,
    )

    app.include_router(
        issuance_router.router, prefix="/api", tags=["Certificate Issuance"]
    )
    app.include_router(
        certificate_router.router, prefix="/api", tags=["Certificates & Verification"]
    )
    app.include_router(user_router.router, prefix="/api", tags=["Users"])
    app.include_router(
        transaction_router.router, prefix="/api", tags=["Algorand Transactions"]
    )
    app.include_router(signing_router.router, prefix="/api", tags=["Wallet Signing"])

    @app.get("/")
    async def root():
        """Root endpoint for health check."""
        return {
            "message": f"{settings.APP_NAME} API",
            "version": "1.0.0",
            "status": "healthy",
        }

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "environment": settings.ENVIRONMENT,
            "algod_server": settings.ALGOD_SERVER,
            "features_enabled": {
                "ipfs": bool(
                    settings.PINATA_JWT
                    or (settings.PINATA_API_KEY and settings.PINATA_SECRET_API_KEY)
                ),
                "signing_timeout": settings.SIGNING_REQUEST_TIMEOUT_SECONDS,
            },
        }

    return app


# Create the FastAPI app instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.ENVIRONMENT == "development",
        log_level="info",
    )
