"""
FastAPI application - Main entry point
"""

from dotenv import load_dotenv

load_dotenv()

import logging
from datetime import datetime
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from backoffice.api.catalogue_router import api as catalogue_api
from backoffice.api.claims_router import api as claims_api
from backoffice.api.contracts_router import api as contracts_api
from backoffice.api.dependencies import Services, build_services
from backoffice.api.payments_router import api as payments_api
from backoffice.errors import (
    DatastoreError,
    ErrorHandler,
    FormValidationError,
    NotFoundError,
    PermissionDeniedError,
    ReferentialConflictError,
    UniqueConstraintViolation,
)

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

error_handler = ErrorHandler()


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError):
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": {"error": "not_found", "message": str(exc)}},
        )

    @app.exception_handler(FormValidationError)
    async def _validation(request: Request, exc: FormValidationError):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content={
                "detail": {
                    "error": "validation_error",
                    "message": exc.message,
                    "field_errors": exc.field_errors,
                }
            },
        )

    @app.exception_handler(ReferentialConflictError)
    async def _referential_conflict(request: Request, exc: ReferentialConflictError):
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": {"error": "referential_conflict", "message": str(exc), "referenced_by": exc.referenced_by}},
        )

    @app.exception_handler(UniqueConstraintViolation)
    async def _unique_conflict(request: Request, exc: UniqueConstraintViolation):
        logger.warning("Write rejected by constraint %s", exc.constraint)
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"detail": {"error": "conflict", "message": str(exc), "constraint": exc.constraint}},
        )

    @app.exception_handler(PermissionDeniedError)
    async def _permission(request: Request, exc: PermissionDeniedError):
        return JSONResponse(
            status_code=status.HTTP_403_FORBIDDEN,
            content={"detail": {"error": "permission_denied", "message": str(exc)}},
        )

    @app.exception_handler(DatastoreError)
    async def _datastore(request: Request, exc: DatastoreError):
        payload = error_handler.handle_exception(exc, {"path": request.url.path})
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=payload)

    @app.exception_handler(Exception)
    async def _unexpected(request: Request, exc: Exception):
        payload = error_handler.handle_exception(exc, {"path": request.url.path})
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=payload)


def create_app(services: Optional[Services] = None) -> FastAPI:
    services = services or build_services()
    logging.getLogger("backoffice").setLevel(services.config.logging.level)

    app = FastAPI(
        title="Insurance Back Office API",
        description="Claims, contracts, catalogue and payments over the back-office document store",
        version="1.0.0",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure appropriately for production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.state.services = services

    app.include_router(claims_api, prefix="/api/v1")
    app.include_router(contracts_api, prefix="/api/v1")
    app.include_router(catalogue_api, prefix="/api/v1")
    app.include_router(payments_api, prefix="/api/v1")
    _register_exception_handlers(app)

    @app.get("/health", tags=["Health"])
    async def health_check():
        """Detailed health check (document store, session cache)."""
        return {
            "status": "healthy",
            "database": {"store": await services.store.ping(), "cache": services.cache.ping()},
            "timestamp": datetime.now().isoformat(),
        }

    return app


app = create_app()
