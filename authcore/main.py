import logging
from typing import Optional

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from authcore.database import init_db
from authcore.errors import (
    AccountDeactivated,
    CredentialError,
    DeliveryError,
    DuplicateIdentity,
    EmailNotFound,
    InvalidCredentials,
    NotAuthenticated,
    OtpError,
)
from authcore.routers import auth
from authcore.services.credentials import CredentialManager

LOGGER = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (OtpError, status.HTTP_400_BAD_REQUEST),
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (NotAuthenticated, status.HTTP_401_UNAUTHORIZED),
    (AccountDeactivated, status.HTTP_403_FORBIDDEN),
    (EmailNotFound, status.HTTP_404_NOT_FOUND),
    (DuplicateIdentity, status.HTTP_409_CONFLICT),
    (DeliveryError, status.HTTP_502_BAD_GATEWAY),
)


def status_for(exc: CredentialError) -> int:
    for error_type, status_code in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status_code
    if exc.infrastructure:
        return status.HTTP_500_INTERNAL_SERVER_ERROR
    return status.HTTP_400_BAD_REQUEST


async def credential_error_handler(request: Request, exc: CredentialError) -> JSONResponse:
    return JSONResponse(status_code=status_for(exc), content=exc.to_dict())


def create_app(manager: Optional[CredentialManager] = None) -> FastAPI:
    app = FastAPI(title="Account credentials")
    app.state.manager = manager or CredentialManager.from_settings()
    app.add_exception_handler(CredentialError, credential_error_handler)
    app.include_router(auth.router, prefix="/api")
    app.include_router(auth.router)  # Compatibility for clients calling /auth/* without /api.

    @app.on_event("startup")
    def startup() -> None:
        init_db()
        if app.state.manager.ensure_seed_admin():
            LOGGER.warning("Granted admin role to seed account")

    @app.get("/")
    def root():
        return {"status": "Backend running"}

    return app
