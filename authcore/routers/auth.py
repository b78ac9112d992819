from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from authcore.schemas.accounts import (
    Account,
    ChangePasswordRequest,
    LoginRequest,
    ProfileUpdate,
    RegistrationConfirmRequest,
    RegistrationOtpRequest,
    SessionResponse,
)
from authcore.schemas.otp import (
    OtpDispatch,
    PasswordResetRequest,
    ResetOtpVerifyRequest,
    ResetPasswordRequest,
)
from authcore.services.credentials import CredentialManager
from authcore.services.sessions import Session, SessionContext

router = APIRouter(prefix="/auth", tags=["auth"])


def get_manager(request: Request) -> CredentialManager:
    return request.app.state.manager


def _bearer_token(authorization: str | None) -> str | None:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization header",
        )
    return token


def get_session_context(
    authorization: str | None = Header(default=None),
    manager: CredentialManager = Depends(get_manager),
) -> SessionContext:
    context = SessionContext()
    manager.restore_session(context, _bearer_token(authorization))
    return context


def get_logout_context(
    authorization: str | None = Header(default=None),
    manager: CredentialManager = Depends(get_manager),
) -> SessionContext:
    # Logout always succeeds, so a header it cannot read means nobody to log out.
    try:
        token = _bearer_token(authorization)
    except HTTPException:
        return SessionContext()
    context = SessionContext()
    manager.restore_session(context, token)
    return context


def _session_response(current: Session) -> SessionResponse:
    return SessionResponse(token=current.token, user=current.user)


@router.post(
    "/register/send-otp", response_model=OtpDispatch, response_model_exclude_none=True
)
def send_registration_otp(
    payload: RegistrationOtpRequest,
    manager: CredentialManager = Depends(get_manager),
) -> OtpDispatch:
    return manager.send_registration_otp(payload.username, payload.email)


@router.post(
    "/register/confirm",
    response_model=SessionResponse,
    status_code=status.HTTP_201_CREATED,
)
def confirm_registration(
    payload: RegistrationConfirmRequest,
    manager: CredentialManager = Depends(get_manager),
) -> SessionResponse:
    context = SessionContext()
    current = manager.confirm_registration(
        context,
        payload.username,
        payload.email,
        payload.password,
        payload.full_name,
        payload.phone,
        payload.code,
    )
    return _session_response(current)


@router.post("/login", response_model=SessionResponse)
def login(
    payload: LoginRequest, manager: CredentialManager = Depends(get_manager)
) -> SessionResponse:
    context = SessionContext()
    return _session_response(manager.login(context, payload.email, payload.password))


@router.post("/logout")
def logout(
    context: SessionContext = Depends(get_logout_context),
    manager: CredentialManager = Depends(get_manager),
) -> dict:
    manager.logout(context)
    return {"message": "Logged out"}


@router.get("/me", response_model=Account)
def get_me(
    context: SessionContext = Depends(get_session_context),
    manager: CredentialManager = Depends(get_manager),
) -> Account:
    return manager.current_account(context)


@router.put("/me", response_model=Account)
def update_me(
    payload: ProfileUpdate,
    context: SessionContext = Depends(get_session_context),
    manager: CredentialManager = Depends(get_manager),
) -> Account:
    return manager.update_profile(context, payload.full_name, payload.phone)


@router.put("/change-password")
def change_password(
    payload: ChangePasswordRequest,
    context: SessionContext = Depends(get_session_context),
    manager: CredentialManager = Depends(get_manager),
) -> dict:
    manager.change_password(context, payload.current_password, payload.new_password)
    return {"message": "Password changed"}


@router.post(
    "/forgot-password", response_model=OtpDispatch, response_model_exclude_none=True
)
def request_password_reset(
    payload: PasswordResetRequest,
    manager: CredentialManager = Depends(get_manager),
) -> OtpDispatch:
    return manager.request_password_reset(payload.email)


@router.post("/forgot-password/verify")
def verify_reset_otp(
    payload: ResetOtpVerifyRequest,
    manager: CredentialManager = Depends(get_manager),
) -> dict:
    manager.verify_reset_otp(payload.email, payload.code)
    return {"message": "Code verified", "verified": True}


@router.post("/reset-password")
def reset_password(
    payload: ResetPasswordRequest,
    manager: CredentialManager = Depends(get_manager),
) -> dict:
    manager.reset_password(payload.email, payload.new_password, payload.code)
    return {"message": "Password reset"}
