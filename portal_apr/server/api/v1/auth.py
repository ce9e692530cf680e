"""
Authentication API Endpoints.

Registration, login by RUT or email, token refresh, profile changes and the
password reset flow. Login also sets the ``token`` cookie used by the web
portal; the Bearer header works the same.
"""

from fastapi import APIRouter, Response, status

from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.auth import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    ForgotPasswordResponse,
    LoginRequest,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    ResetPasswordRequest,
    TokenResponse,
)
from portal_apr.core.models.io.users import UserRead
from portal_apr.server.core.config import settings
from portal_apr.server.services.auth import AuthService
from portal_apr.server.services.deps import CurrentUser, SessionDep

logger = get_logger(__name__)
router = APIRouter()

TOKEN_COOKIE = "token"
FORGOT_PASSWORD_MESSAGE = "Si el email está registrado, recibirá instrucciones para restablecer su contraseña"


def _set_token_cookie(response: Response, token: str) -> None:
    response.set_cookie(
        TOKEN_COOKIE,
        token,
        max_age=settings.jwt.expires_days * 24 * 3600,
        httponly=True,
        samesite="lax",
    )


@router.post(
    "/register",
    response_model=TokenResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register Socio",
    description="Self-registration of a socio. The RUT is validated and stored formatted.",
)
async def register(data: RegisterRequest, response: Response, session: SessionDep) -> TokenResponse:
    service = AuthService(session)
    user = await service.create_user(
        rut=data.rut,
        nombres=data.nombres,
        apellidos=data.apellidos,
        email=data.email,
        password=data.password,
        telefono=data.telefono,
        direccion=data.direccion,
    )
    tokens = service.issue_tokens(user)
    _set_token_cookie(response, tokens.access_token)
    return tokens


@router.post("/login", response_model=TokenResponse, summary="Login")
async def login(data: LoginRequest, response: Response, session: SessionDep) -> TokenResponse:
    """Login with a RUT in any format or an email."""
    service = AuthService(session)
    user = await service.authenticate(data.identifier, data.password)
    tokens = service.issue_tokens(user)
    _set_token_cookie(response, tokens.access_token)
    logger.info(f"User {user.id} logged in")
    return tokens


@router.post("/refresh", response_model=TokenResponse, summary="Refresh Tokens")
async def refresh(data: RefreshRequest, response: Response, session: SessionDep) -> TokenResponse:
    tokens = await AuthService(session).refresh(data.refresh_token)
    _set_token_cookie(response, tokens.access_token)
    return tokens


@router.post("/logout", response_model=MessageResponse, summary="Logout")
async def logout(response: Response) -> MessageResponse:
    response.delete_cookie(TOKEN_COOKIE)
    return MessageResponse(message="Sesión cerrada")


@router.get("/me", response_model=UserRead, summary="Current User")
async def me(user: CurrentUser) -> UserRead:
    return UserRead.model_validate(user)


@router.put("/profile", response_model=UserRead, summary="Update Profile")
async def update_profile(changes: ProfileUpdate, user: CurrentUser, session: SessionDep) -> UserRead:
    return UserRead.model_validate(await AuthService(session).update_profile(user, changes))


@router.put("/password", response_model=MessageResponse, summary="Change Password")
async def change_password(data: ChangePasswordRequest, user: CurrentUser, session: SessionDep) -> MessageResponse:
    await AuthService(session).change_password(user, data.current_password, data.new_password)
    return MessageResponse(message="Contraseña actualizada")


@router.post("/forgot-password", response_model=ForgotPasswordResponse, summary="Request Password Reset")
async def forgot_password(data: ForgotPasswordRequest, session: SessionDep) -> ForgotPasswordResponse:
    """
    Start a password reset.

    The answer is the same whether or not the email exists. The raw token is
    only included when ``EXPOSE_RESET_TOKEN`` is enabled (development).
    """
    token = await AuthService(session).forgot_password(data.email)
    return ForgotPasswordResponse(
        message=FORGOT_PASSWORD_MESSAGE,
        reset_token=token if settings.expose_reset_token else None,
    )


@router.post("/reset-password", response_model=MessageResponse, summary="Reset Password")
async def reset_password(data: ResetPasswordRequest, session: SessionDep) -> MessageResponse:
    await AuthService(session).reset_password(data.token, data.new_password)
    return MessageResponse(message="Contraseña restablecida correctamente")
