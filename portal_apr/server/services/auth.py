"""
Authentication and account service.

Handles socio registration, login by RUT or email, token refresh, profile
changes and the password reset flow.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.billing.rut import format_rut, validate_rut
from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.users import User, UserRole
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import (
    AuthenticationError,
    ConflictError,
    PermissionDeniedError,
    ValidationFailedError,
)
from portal_apr.core.logging_config import get_logger
from portal_apr.core.models.io.auth import ProfileUpdate, TokenResponse
from portal_apr.core.models.io.users import UserRead
from portal_apr.server.core.config import JWTConfig, settings

from .security import (
    REFRESH_TOKEN_TYPE,
    create_token,
    decode_token,
    hash_password,
    hash_reset_token,
    new_reset_token,
    verify_password,
)

logger = get_logger(__name__)

INVALID_CREDENTIALS = "Credenciales inválidas"


class AuthService:
    """Account operations for socios and administrators."""

    def __init__(self, session: AsyncSession, jwt_config: Optional[JWTConfig] = None) -> None:
        self.session = session
        self.users = UserRepository(session)
        self.jwt_config = jwt_config or settings.jwt

    async def find_by_identifier(self, identifier: str) -> Optional[User]:
        """Look a user up by email (contains ``@``) or RUT in any format."""
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        if "@" in identifier:
            return await self.users.get_by_email(identifier)
        return await self.users.get_by_rut(format_rut(identifier))

    async def _check_unique(self, rut: str, email: str) -> None:
        if await self.users.get_by_rut(rut):
            raise ConflictError("Ya existe un usuario registrado con este RUT")
        if await self.users.get_by_email(email):
            raise ConflictError("Ya existe un usuario registrado con este email")

    async def create_user(
        self,
        *,
        rut: str,
        nombres: str,
        apellidos: str,
        email: str,
        password: str,
        role: UserRole = UserRole.SOCIO,
        telefono: Optional[str] = None,
        direccion: Optional[str] = None,
        categoria_usuario: str = "residencial",
        medidor: Optional[Dict[str, Any]] = None,
    ) -> User:
        """
        Validate and persist a new user.

        Socios receive the next ``SOC-NNNNN`` code. The RUT is stored in its
        formatted form and the email lower-cased.

        Raises:
            ValidationFailedError: invalid RUT
            ConflictError: RUT or email already registered
        """
        validation = validate_rut(rut)
        if not validation.is_valid:
            raise ValidationFailedError("RUT inválido", details={"errors": validation.errors})

        email = email.strip().lower()
        await self._check_unique(validation.formatted, email)

        user = User(
            rut=validation.formatted,
            nombres=nombres.strip(),
            apellidos=apellidos.strip(),
            email=email,
            password_hash=hash_password(password),
            telefono=telefono,
            direccion=direccion,
            role=role.value,
            categoria_usuario=categoria_usuario,
            medidor=medidor,
        )
        if role == UserRole.SOCIO:
            user.codigo_socio = await self.users.next_codigo_socio()

        user = await self.users.create(user)
        logger.info(f"User created: id={user.id}, rut={user.rut}, role={user.role}")
        return user

    async def authenticate(self, identifier: str, password: str) -> User:
        user = await self.find_by_identifier(identifier)
        if user is None or not verify_password(password, user.password_hash):
            logger.info(f"Failed login attempt for identifier={identifier!r}")
            raise AuthenticationError(INVALID_CREDENTIALS)
        if not user.activo:
            raise PermissionDeniedError("Cuenta desactivada. Contacte a la administración")
        return user

    def issue_tokens(self, user: User) -> TokenResponse:
        return TokenResponse(
            access_token=create_token(user, config=self.jwt_config),
            refresh_token=create_token(user, REFRESH_TOKEN_TYPE, config=self.jwt_config),
            user=UserRead.model_validate(user),
        )

    async def refresh(self, refresh_token: str) -> TokenResponse:
        claims = decode_token(refresh_token, REFRESH_TOKEN_TYPE, config=self.jwt_config)
        user = await self.users.get_by_id(int(claims["sub"]))
        if user is None or not user.activo:
            raise AuthenticationError("Usuario no encontrado o inactivo")
        return self.issue_tokens(user)

    async def update_profile(self, user: User, changes: ProfileUpdate) -> User:
        data = changes.model_dump(exclude_unset=True)
        if "email" in data and data["email"]:
            email = data["email"].strip().lower()
            existing = await self.users.get_by_email(email)
            if existing is not None and existing.id != user.id:
                raise ConflictError("Ya existe un usuario registrado con este email")
            data["email"] = email
        for key, value in data.items():
            setattr(user, key, value)
        return await self.users.update(user)

    async def change_password(self, user: User, current_password: str, new_password: str) -> None:
        if not verify_password(current_password, user.password_hash):
            raise AuthenticationError("La contraseña actual es incorrecta")
        await self.set_password(user, new_password)

    async def set_password(self, user: User, new_password: str) -> User:
        user.password_hash = hash_password(new_password)
        user.password_reset_token_hash = None
        user.password_reset_expires = None
        return await self.users.update(user)

    async def forgot_password(self, email: str) -> Optional[str]:
        """
        Start a password reset.

        Returns:
            The raw reset token when the email belongs to a user, else None.
            Callers must answer the same way in both cases.
        """
        user = await self.users.get_by_email(email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return None

        raw, token_hash = new_reset_token()
        user.password_reset_token_hash = token_hash
        user.password_reset_expires = utc_now() + timedelta(minutes=self.jwt_config.password_reset_expires_minutes)
        await self.users.update(user)
        logger.info(f"Password reset token issued for user {user.id}")
        return raw

    async def reset_password(self, token: str, new_password: str) -> User:
        user = await self.users.get_by_reset_token_hash(hash_reset_token(token))
        if user is None or user.password_reset_expires is None or user.password_reset_expires < utc_now():
            raise ValidationFailedError("Token de recuperación inválido o expirado")
        return await self.set_password(user, new_password)
