"""
FastAPI dependencies.

Authentication reads the access token from the ``Authorization: Bearer``
header or, failing that, from the ``token`` cookie set by the web portal.
"""

from typing import Annotated, Callable, Optional

from fastapi import Cookie, Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from portal_apr.core.database import get_session
from portal_apr.core.database.entities.users import ADMIN_ROLES, User, UserRole
from portal_apr.core.database.repositories.users import UserRepository
from portal_apr.core.errors import AuthenticationError, PermissionDeniedError

from .realtime import EventHub, get_event_hub
from .security import ACCESS_TOKEN_TYPE, decode_token

bearer_scheme = HTTPBearer(auto_error=False)

SessionDep = Annotated[AsyncSession, Depends(get_session)]
EventHubDep = Annotated[EventHub, Depends(get_event_hub)]


async def get_current_user(
    session: SessionDep,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    token_cookie: Optional[str] = Cookie(default=None, alias="token"),
) -> User:
    raw = credentials.credentials if credentials else token_cookie
    if not raw:
        raise AuthenticationError("Token de acceso requerido")

    claims = decode_token(raw, ACCESS_TOKEN_TYPE)
    try:
        user_id = int(claims["sub"])
    except (KeyError, TypeError, ValueError) as e:
        raise AuthenticationError("Token inválido") from e

    user = await UserRepository(session).get_by_id(user_id)
    if user is None:
        raise AuthenticationError("Usuario no encontrado")
    if not user.activo:
        raise PermissionDeniedError("Cuenta desactivada. Contacte a la administración")
    return user


CurrentUser = Annotated[User, Depends(get_current_user)]


def require_roles(*roles: str) -> Callable:
    """Dependency factory allowing only users whose role is in ``roles``."""

    async def checker(user: CurrentUser) -> User:
        if user.role not in roles:
            raise PermissionDeniedError("No tiene permisos para realizar esta acción")
        return user

    return checker


SocioUser = Annotated[User, Depends(require_roles(UserRole.SOCIO.value))]
AdminUser = Annotated[User, Depends(require_roles(*ADMIN_ROLES))]
SuperAdminUser = Annotated[User, Depends(require_roles(UserRole.SUPER_ADMIN.value))]
