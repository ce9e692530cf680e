"""
User repository.

Lookups by RUT, email and reset token, plus the socio listing used by the
administration screens.
"""

from __future__ import annotations

from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from ..entities.users import User, UserRole
from .base import BaseRepository, QueryBuilder

CODIGO_SOCIO_PREFIX = "SOC-"


class UserRepository(BaseRepository[User]):
    """Repository for users (socios and administrators)."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session, User)

    async def get_by_rut(self, rut: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.rut == rut))
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get_by_reset_token_hash(self, token_hash: str) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.password_reset_token_hash == token_hash))
        return result.scalar_one_or_none()

    def _socio_query(self, stmt, search: Optional[str], activo: Optional[bool]):
        stmt = stmt.where(User.role == UserRole.SOCIO.value)
        if activo is not None:
            stmt = stmt.where(User.activo == activo)
        if search:
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(User.rut).like(pattern),
                    func.lower(User.nombres).like(pattern),
                    func.lower(User.apellidos).like(pattern),
                    func.lower(User.email).like(pattern),
                    func.lower(User.codigo_socio).like(pattern),
                )
            )
        return stmt

    async def list_socios(
        self,
        search: Optional[str] = None,
        activo: Optional[bool] = None,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[User]:
        """List socios ordered by last name, optionally filtered by a free-text search."""
        stmt = self._socio_query(select(User), search, activo).order_by(User.apellidos, User.nombres)
        stmt = QueryBuilder.apply_pagination(stmt, limit, offset)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count_socios(self, search: Optional[str] = None, activo: Optional[bool] = None) -> int:
        stmt = self._socio_query(select(func.count()).select_from(User), search, activo)
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def all_socios(self) -> List[User]:
        result = await self.session.execute(select(User).where(User.role == UserRole.SOCIO.value))
        return list(result.scalars().all())

    async def next_codigo_socio(self) -> str:
        """Next free ``SOC-NNNNN`` code."""
        result = await self.session.execute(select(User.codigo_socio).where(User.codigo_socio.is_not(None)))
        numbers = [
            int(code[len(CODIGO_SOCIO_PREFIX):])
            for code in result.scalars().all()
            if code.startswith(CODIGO_SOCIO_PREFIX) and code[len(CODIGO_SOCIO_PREFIX):].isdigit()
        ]
        return f"{CODIGO_SOCIO_PREFIX}{max(numbers, default=0) + 1:05d}"

    async def list_admins(self, roles: Optional[List[str]] = None) -> List[User]:
        roles = roles or [UserRole.ADMIN.value, UserRole.SUPER_ADMIN.value]
        result = await self.session.execute(select(User).where(User.role.in_(roles)))
        return list(result.scalars().all())
