"""
Password hashing and JWT helpers.

Passwords are hashed with bcrypt. Access and refresh tokens are HS256 JWTs
signed with separate secrets; the ``type`` claim keeps one from being used as
the other.
"""

from __future__ import annotations

import hashlib
import secrets
from datetime import timedelta
from typing import Any, Dict, Optional

import bcrypt
import jwt

from portal_apr.core.database.base import utc_now
from portal_apr.core.database.entities.users import User
from portal_apr.core.errors import AuthenticationError
from portal_apr.server.core.config import JWTConfig, settings

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or password over bcrypt's 72 byte limit
        return False


def _config(config: Optional[JWTConfig]) -> JWTConfig:
    return config or settings.jwt


def create_token(user: User, token_type: str = ACCESS_TOKEN_TYPE, config: Optional[JWTConfig] = None) -> str:
    """Sign a token carrying the user id, RUT and role."""
    cfg = _config(config)
    now = utc_now()
    payload = {
        "sub": str(user.id),
        "rut": user.rut,
        "role": user.role,
        "type": token_type,
        "iat": now,
        "exp": now + timedelta(days=cfg.expires_days),
    }
    secret = cfg.refresh_secret if token_type == REFRESH_TOKEN_TYPE else cfg.secret
    return jwt.encode(payload, secret, algorithm=cfg.algorithm)


def decode_token(token: str, token_type: str = ACCESS_TOKEN_TYPE, config: Optional[JWTConfig] = None) -> Dict[str, Any]:
    """
    Verify a token and return its claims.

    Raises:
        AuthenticationError: expired, malformed or wrong-type token
    """
    cfg = _config(config)
    secret = cfg.refresh_secret if token_type == REFRESH_TOKEN_TYPE else cfg.secret
    try:
        payload = jwt.decode(token, secret, algorithms=[cfg.algorithm], options={"require": ["exp", "sub"]})
    except jwt.ExpiredSignatureError as exc:
        raise AuthenticationError("Token expirado") from exc
    except jwt.InvalidTokenError as exc:
        raise AuthenticationError("Token malformado") from exc

    if payload.get("type") != token_type:
        raise AuthenticationError("Token inválido")
    return payload


def new_reset_token() -> tuple[str, str]:
    """Return ``(raw_token, sha256_hex)``; only the hash is stored."""
    raw = secrets.token_urlsafe(32)
    return raw, hash_reset_token(raw)


def hash_reset_token(raw: str) -> str:
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()
