from datetime import timedelta
from typing import Any, Dict, Optional
import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import get_settings
from app.core.timezone_utils import utc_now
from app.db.session import get_async_db
from app.models.user import User
from app.repositories.async_user import async_user_repository

logger = logging.getLogger(__name__)

# Esquema Bearer (el token lo emite un servicio externo o create_access_token)
bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(subject: str, expires_delta: Optional[timedelta] = None) -> str:
    """
    Genera un JWT firmado (HS256 por defecto) cuyo `sub` es el ID del usuario.

    Args:
        subject: ID del usuario
        expires_delta: Duración del token (por defecto ACCESS_TOKEN_EXPIRE_MINUTES)
    """
    settings = get_settings()
    expire = utc_now() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode: Dict[str, Any] = {"sub": str(subject), "exp": expire}
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_async_db)
) -> User:
    """
    Resuelve el usuario autenticado a partir del token Bearer.

    Raises:
        HTTPException 401: Token ausente, inválido, expirado o usuario inexistente
    """
    if credentials is None:
        raise _credentials_exception()

    settings = get_settings()
    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM]
        )
    except JWTError as e:
        logger.warning(f"Token JWT inválido: {e}")
        raise _credentials_exception()

    user_id = payload.get("sub")
    if not user_id:
        raise _credentials_exception()

    user = await async_user_repository.get(db, id=user_id)
    if not user:
        logger.warning(f"Token válido para usuario inexistente: {user_id}")
        raise _credentials_exception()
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Dependencia que solo deja pasar a administradores (403 en otro caso)."""
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin privileges required"
        )
    return current_user
