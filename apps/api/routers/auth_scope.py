"""Authentication dependencies resolving the acting user."""

from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

from models.user import User
from services.session_token import decode_session_token


auth_scheme = HTTPBearer(auto_error=False)


@dataclass
class AuthContext:
    user_id: Optional[str]
    email: Optional[str] = None

    @property
    def is_anonymous(self) -> bool:
        return not self.user_id


def _decode(credentials: Optional[HTTPAuthorizationCredentials]) -> AuthContext:
    try:
        claims = decode_session_token(credentials.credentials)
    except ValueError as exc:
        raise HTTPException(status_code=401, detail=str(exc)) from exc
    return AuthContext(user_id=claims.user_id, email=claims.email)


async def get_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Require a Bearer session token."""
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=401, detail="Missing Bearer session token.")
    return _decode(credentials)


async def get_optional_auth_context(
    credentials: HTTPAuthorizationCredentials = Depends(auth_scheme),
) -> AuthContext:
    """Anonymous callers may still read public collections."""
    if not credentials or credentials.scheme.lower() != "bearer":
        return AuthContext(user_id=None)
    return _decode(credentials)


async def ensure_user(db: AsyncSession, auth: AuthContext) -> Optional[User]:
    """Materialize a local user row for the authenticated subject."""
    if auth.is_anonymous:
        return None
    result = await db.execute(select(User).where(User.id == auth.user_id))
    user = result.scalar_one_or_none()
    if user:
        return user
    user = User(id=auth.user_id, email=auth.email or f"{auth.user_id}@local.invalid")
    db.add(user)
    await db.commit()
    return user
