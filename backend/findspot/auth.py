from typing import Optional
from datetime import datetime, timedelta, timezone
import logging

from pydantic import BaseModel
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from passlib.context import CryptContext
from sqlmodel import select

from .config import get_settings
from .database import get_session
from .models import User

logger = logging.getLogger("findspot.auth")

AUTHENTICATED_ROLE = "authenticated"

# pbkdf2_sha256 avoids depending on a working bcrypt C-extension
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
# auto_error=False so missing credentials produce our own consistent 401
security = HTTPBearer(auto_error=False)


class TokenPayload(BaseModel):
    sub: str
    email: Optional[str] = None
    role: str = AUTHENTICATED_ROLE
    admin: bool = False
    exp: Optional[int] = None


class AuthUser(BaseModel):
    """The caller as seen by access rules: identity plus the admin claim."""

    id: str
    email: Optional[str] = None
    role: str = AUTHENTICATED_ROLE
    admin: bool = False


def _secret() -> str:
    secret = get_settings().jwt_secret
    if not secret:
        # Fail closed rather than signing with a guessable default
        raise RuntimeError("JWT_SECRET not found in environment or .env file.")
    return secret


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    subject: str,
    email: Optional[str] = None,
    admin: bool = False,
    expires_delta: Optional[timedelta] = None,
) -> str:
    settings = get_settings()
    to_encode = {"sub": str(subject), "role": AUTHENTICATED_ROLE, "admin": bool(admin)}
    if email:
        to_encode["email"] = email
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.access_token_minutes)
    )
    to_encode["exp"] = int(expire.timestamp())
    return jwt.encode(to_encode, _secret(), algorithm=settings.jwt_algorithm)


def create_token_for_user(user: User) -> str:
    return create_access_token(subject=user.id, email=user.email, admin=bool(user.is_admin))


def decode_access_token(token: str) -> TokenPayload:
    try:
        payload = jwt.decode(token, _secret(), algorithms=[get_settings().jwt_algorithm])
        return TokenPayload(**payload)
    except JWTError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Invalid token"},
        ) from exc


async def authenticate_user(email: str, password: str, session) -> Optional[User]:
    result = await session.exec(select(User).where(User.email == email.strip().lower()))
    user = result.first()
    if not user or not user.password_hash:
        return None
    if not verify_password(password, user.password_hash):
        return None
    return user


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    session=Depends(get_session),
) -> AuthUser:
    if not credentials or not getattr(credentials, "credentials", None):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"X-Auth-Reason": "No credentials"},
        )

    payload = decode_access_token(credentials.credentials)
    if payload.role != AUTHENTICATED_ROLE:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Unexpected role"},
        )

    user = await session.get(User, payload.sub)
    if not user:
        logger.info("Token subject %r does not map to a user", payload.sub)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authentication credentials",
            headers={"X-Auth-Reason": "Token subject not found"},
        )
    # The admin claim in the token is authoritative until the token expires
    return AuthUser(id=user.id, email=user.email, role=payload.role, admin=payload.admin)


async def require_admin_user(user: AuthUser = Depends(get_current_user)) -> AuthUser:
    if not user.admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin permission required for this operation",
        )
    return user


async def create_user(
    session,
    email: str,
    password: Optional[str] = None,
    is_admin: bool = False,
) -> User:
    """Create a user, or update password/admin flag of an existing one."""
    email = email.strip().lower()
    result = await session.exec(select(User).where(User.email == email))
    user = result.first()
    if user is None:
        user = User(email=email, is_admin=is_admin)
    else:
        user.is_admin = is_admin
        user.updated_at = datetime.now(timezone.utc)
    if password:
        user.password_hash = get_password_hash(password)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def set_admin(session, email: str, is_admin: bool = True) -> Optional[User]:
    result = await session.exec(select(User).where(User.email == email.strip().lower()))
    user = result.first()
    if user is None:
        return None
    user.is_admin = is_admin
    user.updated_at = datetime.now(timezone.utc)
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user
