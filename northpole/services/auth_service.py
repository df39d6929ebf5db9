"""
Session token + password hashing service.

The signed token travels in an httpOnly cookie for the browser client and is
also accepted as a Bearer header for API callers.
"""

from datetime import datetime, timedelta
from typing import Optional
from passlib.context import CryptContext
from jose import JWTError, jwt
from fastapi import HTTPException, Request, Response, status, Depends
from fastapi.security import OAuth2PasswordBearer
from fastapi.security.utils import get_authorization_scheme_param
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from northpole.config import Settings
from northpole.models.database import get_db
from northpole.models.entities import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

ALGORITHM = "HS256"


def _unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def session_token(request: Request, settings: Settings) -> Optional[str]:
    """Bearer token if present, otherwise the session cookie."""
    scheme, param = get_authorization_scheme_param(request.headers.get("Authorization"))
    if scheme.lower() == "bearer" and param:
        return param
    return request.cookies.get(settings.SESSION_COOKIE_NAME)


def has_valid_session(request: Request) -> bool:
    """Signature check only; the user row is not looked up."""
    settings: Settings = request.app.state.settings
    token = session_token(request, settings)
    if not token:
        return False
    try:
        jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        return False
    return True


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain: str, hashed: str) -> bool:
    return pwd_context.verify(plain, hashed)


def create_access_token(data: dict, settings: Settings, expires_delta: Optional[timedelta] = None) -> str:
    to_encode = data.copy()
    expire = datetime.utcnow() + (expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(token, settings.SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError:
        raise _unauthorized("Invalid or expired session")


def issue_session(response: Response, user: User, settings: Settings) -> str:
    """Sign a token for the user and attach it as the session cookie."""
    token = create_access_token({"sub": str(user.id), "parent": user.is_parent}, settings)
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        token,
        httponly=True,
        secure=settings.SESSION_COOKIE_SECURE,
        samesite="lax",
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )
    return token


def clear_session(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.SESSION_COOKIE_NAME)


async def create_user(
    db: AsyncSession,
    username: str,
    password: str,
    is_parent: bool = False,
    parent_id: Optional[int] = None,
) -> User:
    user = User(
        username=username,
        hashed_password=hash_password(password),
        is_parent=is_parent,
        parent_id=parent_id,
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        # a concurrent registration took the username between check and insert
        await db.rollback()
        raise HTTPException(status_code=409, detail="Username already exists")
    return user


async def authenticate(db: AsyncSession, username: str, password: str) -> Optional[User]:
    result = await db.execute(select(User).where(User.username == username))
    user = result.scalar_one_or_none()
    if user is None or not verify_password(password, user.hashed_password):
        return None
    return user


async def get_current_user(
    request: Request,
    bearer: Optional[str] = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    settings: Settings = request.app.state.settings

    # An explicit Bearer header wins over the browser cookie
    token = bearer or request.cookies.get(settings.SESSION_COOKIE_NAME)
    if not token:
        raise _unauthorized()

    payload = decode_token(token, settings)
    subject = payload.get("sub")
    try:
        user_id = int(subject)
    except (TypeError, ValueError):
        raise _unauthorized("Invalid session payload")

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if user is None:
        raise _unauthorized("User not found")
    return user


async def require_parent(user: User = Depends(get_current_user)) -> User:
    if not user.is_parent:
        raise HTTPException(status_code=403, detail="Only parents can access this endpoint")
    return user
