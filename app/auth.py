"""
AIVox Dashboard - Authentication
Bearer tokens for dashboard users, a static API key for services
"""
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends, Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from app import config, crud, models
from app.database import get_db
from app.exceptions import ForbiddenError, UnauthorizedError, UnexpectedError

logger = logging.getLogger(__name__)

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=config.BCRYPT_ROUNDS,
)

TOKEN = "token"
API_KEY = "api_key"


@dataclass
class Identity:
    """Who is calling: a token-verified user, or a service holding the API key"""

    method: str
    user_id: Optional[int] = None
    role: Optional[str] = None

    @property
    def is_admin(self) -> bool:
        return self.method == TOKEN and self.role == models.UserRole.ADMIN.value


# Security utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(user: models.User, expires_delta: Optional[timedelta] = None) -> str:
    if not config.JWT_SECRET:
        raise UnexpectedError("JWT_SECRET is not configured")
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(days=config.JWT_EXPIRE_DAYS))
    to_encode = {"sub": str(user.id), "role": user.role, "exp": expire}
    return jwt.encode(to_encode, config.JWT_SECRET, algorithm=config.JWT_ALGORITHM)


def decode_access_token(token: str) -> Optional[Identity]:
    """Return the token's identity, or None when it does not verify"""
    if not config.JWT_SECRET:
        return None
    try:
        payload = jwt.decode(token, config.JWT_SECRET, algorithms=[config.JWT_ALGORITHM])
        return Identity(method=TOKEN, user_id=int(payload["sub"]), role=payload.get("role"))
    except (JWTError, KeyError, TypeError, ValueError):
        return None


def authenticate_user(db: Session, email: str, password: str) -> Optional[models.User]:
    user = crud.get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def bearer_token(authorization: Optional[str]) -> Optional[str]:
    if authorization and authorization.startswith("Bearer "):
        return authorization[len("Bearer "):].strip() or None
    return None


async def require_auth(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
) -> Identity:
    """Accept a valid bearer token, falling back to the static API key"""
    token = bearer_token(authorization)

    if not token and not x_api_key:
        logger.warning(f"API request without authentication: {request.method} {request.url.path}")
        raise UnauthorizedError("API key required")

    # Prefer the token when it verifies
    if token:
        identity = decode_access_token(token)
        if identity is not None:
            logger.debug(f"Token authentication successful: {request.url.path}")
            return identity

    if not config.API_AUTH_KEY:
        logger.error("API_AUTH_KEY environment variable not set")
        raise UnexpectedError("Server configuration error")

    provided_key = x_api_key or token
    if not secrets.compare_digest(provided_key.encode(), config.API_AUTH_KEY.encode()):
        logger.warning(f"API request with invalid credentials: {request.url.path}")
        raise UnauthorizedError("Invalid credentials")

    identity = Identity(method=API_KEY)
    logger.debug(f"API key authentication successful: {request.url.path}")
    return identity


async def require_admin(request: Request, identity: Identity = Depends(require_auth)) -> Identity:
    """Admin-only endpoints need a token identity with the ADMIN role"""
    if identity.method != TOKEN or identity.user_id is None:
        raise UnauthorizedError("Authentication required")
    if not identity.is_admin:
        logger.warning(f"Admin access denied: user={identity.user_id}, role={identity.role}, "
                       f"path={request.url.path}")
        raise ForbiddenError("Admin access required")
    return identity


async def get_current_user(
    authorization: Optional[str] = Header(None),
    db: Session = Depends(get_db),
) -> models.User:
    """Resolve the bearer token to a stored user"""
    token = bearer_token(authorization)
    if not token:
        raise UnauthorizedError("Missing token")

    identity = decode_access_token(token)
    if identity is None:
        raise UnauthorizedError("Invalid token")

    user = crud.get_user(db, identity.user_id)
    if user is None:
        raise UnauthorizedError("User not found")
    return user
