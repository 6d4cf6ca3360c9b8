"""Owner authentication (JWT bearer tokens, bcrypt password hashes)."""
from datetime import datetime, timedelta, timezone
from typing import Optional
import logging
from uuid import UUID

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session

from .config import settings
from .database import get_db
from .models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
bearer_scheme = HTTPBearer()

ACCESS_TOKEN_TYPE = "access"


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def verify_password(plain_password: str, hashed_password: str) -> bool:
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Seeded or imported rows may carry a hash passlib cannot identify.
        logger.warning("Password check against an unrecognised hash format")
        return False


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Sign an owner access token; `data` must carry the owner id as `sub`."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES))
    claims = {**data, "iat": issued_at, "exp": issued_at + lifetime, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Verify signature and expiry (with clock-skew leeway) and return the claims."""
    try:
        return jwt.decode(
            token,
            settings.JWT_SECRET_KEY,
            algorithms=[settings.JWT_ALGORITHM],
            options={"leeway": int(settings.JWT_LEEWAY_SECONDS), "require_exp": True},
        )
    except ExpiredSignatureError:
        raise _unauthorized("Token expired")
    except JWTError:
        raise _unauthorized()


def _owner_id_from_claims(claims: dict) -> UUID:
    if claims.get("type") != ACCESS_TOKEN_TYPE:
        raise _unauthorized("Invalid token type")
    try:
        return UUID(str(claims["sub"]))
    except (KeyError, ValueError):
        raise _unauthorized()


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    """Resolve the gate owner behind the bearer token."""
    owner_id = _owner_id_from_claims(decode_token(credentials.credentials))
    owner = db.query(User).filter(User.id == owner_id, User.is_active == True).first()  # noqa: E712
    if owner is None:
        raise _unauthorized("User not found or inactive")
    return owner
