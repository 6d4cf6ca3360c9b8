"""Owner login."""
import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session

from ..auth import create_access_token, verify_password
from ..config import settings
from ..database import get_db
from ..models import User
from ..rate_limit import get_client_ip, enforce_rate_limit
from ..schemas import LoginRequest, TokenResponse

router = APIRouter(prefix="/auth", tags=["auth"])
logger = logging.getLogger(__name__)


def _set_no_store(response: Response) -> None:
    # Reduce the chance of logging/caching tokens.
    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"


@router.post("/login", response_model=TokenResponse)
def login(payload: LoginRequest, request: Request, response: Response, db: Session = Depends(get_db)):
    """Login with email and password."""
    _set_no_store(response)
    enforce_rate_limit(scope="login", client_ip=get_client_ip(request), limit=settings.RATE_LIMIT_LOGIN_PER_MINUTE)

    email = payload.email.strip().lower()
    user = db.query(User).filter(User.email == email).first()
    if not user or not verify_password(payload.password, user.password_hash):
        logger.warning(f"❌ Failed login for {email}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect email or password",
        )
    if not user.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User is inactive")

    access_token = create_access_token({"sub": str(user.id)})
    logger.info(f"✅ Owner {email} logged in")
    return TokenResponse(access_token=access_token, expires_in=int(settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES) * 60)
