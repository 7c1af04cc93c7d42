from datetime import datetime, timedelta, UTC
import logging
from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.orm import Session
from aninotion.core.config import SECRET_KEY, ALGORITHM
from aninotion.core.errors import Unauthenticated
from aninotion.db.database import get_session
from aninotion.models.user import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

# OAuth2
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/users/login", auto_error=False)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Create a signed access token, 15 minutes unless ``expires_delta`` is given"""
    to_encode = data.copy()
    expire = datetime.now(UTC) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, SECRET_KEY, algorithm=ALGORITHM)


def _user_from_token(token: str, session: Session) -> User | None:
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug("Invalid token: %s", e)
        return None
    user_id = payload.get("sub")
    if user_id is None:
        return None
    return session.execute(select(User).where(User.id == user_id)).scalar_one_or_none()


def get_optional_current_user(
    token: str | None = Depends(oauth2_scheme),
    session: Session = Depends(get_session)
) -> User | None:
    """Resolve the request's user if a valid token was sent.

    Disabled users are returned as-is; the access gate refuses them.
    """
    if not token:
        return None
    return _user_from_token(token, session)
