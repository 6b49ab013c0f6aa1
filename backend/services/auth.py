"""Bearer-token verification for API requests.

Tokens are issued by the session collaborator; this module only checks them
and resolves the user they name.
"""

from datetime import datetime, timedelta, timezone

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session

import config
from database import get_db
from exceptions import AuthenticationError
from models.user import User


bearer_scheme = HTTPBearer(auto_error=False)


def create_access_token(user: User, expires_minutes: int = config.ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    payload = {
        "sub": str(user.id),
        "username": user.username,
        "exp": datetime.now(timezone.utc) + timedelta(minutes=expires_minutes),
        "type": "access",
    }
    return jwt.encode(payload, config.SECRET_KEY, algorithm=config.ALGORITHM)


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> User:
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise AuthenticationError("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            config.SECRET_KEY,
            algorithms=[config.ALGORITHM],
        )
    except JWTError:
        raise AuthenticationError()

    if payload.get("type") != "access":
        raise AuthenticationError("Invalid token type")

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError()

    user = db.query(User).filter(User.id == user_id).first()
    if user is None:
        raise AuthenticationError()
    return user
