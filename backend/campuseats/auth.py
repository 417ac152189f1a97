"""Authentication helpers and FastAPI security dependencies.

This module provides utilities to decode JWT tokens, a FastAPI
dependency `get_current_user` that validates the bearer token and
returns the corresponding `User` model instance from the request's
database session, and `require_role` for role-restricted routes.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
import jwt
from .services import JWT_SECRET, JWT_ALGORITHM
from sqlmodel import Session
from .database import get_session
from . import models, repositories

bearer_scheme = HTTPBearer()


def decode_token(token: str):
    """Decode and verify a JWT token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        return payload
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def get_current_user(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
    db: Session = Depends(get_session),
) -> models.User:
    """FastAPI dependency that returns the authenticated user.

    The function extracts the bearer token from the request, decodes it
    and looks the user up in the request's session, so services can
    modify the returned object. It raises an HTTPException(401) for any
    authentication issue.
    """
    payload = decode_token(credentials.credentials)
    user_id = payload.get('user_id')
    if not user_id:
        raise HTTPException(status_code=401, detail='invalid token payload')
    user = repositories.UserRepository(db).get(user_id)
    if not user:
        raise HTTPException(status_code=401, detail='user not found')
    return user


def require_role(*roles: models.Role):
    """Build a dependency that only admits users holding one of `roles`."""
    allowed = set(roles)

    def _checker(user: models.User = Depends(get_current_user)) -> models.User:
        if user.role not in allowed:
            names = ' or '.join(r.value for r in roles)
            raise HTTPException(status_code=403, detail=f'{names} access required')
        return user

    return _checker


require_student = require_role(models.Role.STUDENT)
require_vendor = require_role(models.Role.VENDOR)
require_admin = require_role(models.Role.ADMIN)
require_staff = require_role(models.Role.VENDOR, models.Role.ADMIN)
