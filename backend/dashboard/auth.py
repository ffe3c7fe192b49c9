"""Session token check and FastAPI security dependency.

Sessions are issued by the identity provider; this module only decodes
the session JWT (bearer header or `__session` cookie) and requires the
`admin` role for dashboard access.

Token verification raises HTTPExceptions on failure so it can be used
directly inside route dependencies.
"""

from typing import Optional

import jwt
from fastapi import HTTPException, Request, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings

SESSION_COOKIE = "__session"
ADMIN_ROLE = "admin"

bearer_scheme = HTTPBearer(auto_error=False)


def decode_token(token: str):
    """Decode and verify a session token.

    Returns the decoded payload on success or raises an HTTPException
    with status 401 on failure.
    """
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail='token expired')
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail='invalid token')


def require_admin(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(bearer_scheme),
) -> dict:
    """FastAPI dependency that returns the admin's token payload.

    Raises 401 when no valid token is present and 403 when the caller
    is signed in without the admin role.
    """
    token = credentials.credentials if credentials else request.cookies.get(SESSION_COOKIE)
    if not token:
        raise HTTPException(status_code=401, detail='not authenticated')
    payload = decode_token(token)
    if not payload.get('sub'):
        raise HTTPException(status_code=401, detail='invalid token payload')
    if payload.get('role') != ADMIN_ROLE:
        raise HTTPException(status_code=403, detail='admin role required')
    return payload
