"""
Bearer-token verification.

Users sign in with the external identity provider (Azure AD B2C / OAuth);
this module only verifies the tokens it issues and exposes the caller's
identity to request handlers.
"""
import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import settings as default_settings

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: Optional[str] = None
    name: Optional[str] = None


def decode_access_token(token: str, settings=None) -> Optional[dict]:
    """Return the token claims, or ``None`` if the token is invalid or expired."""
    settings = settings or default_settings
    options = {"verify_aud": settings.AUTH_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.AUTH_SECRET_KEY,
            algorithms=[settings.AUTH_ALGORITHM],
            audience=settings.AUTH_AUDIENCE,
            options=options,
        )
    except jwt.PyJWTError as exc:
        logger.debug("Rejected bearer token: %s", exc)
        return None


def request_settings(request: Request):
    """Settings of the application serving ``request``."""
    container = getattr(request.app.state, "container", None)
    return container.settings if container is not None else default_settings


def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> CurrentUser:
    if credentials is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_access_token(credentials.credentials, request_settings(request))
    if payload is None or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return CurrentUser(
        id=payload["sub"],
        email=payload.get("email") or (payload.get("emails") or [None])[0],
        name=payload.get("name"),
    )
