"""
FreshCart - Security Utilities
================================
JWT tokens and double-submit CSRF protection.

The login flow lives outside this service; it only has to issue a token
whose `sub` claim is the user's email.
"""

import logging
import secrets
from datetime import timedelta
from typing import Optional

from fastapi import Request, HTTPException, status
from jose import jwt, JWTError

from config.settings import (
    SECRET_KEY, ALGORITHM, ACCESS_TOKEN_EXPIRE_MINUTES,
    COOKIE_SECURE, COOKIE_SAMESITE, CSRF_ENABLED,
)
from common.helpers import now_utc

logger = logging.getLogger("freshcart.security")

CSRF_COOKIE = "csrf_token"
CSRF_HEADER = "X-CSRF-Token"


# ==========================================
# JWT Tokens
# ==========================================

def create_token(claims: dict, expires_minutes: int = ACCESS_TOKEN_EXPIRE_MINUTES) -> str:
    payload = dict(claims, exp=now_utc() + timedelta(minutes=expires_minutes))
    return jwt.encode(payload, SECRET_KEY, algorithm=ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """Verified payload, or None for a bad/expired token."""
    try:
        payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    except JWTError as e:
        logger.debug(f"Rejected token: {e}")
        return None
    return payload


# ==========================================
# CSRF
# ==========================================

def new_csrf_token() -> str:
    return secrets.token_urlsafe(32)


def set_csrf_cookie(response, token: str):
    response.set_cookie(CSRF_COOKIE, token, httponly=True, secure=COOKIE_SECURE, samesite=COOKIE_SAMESITE)


def csrf_check(request: Request, form_token: Optional[str] = None):
    """
    The X-CSRF-Token header (or a form field) must echo the csrf cookie.
    Raises HTTPException(403) otherwise. No-op when CSRF_ENABLED is off.
    """
    if not CSRF_ENABLED:
        return

    expected = request.cookies.get(CSRF_COOKIE)
    sent = request.headers.get(CSRF_HEADER) or form_token
    if not expected or not sent or not secrets.compare_digest(expected, sent):
        logger.warning(f"CSRF check failed: {request.method} {request.url.path}")
        raise HTTPException(status.HTTP_403_FORBIDDEN, "CSRF token missing or invalid")
