# app/core/security.py

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

import jwt
import requests

from app.core.config import (
    GOOGLE_CLIENT_ID,
    GOOGLE_TIMEOUT,
    GOOGLE_TOKENINFO_URL,
    JWT_ALGORITHM,
    JWT_EXPIRES_DAYS,
    JWT_SECRET,
)
from app.core.message_logic import utcnow

logger = logging.getLogger(__name__)

GOOGLE_ISSUERS = {"accounts.google.com", "https://accounts.google.com"}


class AuthError(Exception):
    """Credential missing, malformed, expired or rejected by the issuer"""


@dataclass(frozen=True)
class GoogleProfile:
    email: str
    name: Optional[str]
    picture: Optional[str]


def verify_google_token(id_token: str, session: Optional[requests.Session] = None) -> GoogleProfile:
    """
    Verify a Google ID token against Google's tokeninfo endpoint
    and return the profile it carries.
    """
    if not id_token:
        raise AuthError("Missing Google token")

    http = session or requests
    try:
        resp = http.get(
            GOOGLE_TOKENINFO_URL,
            params={"id_token": id_token},
            timeout=GOOGLE_TIMEOUT,
        )
    except requests.RequestException as e:
        raise AuthError(f"Google verification unavailable: {e}") from e

    if resp.status_code != 200:
        raise AuthError("Google rejected the token")

    claims = resp.json()

    if claims.get("iss") not in GOOGLE_ISSUERS:
        raise AuthError("Unexpected token issuer")
    if GOOGLE_CLIENT_ID and claims.get("aud") != GOOGLE_CLIENT_ID:
        raise AuthError("Token was issued for another client")

    email = claims.get("email")
    if not email:
        raise AuthError("Token has no e-mail claim")

    return GoogleProfile(email=email, name=claims.get("name"), picture=claims.get("picture"))


def issue_token(username: str, expires_days: int = JWT_EXPIRES_DAYS) -> str:
    """Session JWT stored in the auth cookie"""
    now = utcnow()
    payload = {
        "sub": username,
        "iat": now,
        "exp": now + timedelta(days=expires_days),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


def decode_token(token: Optional[str]) -> str:
    """Return the username a session JWT was issued for"""
    if not token:
        raise AuthError("No token, not authorized")

    try:
        payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as e:
        raise AuthError("Token expired") from e
    except jwt.InvalidTokenError as e:
        raise AuthError("Token invalid") from e

    username = payload.get("sub")
    if not username:
        raise AuthError("Token invalid")
    return username


def extract_token(cookie_token: Optional[str], authorization: Optional[str]) -> Optional[str]:
    """Cookie first, then 'Authorization: Bearer <jwt>'"""
    if cookie_token:
        return cookie_token
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip() or None
    return None
