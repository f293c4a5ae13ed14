# app/api/auth.py

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.api.deps import get_current_user
from app.core.config import (
    COOKIE_NAME,
    COOKIE_SAMESITE,
    COOKIE_SECURE,
    JWT_EXPIRES_DAYS,
    LOGIN_RATE_LIMIT,
)
from app.core.rate_limit import limiter
from app.core.security import AuthError, issue_token, verify_google_token
from app.core.user import list_other_users, set_offline, upsert_user
from app.infra.postgres import get_db
from app.models.user import User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth")


class GoogleLoginSchema(BaseModel):
    token: str


@router.post("/google")
@limiter.limit(LOGIN_RATE_LIMIT)
def google_login(request: Request, response: Response, payload: GoogleLoginSchema,
                 db: Session = Depends(get_db)):
    try:
        profile = verify_google_token(payload.token)
    except AuthError as e:
        logger.info("Google login rejected: %s", e)
        raise HTTPException(status_code=401, detail="Google login failed")

    try:
        user = upsert_user(db, profile.email, profile.name, profile.picture)
    except SQLAlchemyError:
        logger.exception("Could not save user %s", profile.email)
        raise HTTPException(status_code=500, detail="Google login failed")

    response.set_cookie(
        COOKIE_NAME,
        issue_token(user.username),
        httponly=True,
        secure=COOKIE_SECURE,
        samesite=COOKIE_SAMESITE,
        max_age=JWT_EXPIRES_DAYS * 24 * 60 * 60,
    )
    logger.info("User %s logged in", user.username)

    return {"user": {"username": user.username, "name": user.name, "avatar": user.avatar}}


@router.post("/logout")
def logout(response: Response, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    try:
        set_offline(db, user.username)
    except SQLAlchemyError:
        logger.exception("Logout failed for %s", user.username)
        raise HTTPException(status_code=500, detail="Logout failed")

    response.delete_cookie(COOKIE_NAME, httponly=True, secure=COOKIE_SECURE, samesite=COOKIE_SAMESITE)
    return {"msg": "Logged out"}


@router.get("/users")
def list_users(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return [u.to_dict() for u in list_other_users(db, user.username)]


@router.get("/me")
def me(user: User = Depends(get_current_user)):
    return user.to_dict()
