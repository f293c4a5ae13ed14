# app/api/deps.py

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from app.core.config import COOKIE_NAME
from app.core.security import AuthError, decode_token, extract_token
from app.core.user import get_user
from app.infra.postgres import get_db
from app.models.user import User
from app.realtime.router import EventRouter


def get_current_user(request: Request, db: Session = Depends(get_db)) -> User:
    """Resolve the caller from the auth cookie or bearer header, or 401."""
    token = extract_token(
        request.cookies.get(COOKIE_NAME),
        request.headers.get("Authorization"),
    )
    try:
        username = decode_token(token)
    except AuthError as e:
        raise HTTPException(status_code=401, detail=str(e))

    user = get_user(db, username)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return user


def get_event_router(request: Request) -> EventRouter:
    return request.app.state.event_router
