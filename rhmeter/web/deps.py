from __future__ import annotations

import secrets
from typing import Annotated
from urllib.parse import urlencode

from fastapi import Form, HTTPException, Request, status
from pydantic import ValidationError

from rhmeter.schemas.auth import User

SESSION_USER_KEY = "user"
CSRF_TOKEN_KEY = "csrf_token"
LOGIN_PATH = "/ui/login"
HOME_PATH = "/ui/dashboard"


def ensure_csrf_token(request: Request) -> str:
    token = request.session.get(CSRF_TOKEN_KEY)
    if not isinstance(token, str) or not token:
        token = secrets.token_urlsafe(32)
        request.session[CSRF_TOKEN_KEY] = token
    return token


def rotate_csrf_token(request: Request) -> str:
    token = secrets.token_urlsafe(32)
    request.session[CSRF_TOKEN_KEY] = token
    return token


def validate_csrf_token(request: Request, csrf_token: str) -> None:
    expected = request.session.get(CSRF_TOKEN_KEY)
    if not isinstance(expected, str) or not secrets.compare_digest(expected, csrf_token):
        raise HTTPException(status_code=400, detail="Invalid CSRF token")


def csrf_protect(
    request: Request,
    csrf_token: Annotated[str, Form()],
) -> None:
    validate_csrf_token(request, csrf_token)


def safe_next(target: str | None) -> str:
    """Only same-site UI paths are allowed as post-login destinations."""
    if not target or not target.startswith("/ui/") or target.startswith("//"):
        return HOME_PATH
    if target.startswith(LOGIN_PATH):
        return HOME_PATH
    return target


def get_session_user(request: Request) -> User | None:
    raw = request.session.get(SESSION_USER_KEY)
    if not isinstance(raw, dict):
        return None
    try:
        return User.model_validate(raw)
    except ValidationError:
        request.session.pop(SESSION_USER_KEY, None)
        return None


def require_session_user(request: Request) -> User:
    user = get_session_user(request)
    if not user:
        target = request.url.path
        if request.url.query:
            target = f"{target}?{request.url.query}"
        location = LOGIN_PATH
        if target != HOME_PATH:
            location = f"{LOGIN_PATH}?{urlencode({'next': target})}"
        raise HTTPException(
            status_code=status.HTTP_303_SEE_OTHER,
            headers={"Location": location},
        )
    return user
