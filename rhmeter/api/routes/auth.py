from __future__ import annotations

import logging
from datetime import timedelta
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Response, status
from fastapi.security import OAuth2PasswordRequestForm

from rhmeter.api.deps import CurrentUser, authenticate_user, get_settings
from rhmeter.core.config import Settings
from rhmeter.core.security import create_access_token, grant_scopes
from rhmeter.schemas.auth import Token, User

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth")


@router.post("/token", response_model=Token)
def issue_token(
    response: Response,
    form_data: Annotated[OAuth2PasswordRequestForm, Depends()],
    settings: Annotated[Settings, Depends(get_settings)],
) -> Token:
    user = authenticate_user(
        username=form_data.username, password=form_data.password, settings=settings
    )
    if not user:
        logger.warning("Rejected token request for %r", form_data.username[:64])
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scopes = grant_scopes(form_data.scopes, user.scopes)
    lifetime = timedelta(minutes=settings.access_token_expire_minutes)
    token = create_access_token(
        subject=user.username, scopes=scopes, settings=settings, expires_delta=lifetime
    )

    response.headers["Cache-Control"] = "no-store"
    response.headers["Pragma"] = "no-cache"
    return Token(
        access_token=token,
        expires_in=int(lifetime.total_seconds()),
        scope=" ".join(scopes),
    )


@router.get("/me", response_model=User)
def whoami(user: CurrentUser) -> User:
    return user
