# backend/labstock/apps/accounts/router.py

from __future__ import annotations

import os

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from labstock.database import get_db
from labstock.security import get_current_active_user
from . import models, schemas, services

router = APIRouter(prefix="/auth", tags=["auth"])

ALLOW_SELF_REGISTRATION = os.getenv("ALLOW_SELF_REGISTRATION", "true").lower() in {"1", "true", "yes", "on"}


def _token_response(user: models.User) -> schemas.Token:
    token, expires_in = services.issue_access_token_for_user(user)
    return schemas.Token(access_token=token, expires_in=expires_in, user=user)


@router.post(
    "/login",
    response_model=schemas.Token,
    summary="Login with username and password",
)
def login(
    payload: schemas.LoginRequest,
    db: Session = Depends(get_db),
):
    try:
        user = services.authenticate_user(db, login_req=payload)
    except services.AuthenticationError as exc:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(exc) or "Incorrect username or password.",
            headers={"WWW-Authenticate": "Bearer"},
        )
    db.commit()
    db.refresh(user)
    return _token_response(user)


@router.post(
    "/register",
    response_model=schemas.Token,
    status_code=status.HTTP_201_CREATED,
    summary="Create a staff account and log in",
)
def register(
    payload: schemas.RegisterRequest,
    db: Session = Depends(get_db),
):
    if not ALLOW_SELF_REGISTRATION:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Self registration is disabled.",
        )
    try:
        user = services.register_user(db, payload=payload)
    except services.RegistrationError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))
    db.commit()
    db.refresh(user)
    return _token_response(user)


@router.get(
    "/me",
    response_model=schemas.UserRead,
    summary="Get current logged-in user",
)
def read_current_user(
    current_user: models.User = Depends(get_current_active_user),
):
    return current_user
