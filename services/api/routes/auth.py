"""
Signup, login, logout and session endpoints.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException, Response

from services.accounts import SIGNUP_MESSAGE, AccountError, SessionUser

from ..deps import AppServices, current_user, get_services, rate_limited
from ..schemas import LoginRequest, SignupRequest, user_to_dict

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


@router.post("/api/signup", status_code=201, dependencies=[Depends(rate_limited("signup"))])
async def signup(body: SignupRequest, services: AppServices = Depends(get_services)):
    try:
        user = await services.accounts.signup(body.email, body.password, body.name)
    except AccountError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from None
    return {"message": SIGNUP_MESSAGE, "user": user_to_dict(user)}


@router.post("/api/auth/login", dependencies=[Depends(rate_limited("auth"))])
async def login(
    body: LoginRequest,
    response: Response,
    services: AppServices = Depends(get_services),
):
    """Sets the HTTP-only session cookie; approved users only."""
    try:
        user, token = await services.accounts.login(body.email, body.password)
    except AccountError as e:
        raise HTTPException(status_code=e.status_code, detail=str(e)) from None

    auth = services.config.auth
    response.set_cookie(
        key=auth.cookie_name,
        value=token,
        max_age=auth.access_token_expires,
        httponly=True,
        secure=auth.cookie_secure,
        samesite="lax",
        path="/",
    )
    logger.info(f"User {user['id']} logged in")
    return {"user": user_to_dict(user)}


@router.post("/api/auth/logout")
async def logout(response: Response, services: AppServices = Depends(get_services)):
    response.delete_cookie(services.config.auth.cookie_name, path="/")
    return {"success": True}


@router.get("/api/auth/session")
async def session(
    user: SessionUser = Depends(current_user),
    services: AppServices = Depends(get_services),
):
    return {"user": user_to_dict(await services.users.get_user(user.user_id))}
