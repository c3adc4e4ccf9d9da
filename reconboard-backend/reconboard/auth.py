# reconboard/auth.py
"""Placeholder session handling: a static ``auth-token`` cookie, never verified."""
from fastapi import APIRouter, HTTPException, Request, Response

from .config import settings

PLACEHOLDER_TOKEN = "your-auth-token"
COOKIE_MAX_AGE = 60 * 60 * 24 * 7

router = APIRouter(prefix="/auth", tags=["auth"])


def require_session(request: Request) -> str:
    token = request.cookies.get(settings.auth_cookie_name)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return token


@router.post("/login")
async def login(response: Response):
    response.set_cookie(
        settings.auth_cookie_name,
        PLACEHOLDER_TOKEN,
        httponly=True,
        samesite="lax",
        max_age=COOKIE_MAX_AGE,
    )
    return {"authenticated": True}


@router.post("/logout")
async def logout(response: Response):
    response.delete_cookie(settings.auth_cookie_name)
    return {"authenticated": False}
