"""Bitbucket login API routes."""

import logging
import secrets
from functools import lru_cache
from typing import Any, Dict, Optional

from fastapi import APIRouter, Cookie, Depends, HTTPException, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel

from . import config
from .config import env_config
from .errors import InvalidStateError, MissingConfigError, ProfileFetchError, TokenExchangeError
from .providers import BitbucketProvider

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth/bitbucket", tags=["auth"])

STATE_COOKIE = "bitbucket_oauth_state"


class UserResponse(BaseModel):
    id: str
    name: Optional[str]
    email: Optional[str]
    nickname: Optional[str]
    avatar: Optional[str]
    access_token: Optional[str]
    refresh_token: Optional[str]
    expires_in: Optional[int]
    original: Dict[str, Any]


@lru_cache
def get_provider() -> BitbucketProvider:
    """Driver built from environment settings, shared across requests."""
    return BitbucketProvider(env_config)


def provider_dependency() -> BitbucketProvider:
    try:
        return get_provider()
    except MissingConfigError as e:
        raise HTTPException(status_code=503, detail=e.message)


@router.get("/login")
async def login(provider: BitbucketProvider = Depends(provider_dependency)):
    """Redirect the browser to Bitbucket with a fresh CSRF state."""
    state = secrets.token_urlsafe(16)
    response = RedirectResponse(provider.get_redirect_url(state))
    response.set_cookie(
        STATE_COOKIE,
        state,
        httponly=True,
        secure=config.OAUTH_COOKIE_SECURE,
        samesite="lax",
        max_age=600,
    )
    return response


@router.get("/callback", response_model=UserResponse)
async def callback(
    request: Request,
    response: Response,
    provider: BitbucketProvider = Depends(provider_dependency),
    bitbucket_oauth_state: Optional[str] = Cookie(None),
):
    """Finish the login and return the normalized user."""
    try:
        user = await provider.get_user(request.query_params, bitbucket_oauth_state)
    except InvalidStateError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except TokenExchangeError as e:
        raise HTTPException(status_code=400, detail=e.message)
    except ProfileFetchError as e:
        logger.error(f"Bitbucket profile fetch failed: {e}")
        raise HTTPException(status_code=502, detail="Failed to fetch Bitbucket profile")

    response.delete_cookie(STATE_COOKIE)
    return UserResponse(
        id=user.id,
        name=user.name,
        email=user.email,
        nickname=user.nickname,
        avatar=user.avatar,
        access_token=user.access_token,
        refresh_token=user.refresh_token,
        expires_in=user.expires_in,
        original=user.original,
    )
