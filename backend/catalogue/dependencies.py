"""
FastAPI dependencies.

The external clients are built once in the application lifespan and kept on
``app.state``; routes reach them only through these functions, so tests can
swap them with ``app.dependency_overrides``.
"""
import logging
from typing import Optional

import httpx
from fastapi import Depends, Header, Request

from catalogue.auth_client import AuthenticatedUser, SupabaseAuthClient
from catalogue.errors import AuthError
from catalogue.extraction import GeminiExtractionClient
from catalogue.storage_client import SupabaseStorageClient

logger = logging.getLogger(__name__)


def get_auth_client(request: Request) -> SupabaseAuthClient:
    return request.app.state.auth_client


def get_storage_client(request: Request) -> SupabaseStorageClient:
    return request.app.state.storage_client


def get_extraction_client(request: Request) -> GeminiExtractionClient:
    return request.app.state.extraction_client


async def get_current_user(
    authorization: Optional[str] = Header(None),
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> AuthenticatedUser:
    """
    Verify the bearer token with the auth service.

    Raises:
        AuthError: If the header is missing, the token is rejected, or the
            auth service cannot be reached
    """
    if not authorization or not authorization.startswith("Bearer "):
        raise AuthError("No token provided")

    token = authorization.split(" ", 1)[1].strip()
    if not token:
        raise AuthError("No token provided")

    try:
        user = await auth_client.get_user(token)
    except AuthError:
        raise
    except (httpx.HTTPError, ValueError) as e:
        logger.error("[Auth] Token verification failed: %s", e)
        raise AuthError("Authentication failed", detail=str(e)) from e

    user.access_token = token
    return user
