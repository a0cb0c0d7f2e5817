"""
Signup and login, forwarded to the managed auth service.
"""
import logging

from fastapi import APIRouter, Depends

from catalogue.auth_client import SupabaseAuthClient
from catalogue.dependencies import get_auth_client
from catalogue.errors import CLIENT_ERRORS, AuthError, CatalogueError, ValidationError
from catalogue.schemas import (
    ErrorResponse,
    LoginRequest,
    LoginResponse,
    SignupRequest,
    SignupResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/signup",
    status_code=201,
    response_model=SignupResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing credentials or rejected signup"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
)
async def signup(
    body: SignupRequest,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> SignupResponse:
    """Register a new user."""
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")

    try:
        user = await auth_client.sign_up(
            body.email,
            body.password,
            full_name=body.full_name,
            avatar_url=body.avatar_url,
        )
    except AuthError as e:
        # A rejected signup is the caller's fault, not an auth failure
        raise ValidationError(e.message, detail=e.detail) from e
    except Exception as e:
        logger.exception("[Auth] Signup failed")
        raise CatalogueError("Internal server error", detail=str(e)) from e

    return SignupResponse(message="Signup successful", user=user)


@router.post(
    "/login",
    response_model=LoginResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Missing credentials"},
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        500: {"model": ErrorResponse, "description": "Server error"},
    },
)
async def login(
    body: LoginRequest,
    auth_client: SupabaseAuthClient = Depends(get_auth_client),
) -> LoginResponse:
    """Exchange email and password for a session."""
    if not body.email or not body.password:
        raise ValidationError("Email and password are required")

    try:
        session, user = await auth_client.sign_in_with_password(body.email, body.password)
    except CLIENT_ERRORS:
        raise
    except Exception as e:
        logger.exception("[Auth] Login failed")
        raise CatalogueError("Internal server error", detail=str(e)) from e

    return LoginResponse(message="Login successful", session=session, user=user)
