"""
Client for the managed auth service (Supabase GoTrue REST API).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Tuple

import httpx

from catalogue.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass
class AuthenticatedUser:
    """Identity attached to a request once its bearer token checks out."""

    id: str
    email: Optional[str] = None
    raw: Dict[str, Any] = field(default_factory=dict)
    access_token: Optional[str] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "AuthenticatedUser":
        return cls(id=str(payload["id"]), email=payload.get("email"), raw=payload)


def _error_message(response: httpx.Response) -> str:
    """GoTrue uses a few different keys for its error text."""
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    for key in ("msg", "error_description", "message", "error"):
        if isinstance(data, dict) and data.get(key):
            return str(data[key])
    return f"HTTP {response.status_code}"


class SupabaseAuthClient:
    """
    Proxies signup, password login and token verification.

    Rejections from the provider raise AuthError with the provider's message;
    transport failures propagate as httpx errors.
    """

    def __init__(
        self,
        url: str,
        anon_key: str,
        timeout: float = 60.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.base_url = f"{url.rstrip('/')}/auth/v1"
        self.anon_key = anon_key
        self.client = client or httpx.AsyncClient(timeout=timeout)

    def _headers(self, token: Optional[str] = None) -> Dict[str, str]:
        return {
            "apikey": self.anon_key,
            "Authorization": f"Bearer {token or self.anon_key}",
        }

    async def sign_up(
        self,
        email: str,
        password: str,
        full_name: Optional[str] = None,
        avatar_url: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Register a user and return the provider's user object."""
        response = await self.client.post(
            f"{self.base_url}/signup",
            headers=self._headers(),
            json={
                "email": email,
                "password": password,
                "data": {"full_name": full_name, "avatar_url": avatar_url},
            },
        )
        if response.status_code >= 400:
            raise AuthError(_error_message(response))

        data = response.json()
        # With email confirmation off the provider answers with a session
        # wrapping the user; otherwise with the user itself.
        return data.get("user", data)

    async def sign_in_with_password(
        self, email: str, password: str
    ) -> Tuple[Dict[str, Any], Optional[Dict[str, Any]]]:
        """Exchange credentials for a session. Returns (session, user)."""
        response = await self.client.post(
            f"{self.base_url}/token",
            params={"grant_type": "password"},
            headers=self._headers(),
            json={"email": email, "password": password},
        )
        if response.status_code >= 400:
            raise AuthError(_error_message(response))

        session = response.json()
        return session, session.get("user")

    async def get_user(self, token: str) -> AuthenticatedUser:
        """Verify an access token and return the user it belongs to."""
        response = await self.client.get(
            f"{self.base_url}/user", headers=self._headers(token)
        )
        if response.status_code != 200:
            logger.info("[Auth] Token rejected: HTTP %s", response.status_code)
            raise AuthError("Invalid or expired token", detail=_error_message(response))

        payload = response.json()
        if not payload.get("id"):
            raise AuthError("Invalid or expired token")
        return AuthenticatedUser.from_payload(payload)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()
