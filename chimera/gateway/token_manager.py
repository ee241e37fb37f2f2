"""
Bearer-token acquisition for the classification provider.

Tokens are not cached: every classification that misses the cache exchanges
the client credentials again.
"""

from typing import Optional

import httpx

from chimera.utils.logging import get_logger

from .exceptions import AuthError, UpstreamError
from .models import ClientCredentials

logger = get_logger(__name__)


class TokenManager:
    """Exchanges a client-id/secret pair for a short-lived bearer token."""

    PROVIDER = "classification"

    def __init__(
        self,
        token_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 30.0,
    ):
        self.token_url = token_url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def acquire_token(self, credentials: ClientCredentials) -> str:
        """
        Run the client-credentials grant.

        Args:
            credentials: Client id and secret issued by the provider

        Returns:
            The access token

        Raises:
            AuthError: If the exchange is rejected or returns no token
            UpstreamError: If the token endpoint could not be reached
        """
        params = {
            "grant_type": "client_credentials",
            "client_id": credentials.client_id,
            "client_secret": credentials.client_secret,
        }

        try:
            response = await self._client.get(self.token_url, params=params)
        except httpx.HTTPError as e:
            logger.error(f"Token request failed: {type(e).__name__}")
            raise UpstreamError(
                f"Token endpoint unreachable: {type(e).__name__}",
                provider=self.PROVIDER,
            ) from e

        if not response.is_success:
            logger.warning(f"Token request rejected with status {response.status_code}")
            raise AuthError(
                f"Token request failed: {response.status_code}",
                provider=self.PROVIDER,
                status_code=response.status_code,
            )

        try:
            data = response.json()
        except ValueError:
            data = None

        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthError(
                "Token response carries no access_token",
                provider=self.PROVIDER,
                status_code=response.status_code,
            )

        logger.debug("Acquired classification token")
        return token

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.aclose()
