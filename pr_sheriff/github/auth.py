"""GitHub App authentication."""

import logging
import time
from dataclasses import dataclass
from datetime import datetime

import httpx
import jwt

logger = logging.getLogger(__name__)

GITHUB_API_URL = "https://api.github.com"


@dataclass
class InstallationToken:
    """GitHub App installation token."""

    token: str
    expires_at: float  # Unix timestamp


class GitHubAppAuth:
    """
    GitHub App authentication handler.

    Generates JWTs for app-level requests and exchanges them for
    installation access tokens, which are cached per installation until
    shortly before they expire.
    """

    JWT_EXPIRATION_SECONDS = 600
    # Installation tokens are valid for 1 hour, refresh 5 minutes early
    TOKEN_REFRESH_BUFFER_SECONDS = 300

    def __init__(
        self,
        app_id: str,
        private_key: str,
        http_client: httpx.AsyncClient | None = None,
        api_url: str = GITHUB_API_URL,
    ) -> None:
        """Initialize with GitHub App credentials."""
        self.app_id = app_id
        self.private_key = private_key
        self.api_url = api_url
        self._http_client = http_client
        self._token_cache: dict[str, InstallationToken] = {}

    def generate_jwt(self) -> str:
        """Generate a JWT for GitHub App authentication."""
        now = int(time.time())
        payload = {
            "iat": now - 60,  # Issued 60 seconds ago to handle clock skew
            "exp": now + self.JWT_EXPIRATION_SECONDS,
            "iss": self.app_id,
        }
        return jwt.encode(payload, self.private_key, algorithm="RS256")

    def app_headers(self) -> dict[str, str]:
        """Headers for requests authenticated as the app itself."""
        return {
            "Authorization": f"Bearer {self.generate_jwt()}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def get_installation_token(self, installation_id: str) -> str:
        """
        Get an installation access token for the given installation.

        Raises:
            httpx.HTTPStatusError: If GitHub refuses the token exchange.
        """
        cached = self._token_cache.get(installation_id)
        if cached and not self._is_token_expired(cached):
            return cached.token

        logger.debug(f"Fetching new installation token for {installation_id}")

        should_close_client = self._http_client is None
        client = self._http_client or httpx.AsyncClient()

        try:
            response = await client.post(
                f"{self.api_url}/app/installations/{installation_id}/access_tokens",
                headers=self.app_headers(),
            )
            response.raise_for_status()

            data = response.json()
            expires_at = datetime.fromisoformat(
                data["expires_at"].replace("Z", "+00:00")
            ).timestamp()

            token = InstallationToken(token=data["token"], expires_at=expires_at)
            self._token_cache[installation_id] = token
            return token.token
        finally:
            if should_close_client:
                await client.aclose()

    def _is_token_expired(self, cached: InstallationToken) -> bool:
        return time.time() >= (cached.expires_at - self.TOKEN_REFRESH_BUFFER_SECONDS)

    def invalidate_token(self, installation_id: str) -> None:
        self._token_cache.pop(installation_id, None)
