"""GitHub REST API client."""

import logging
from typing import Any, Protocol

import httpx

from ..errors import GitHubAPIError
from ..models import GitHubPullRequest, RepositoryRef
from .auth import GITHUB_API_URL

logger = logging.getLogger(__name__)

PER_PAGE = 100  # Maximum allowed by GitHub


class TokenProvider(Protocol):
    """Provides installation access tokens."""

    async def get_installation_token(self, installation_id: str) -> str: ...

    def app_headers(self) -> dict[str, str]: ...

    def invalidate_token(self, installation_id: str) -> None: ...


class ReviewerLoadSource(Protocol):
    """Live review state of a repository, used for load and reminder checks."""

    async def list_open_pull_requests(
        self, repo: RepositoryRef
    ) -> list[GitHubPullRequest]:
        """List every open pull request in the repository."""
        ...

    async def has_reviewer_submitted_review(
        self, repo: RepositoryRef, pr_number: int, reviewer_login: str
    ) -> bool:
        """Whether the reviewer has a non-dismissed review on the pull request."""
        ...


class GitHubClient:
    """
    GitHub REST API client scoped to a GitHub App.

    Every repository-level call authenticates with the installation token
    of the repository's installation. A single ``httpx.AsyncClient`` is
    shared across calls and closed with :meth:`aclose`.
    """

    def __init__(
        self,
        auth: TokenProvider,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
        base_url: str = GITHUB_API_URL,
    ) -> None:
        self.auth = auth
        self.base_url = base_url
        self._owns_client = http_client is None
        self._client = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _headers(self, installation_id: str) -> dict[str, str]:
        token = await self.auth.get_installation_token(installation_id)
        return {
            "Authorization": f"Bearer {token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def _send_once(
        self,
        installation_id: str,
        method: str,
        path: str,
        params: dict[str, Any] | None,
        json: Any,
        headers: dict[str, str] | None,
    ) -> httpx.Response:
        request_headers = await self._headers(installation_id)
        if headers:
            request_headers.update(headers)

        return await self._client.request(
            method,
            f"{self.base_url}{path}",
            params=params,
            json=json,
            headers=request_headers,
        )

    async def _send(
        self,
        installation_id: str,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request, retrying once with a fresh token after a 401."""
        response = await self._send_once(installation_id, method, path, params, json, headers)
        if response.status_code == 401:
            logger.warning(
                f"GitHub API returned 401 for {method} {path}, refreshing installation token"
            )
            self.auth.invalidate_token(installation_id)
            response = await self._send_once(
                installation_id, method, path, params, json, headers
            )
        return response

    async def _request(
        self,
        installation_id: str,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        response = await self._send(
            installation_id, method, path, params=params, json=json, headers=headers
        )
        self._raise_for_status(method, path, response)
        return response

    @staticmethod
    def _raise_for_status(method: str, path: str, response: httpx.Response) -> None:
        if response.status_code >= 400:
            logger.error(
                f"GitHub API request failed: {method} {path} -> {response.status_code}"
            )
            raise GitHubAPIError(method, path, response.status_code, response.text)

    async def _paginate(
        self,
        installation_id: str,
        path: str,
        params: dict[str, Any] | None = None,
        items_key: str | None = None,
    ) -> list[dict[str, Any]]:
        items: list[dict[str, Any]] = []
        page = 1

        while True:
            page_params = {**(params or {}), "per_page": PER_PAGE, "page": page}
            response = await self._request(installation_id, "GET", path, params=page_params)
            data = response.json()
            batch = data[items_key] if items_key else data

            items.extend(batch)

            # A short page is the last page
            if len(batch) < PER_PAGE:
                break
            page += 1

        return items

    async def get_file_content(
        self, repo: RepositoryRef, path: str, ref: str | None = None
    ) -> str | None:
        """Get raw file content, or None if the file does not exist."""
        api_path = f"/repos/{repo.owner}/{repo.name}/contents/{path}"
        response = await self._send(
            repo.installation_id,
            "GET",
            api_path,
            params={"ref": ref} if ref else None,
            headers={"Accept": "application/vnd.github.raw+json"},
        )
        if response.status_code == 404:
            return None
        self._raise_for_status("GET", api_path, response)
        return response.text

    async def list_open_pull_requests(
        self, repo: RepositoryRef
    ) -> list[GitHubPullRequest]:
        """List all open pull requests, following pagination."""
        data = await self._paginate(
            repo.installation_id,
            f"/repos/{repo.owner}/{repo.name}/pulls",
            params={"state": "open"},
        )
        return [GitHubPullRequest.from_api(item) for item in data]

    async def list_installation_repositories(
        self, installation_id: str
    ) -> list[RepositoryRef]:
        """List every repository the installation can access."""
        data = await self._paginate(
            installation_id, "/installation/repositories", items_key="repositories"
        )
        repos = []
        for item in data:
            owner, name = item["full_name"].split("/", 1)
            repos.append(RepositoryRef(installation_id=installation_id, owner=owner, name=name))
        return repos

    async def list_installations(self) -> list[dict[str, Any]]:
        """List the app's installations (authenticated as the app)."""
        installations: list[dict[str, Any]] = []
        page = 1

        while True:
            response = await self._client.get(
                f"{self.base_url}/app/installations",
                params={"per_page": PER_PAGE, "page": page},
                headers=self.auth.app_headers(),
            )
            if response.status_code >= 400:
                raise GitHubAPIError(
                    "GET", "/app/installations", response.status_code, response.text
                )
            batch = response.json()
            installations.extend(batch)
            if len(batch) < PER_PAGE:
                break
            page += 1

        return installations

    async def request_reviewers(
        self, repo: RepositoryRef, pr_number: int, reviewers: list[str]
    ) -> None:
        """Request reviews from the given GitHub handles."""
        await self._request(
            repo.installation_id,
            "POST",
            f"/repos/{repo.owner}/{repo.name}/pulls/{pr_number}/requested_reviewers",
            json={"reviewers": reviewers},
        )

    async def list_reviews(
        self, repo: RepositoryRef, pr_number: int
    ) -> list[dict[str, Any]]:
        """List reviews submitted on a pull request."""
        return await self._paginate(
            repo.installation_id,
            f"/repos/{repo.owner}/{repo.name}/pulls/{pr_number}/reviews",
        )

    async def has_reviewer_submitted_review(
        self, repo: RepositoryRef, pr_number: int, reviewer_login: str
    ) -> bool:
        """
        Check whether a reviewer already reviewed a pull request.

        Any review that is not DISMISSED counts (APPROVED, CHANGES_REQUESTED,
        COMMENTED). Lookup failures are logged and treated as "not
        submitted" so the reviewer is still reminded.
        """
        try:
            reviews = await self.list_reviews(repo, pr_number)
        except (GitHubAPIError, httpx.HTTPError) as e:
            logger.error(
                f"Failed to list reviews for {repo.full_name}#{pr_number}, "
                f"assuming {reviewer_login} has not reviewed: {e}"
            )
            return False

        login = reviewer_login.lower()
        return any(
            (review.get("user") or {}).get("login", "").lower() == login
            and review.get("state") != "DISMISSED"
            for review in reviews
        )
