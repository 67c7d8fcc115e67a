"""Error types for PR Sheriff."""


class PRSheriffError(Exception):
    """Base exception for all PR Sheriff errors."""


class NoStrategyAvailableError(PRSheriffError):
    """Raised when the assignment engine has no usable strategy."""

    def __init__(self, requested: str):
        self.requested = requested
        super().__init__(
            f"No assignment strategy available (requested '{requested}', "
            "no round-robin fallback registered)"
        )


class ConfigNotFoundError(PRSheriffError):
    """Raised when a repository has no .pr-sheriff.yml file."""


class ConfigParseError(PRSheriffError):
    """Raised when a .pr-sheriff.yml file cannot be parsed or validated."""


class GitHubAPIError(PRSheriffError):
    """Raised when the GitHub REST API returns a non-success status."""

    def __init__(self, method: str, path: str, status_code: int, body: str = ""):
        self.method = method
        self.path = path
        self.status_code = status_code
        self.body = body
        super().__init__(f"GitHub API error: {method} {path} -> {status_code} {body[:200]}")


class SlackAPIError(PRSheriffError):
    """Raised when a Slack Web API call fails."""

    def __init__(self, method: str, error: str, status_code: int | None = None):
        self.method = method
        self.error = error
        self.status_code = status_code

        message = f"Slack API error in {method}: {error}"
        if status_code is not None:
            message = f"{message} (status: {status_code})"
        super().__init__(message)
