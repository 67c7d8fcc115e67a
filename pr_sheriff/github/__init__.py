"""GitHub integration for PR Sheriff."""

from .api import GitHubClient, ReviewerLoadSource
from .auth import GitHubAppAuth

__all__ = ["GitHubAppAuth", "GitHubClient", "ReviewerLoadSource"]
