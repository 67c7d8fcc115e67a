"""Domain models shared across assignment, notifications and jobs."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class TeamMember:
    """A team member from the repository config."""

    github: str
    slack: str


@dataclass(frozen=True)
class PullRequest:
    """The view of a pull request that assignment strategies see."""

    number: int
    author: str
    reviewers: tuple[str, ...] = ()


@dataclass(frozen=True)
class RepositoryRef:
    """A repository reached through a specific GitHub App installation."""

    installation_id: str
    owner: str
    name: str

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.name}"

    @property
    def repository_id(self) -> str:
        """Durable key, ``{installationId}/{owner}/{repo}``."""
        return f"{self.installation_id}/{self.owner}/{self.name}"


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    # Format: "2024-01-01T00:00:00Z"
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@dataclass
class GitHubPullRequest:
    """An open pull request as returned by the GitHub REST API."""

    number: int
    title: str
    author: str
    html_url: str
    body: str | None = None
    labels: list[str] = field(default_factory=list)
    requested_reviewers: list[str] = field(default_factory=list)
    draft: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None
    base_ref: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "GitHubPullRequest":
        """Build from a ``pulls`` API or webhook payload object."""
        return cls(
            number=data["number"],
            title=data.get("title", ""),
            author=(data.get("user") or {}).get("login", ""),
            html_url=data.get("html_url", ""),
            body=data.get("body"),
            labels=[label.get("name", "") for label in data.get("labels") or []],
            requested_reviewers=[
                reviewer.get("login", "")
                for reviewer in data.get("requested_reviewers") or []
            ],
            draft=bool(data.get("draft", False)),
            created_at=_parse_timestamp(data.get("created_at")),
            updated_at=_parse_timestamp(data.get("updated_at")),
            base_ref=(data.get("base") or {}).get("ref"),
        )

    def to_assignment_view(self) -> PullRequest:
        return PullRequest(
            number=self.number,
            author=self.author,
            reviewers=tuple(self.requested_reviewers),
        )
