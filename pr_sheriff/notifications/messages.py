"""Slack message formatting."""

from collections.abc import Sequence
from dataclasses import dataclass

from ..models import GitHubPullRequest, RepositoryRef, TeamMember
from ..repo_config import RepositoryConfig
from .slack import SlackMessage

DESCRIPTION_LIMIT = 300


@dataclass(frozen=True)
class PRLink:
    """A pull request reference as shown in a message."""

    repository: str
    number: int
    title: str
    author: str
    url: str

    @classmethod
    def from_pull_request(cls, repo: RepositoryRef, pr: GitHubPullRequest) -> "PRLink":
        return cls(
            repository=repo.full_name,
            number=pr.number,
            title=pr.title,
            author=pr.author,
            url=pr.html_url,
        )

    @property
    def key(self) -> str:
        return f"{self.repository}#{self.number}"

    def as_bullet(self) -> str:
        return f"• <{self.url}|{self.repository}#{self.number}: {self.title}> by {self.author}"


def _section(text: str) -> dict:
    return {"type": "section", "text": {"type": "mrkdwn", "text": text}}


def _mention(member: TeamMember) -> str:
    return f"<@{member.slack}>" if member.slack else f"@{member.github}"


def format_new_pr_message(
    repo: RepositoryRef,
    pr: GitHubPullRequest,
    config: RepositoryConfig,
    reviewers: Sequence[TeamMember] = (),
) -> SlackMessage:
    """Channel announcement for a newly opened pull request."""
    options = config.new_pr_notifications
    lines = [
        f":bell: New PR in *{repo.full_name}*: *{pr.title}* (#{pr.number})",
        f"Author: {pr.author}",
        f"<{pr.html_url}|View PR>",
    ]

    if options.include_reviewers and reviewers:
        lines.append("Reviewers: " + ", ".join(_mention(member) for member in reviewers))

    if options.include_labels and pr.labels:
        lines.append("Labels: " + ", ".join(pr.labels))

    if options.include_description and pr.body:
        description = pr.body.strip()
        if len(description) > DESCRIPTION_LIMIT:
            description = description[:DESCRIPTION_LIMIT].rstrip() + "…"
        lines.append("")
        lines.append(description)

    text = "\n".join(lines)
    return SlackMessage(text=text, channel=options.channel, blocks=[_section(text)])


def _pr_list(prs: Sequence[PRLink]) -> str:
    return "\n".join(pr.as_bullet() for pr in prs)


def format_reminder_message(prs: Sequence[PRLink], slack_user_id: str) -> SlackMessage:
    """Direct message listing the reviews a team member still owes."""
    header = f":clipboard: You have {len(prs)} PR(s) waiting for your review:"
    body = _pr_list(prs)
    return SlackMessage(
        text=f"{header}\n\n{body}",
        user=slack_user_id,
        blocks=[_section(header), _section(body)],
    )


def format_channel_reminder_message(
    prs: Sequence[PRLink], github_login: str, channel: str
) -> SlackMessage:
    """Channel reminder for a reviewer without a known Slack account."""
    header = f":clipboard: @{github_login} has {len(prs)} PR(s) waiting for review:"
    body = _pr_list(prs)
    return SlackMessage(
        text=f"{header}\n\n{body}",
        channel=channel,
        blocks=[_section(header), _section(body)],
    )


def format_blame_message(
    repository: str, prs: Sequence[PRLink], after_days: int, channel: str
) -> SlackMessage:
    """Channel summary of a repository's stale pull requests."""
    header = (
        f":warning: {len(prs)} PR(s) in *{repository}* open and untouched "
        f"for {after_days}+ days:"
    )
    body = _pr_list(prs)
    return SlackMessage(
        text=f"{header}\n\n{body}",
        channel=channel,
        blocks=[_section(header), _section(body)],
    )
