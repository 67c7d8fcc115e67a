"""Pull request filtering rules shared by assignment and batch jobs."""

from .models import GitHubPullRequest
from .repo_config import RulesConfig

DRAFT_LABEL = "draft"


def is_excluded(pr: GitHubPullRequest, rules: RulesConfig) -> bool:
    """Whether exclude_labels rules out the pull request.

    The pseudo-label "draft" in exclude_labels also excludes draft PRs.
    """
    excluded = set(rules.exclude_labels)
    if pr.draft and DRAFT_LABEL in excluded:
        return True
    return any(label in excluded for label in pr.labels)


def matches_include_labels(pr: GitHubPullRequest, rules: RulesConfig) -> bool:
    """An empty include_labels list matches everything."""
    if not rules.include_labels:
        return True
    included = set(rules.include_labels)
    return any(label in included for label in pr.labels)


def filter_pull_requests(
    prs: list[GitHubPullRequest], rules: RulesConfig
) -> list[GitHubPullRequest]:
    """Keep pull requests that pass both the exclude and include rules."""
    return [pr for pr in prs if not is_excluded(pr, rules) and matches_include_labels(pr, rules)]
