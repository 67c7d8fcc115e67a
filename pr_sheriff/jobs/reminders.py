"""Daily review reminders, one message per reviewer across all repositories."""

import logging
from dataclasses import dataclass, field

from ..filters import filter_pull_requests
from ..models import RepositoryRef
from ..notifications.messages import (
    PRLink,
    format_channel_reminder_message,
    format_reminder_message,
)
from ..notifications.tracker import NotificationType
from ..repo_config import RepositoryConfig
from .common import JobContext, JobResult, iter_repositories, load_repository_config

logger = logging.getLogger(__name__)


@dataclass
class ReminderResult(JobResult):
    reviewers_notified: int = 0
    total_prs: int = 0
    repositories_processed: int = 0


@dataclass
class PendingReview:
    link: PRLink
    repo: RepositoryRef


@dataclass
class ReviewerAggregate:
    """Everything one reviewer is waiting on, built fresh for each run."""

    login: str
    slack_id: str | None = None
    reviews: dict[str, PendingReview] = field(default_factory=dict)
    repositories: dict[str, RepositoryRef] = field(default_factory=dict)

    def add(self, repo: RepositoryRef, link: PRLink) -> None:
        # The same PR can be reached through more than one installation
        self.reviews.setdefault(link.key, PendingReview(link=link, repo=repo))
        self.repositories.setdefault(repo.repository_id, repo)


def _find_slack_id(login: str, configs: dict[str, RepositoryConfig]) -> str | None:
    for config in configs.values():
        member = config.team.find_member(login)
        if member is not None and member.slack:
            return member.slack
    return None


def _find_channel(
    aggregate: ReviewerAggregate, configs: dict[str, RepositoryConfig]
) -> str | None:
    for repository_id in aggregate.repositories:
        options = configs[repository_id].new_pr_notifications
        if options.enabled and options.channel:
            return options.channel
    return None


async def _collect(
    ctx: JobContext, result: ReminderResult
) -> tuple[dict[str, ReviewerAggregate], dict[str, RepositoryConfig]]:
    aggregates: dict[str, ReviewerAggregate] = {}
    configs: dict[str, RepositoryConfig] = {}

    async for repo in iter_repositories(ctx, result):
        try:
            config = await load_repository_config(ctx.github, repo)
            if config is None or not config.daily_reminders.enabled:
                continue

            configs[repo.repository_id] = config
            prs = filter_pull_requests(
                await ctx.github.list_open_pull_requests(repo), config.rules
            )
            for pr in prs:
                link = PRLink.from_pull_request(repo, pr)
                for login in pr.requested_reviewers:
                    aggregate = aggregates.setdefault(login.lower(), ReviewerAggregate(login))
                    aggregate.add(repo, link)

            result.repositories_processed += 1
            logger.debug(f"{repo.full_name}: {len(prs)} open PRs considered for reminders")
        except Exception as e:
            logger.exception(f"Failed to collect reminders for {repo.full_name}")
            result.record_error(repo.full_name, e)

    return aggregates, configs


async def _remind(
    ctx: JobContext,
    aggregate: ReviewerAggregate,
    configs: dict[str, RepositoryConfig],
    result: ReminderResult,
) -> None:
    pending: list[PendingReview] = []
    for review in aggregate.reviews.values():
        if not await ctx.github.has_reviewer_submitted_review(
            review.repo, review.link.number, aggregate.login
        ):
            pending.append(review)

    if not pending:
        logger.debug(f"{aggregate.login} has no pending reviews")
        return

    links = [review.link for review in pending]
    metadata = {
        "reviewers": [aggregate.login],
        "prCount": len(links),
        "repositories": sorted({link.repository for link in links}),
        "prNumbers": sorted({link.number for link in links}),
        "pullRequests": sorted({link.key for link in links}),
    }
    logical_id = f"reviewer/{aggregate.login.lower()}"

    aggregate.slack_id = aggregate.slack_id or _find_slack_id(aggregate.login, configs)
    if aggregate.slack_id:
        recipient = aggregate.slack_id
        message = format_reminder_message(links, aggregate.slack_id)
    else:
        channel = _find_channel(aggregate, configs)
        if channel is None:
            raise LookupError(f"No channel to remind external reviewer {aggregate.login}")
        logical_id = f"{logical_id}/channel"
        recipient = channel
        message = format_channel_reminder_message(links, aggregate.login, channel)

    if await ctx.tracker.check_and_mark(
        NotificationType.REMINDER, None, logical_id, recipient, metadata
    ):
        logger.debug(f"Reminder for {aggregate.login} already sent to {recipient}")
        return

    try:
        await ctx.notifier.send(message)
    except Exception:
        await ctx.tracker.unmark(NotificationType.REMINDER, None, logical_id, recipient)
        raise

    result.reviewers_notified += 1
    result.total_prs += len(links)
    logger.info(f"Reminded {aggregate.login} of {len(links)} PR(s)")


async def run_reminders(ctx: JobContext) -> ReminderResult:
    """
    Send each reviewer a single reminder covering every repository.

    Pull requests the reviewer already reviewed are left out, and an
    unchanged reminder is not sent twice.
    """
    result = ReminderResult()
    aggregates, configs = await _collect(ctx, result)

    for key in sorted(aggregates):
        aggregate = aggregates[key]
        try:
            await _remind(ctx, aggregate, configs, result)
        except Exception as e:
            logger.error(f"Failed to remind {aggregate.login}: {e}")
            repositories = ", ".join(repo.full_name for repo in aggregate.repositories.values())
            result.record_error(repositories or aggregate.login, e)

    logger.info(
        f"Reminders job finished: {result.reviewers_notified} reviewers notified, "
        f"{result.total_prs} PRs, {len(result.errors)} errors"
    )
    return result
