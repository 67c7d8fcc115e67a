"""Daily announcement of stale pull requests per repository."""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from ..filters import filter_pull_requests
from ..models import GitHubPullRequest, RepositoryRef
from ..notifications.messages import PRLink, format_blame_message
from ..notifications.tracker import NotificationType
from ..repo_config import RepositoryConfig
from .common import JobContext, JobResult, iter_repositories, load_repository_config

logger = logging.getLogger(__name__)


@dataclass
class BlameResult(JobResult):
    prs_blamed: int = 0
    repositories_processed: int = 0


def days_since(moment: datetime, now: datetime) -> int:
    """Whole days elapsed, rounded down."""
    return (now - moment) // timedelta(days=1)


def is_stale(pr: GitHubPullRequest, now: datetime, after_days: int) -> bool:
    """Stale means both opened and last updated at least ``after_days`` ago."""
    if pr.created_at is None or pr.updated_at is None:
        return False
    return (
        days_since(pr.created_at, now) >= after_days
        and days_since(pr.updated_at, now) >= after_days
    )


def _timezone(name: str):
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone '{name}', using UTC")
        return timezone.utc


def blame_logical_id(repo: RepositoryRef, now: datetime, timezone_name: str) -> str:
    """One blame per repository per local calendar day."""
    day = now.astimezone(_timezone(timezone_name)).date().isoformat()
    return f"{repo.full_name}/blame/{day}"


async def _blame_repository(
    ctx: JobContext, repo: RepositoryRef, config: RepositoryConfig, result: BlameResult
) -> None:
    options = config.blame
    now = ctx.clock()
    prs = filter_pull_requests(await ctx.github.list_open_pull_requests(repo), config.rules)
    stale = [pr for pr in prs if is_stale(pr, now, options.after_days)]
    result.repositories_processed += 1

    if not stale:
        logger.debug(f"{repo.full_name}: no stale PRs")
        return

    metadata = {
        "repository": repo.full_name,
        "prNumbers": sorted(pr.number for pr in stale),
        "afterDays": options.after_days,
    }
    logical_id = blame_logical_id(repo, now, config.rules.timezone)
    if await ctx.tracker.check_and_mark(
        NotificationType.BLAME, None, logical_id, options.channel, metadata
    ):
        logger.debug(f"{repo.full_name}: blame already sent today")
        return

    links = [PRLink.from_pull_request(repo, pr) for pr in stale]
    try:
        await ctx.notifier.send(
            format_blame_message(repo.full_name, links, options.after_days, options.channel)
        )
    except Exception:
        await ctx.tracker.unmark(NotificationType.BLAME, None, logical_id, options.channel)
        raise
    result.prs_blamed += len(stale)
    logger.info(f"{repo.full_name}: blamed {len(stale)} stale PR(s)")


async def run_blame(ctx: JobContext) -> BlameResult:
    """Announce stale pull requests in each repository's blame channel."""
    result = BlameResult()

    async for repo in iter_repositories(ctx, result):
        try:
            config = await load_repository_config(ctx.github, repo)
            if config is None or not config.blame.enabled:
                continue
            await _blame_repository(ctx, repo, config, result)
        except Exception as e:
            logger.exception(f"Blame failed for {repo.full_name}")
            result.record_error(repo.full_name, e)

    logger.info(
        f"Blame job finished: {result.prs_blamed} PRs blamed in "
        f"{result.repositories_processed} repositories, {len(result.errors)} errors"
    )
    return result
