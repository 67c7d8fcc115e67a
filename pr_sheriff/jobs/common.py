"""Shared fan-out over installations and repositories for batch jobs."""

import logging
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from ..errors import ConfigNotFoundError, ConfigParseError
from ..github.api import GitHubClient
from ..models import RepositoryRef
from ..notifications.engine import NotificationEngine
from ..notifications.tracker import NotificationTracker
from ..repo_config import RepositoryConfig, fetch_repository_config
from ..storage.directory import RepositoryDirectory
from ..storage.tables import utcnow

logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """Collaborators a batch job runs against."""

    github: GitHubClient
    directory: RepositoryDirectory
    tracker: NotificationTracker
    notifier: NotificationEngine
    installation_id: str | None = None
    clock: Callable[[], datetime] = utcnow


@dataclass
class JobError:
    """A unit of work (repository, installation or reviewer) that failed."""

    repository: str
    error: str

    def to_dict(self) -> dict[str, str]:
        return {"repository": self.repository, "error": self.error}


@dataclass
class JobResult:
    errors: list[JobError] = field(default_factory=list)

    def record_error(self, unit: str, error: Exception) -> None:
        self.errors.append(JobError(repository=unit, error=str(error)))

    def to_dict(self) -> dict[str, Any]:
        data = {key: value for key, value in vars(self).items() if key != "errors"}
        data["errors"] = [error.to_dict() for error in self.errors]
        return data


async def resolve_installations(ctx: JobContext) -> list[str]:
    """
    Installations to process.

    An explicitly configured installation wins; otherwise the directory,
    and as a last resort the app's installation list from GitHub.
    """
    if ctx.installation_id:
        return [ctx.installation_id]

    installations = await ctx.directory.list_installations()
    if installations:
        return installations

    logger.info("No installations in the directory, listing them from GitHub")
    return [str(item["id"]) for item in await ctx.github.list_installations()]


async def resolve_repositories(ctx: JobContext, installation_id: str) -> list[RepositoryRef]:
    repos = await ctx.directory.list_repositories(installation_id)
    if repos:
        return repos
    return await ctx.github.list_installation_repositories(installation_id)


async def iter_repositories(ctx: JobContext, result: JobResult) -> AsyncIterator[RepositoryRef]:
    """
    Yield every repository of every installation.

    Failing to enumerate one installation is recorded in ``result`` and
    does not stop the others.
    """
    try:
        installations = await resolve_installations(ctx)
    except Exception as e:
        logger.exception("Failed to list installations")
        result.record_error("*", e)
        return

    for installation_id in installations:
        try:
            repos = await resolve_repositories(ctx, installation_id)
        except Exception as e:
            logger.exception(f"Failed to list repositories for installation {installation_id}")
            result.record_error(f"installation/{installation_id}", e)
            continue

        logger.debug(f"Installation {installation_id}: {len(repos)} repositories")
        for repo in repos:
            yield repo


async def load_repository_config(
    github: GitHubClient, repo: RepositoryRef, ref: str | None = None
) -> RepositoryConfig | None:
    """Repository config, or None when the repository is not set up."""
    try:
        return await fetch_repository_config(github, repo, ref)
    except ConfigNotFoundError:
        logger.debug(f"Skipping {repo.full_name}: no configuration")
    except ConfigParseError as e:
        logger.warning(f"Skipping {repo.full_name}: invalid configuration: {e}")
    return None
