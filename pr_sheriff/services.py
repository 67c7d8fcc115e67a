"""Process-wide service wiring."""

import logging
from dataclasses import dataclass

import httpx

from .assignment.engine import AssignmentEngine, create_assignment_engine
from .assignment.persistence import AssignmentPersistence
from .config import AppConfig
from .events import EventProcessor
from .github.api import GitHubClient
from .github.auth import GitHubAppAuth
from .jobs.common import JobContext
from .notifications.engine import NotificationEngine, RetryConfig
from .notifications.slack import SlackClient
from .notifications.tracker import NotificationTracker
from .storage.database import Database
from .storage.directory import RepositoryDirectory

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every long-lived collaborator, built once and passed by reference."""

    config: AppConfig
    database: Database | None
    github: GitHubClient
    slack: SlackClient
    directory: RepositoryDirectory
    persistence: AssignmentPersistence
    tracker: NotificationTracker
    notifier: NotificationEngine
    assignment: AssignmentEngine
    events: EventProcessor

    def job_context(self) -> JobContext:
        return JobContext(
            github=self.github,
            directory=self.directory,
            tracker=self.tracker,
            notifier=self.notifier,
            installation_id=self.config.github_installation_id,
        )

    async def aclose(self) -> None:
        await self.github.aclose()
        await self.slack.aclose()
        if self.database is not None:
            await self.database.close()


def build_services(
    config: AppConfig,
    database: Database | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> Services:
    """
    Wire up the application.

    ``database`` overrides ``config.database_url``; ``http_client`` is
    shared by the GitHub and Slack clients when given (tests pass one
    backed by ``httpx.MockTransport``).
    """
    if not config.github_app_id or not config.github_private_key:
        logger.warning("GitHub App credentials not configured, GitHub calls will fail")
    if not config.slack_bot_token:
        logger.warning("SLACK_BOT_TOKEN not configured, Slack calls will fail")

    if database is None and config.database_url:
        database = Database(config.database_url)
    if database is None:
        logger.warning("DATABASE_URL not set, running without persistence")

    auth = GitHubAppAuth(config.github_app_id, config.github_private_key, http_client=http_client)
    github = GitHubClient(auth, http_client=http_client, timeout=config.http_timeout_seconds)
    slack = SlackClient(
        config.slack_bot_token,
        http_client=http_client,
        base_url=config.slack_api_base_url,
        timeout=config.http_timeout_seconds,
    )

    directory = RepositoryDirectory(database)
    persistence = AssignmentPersistence(database)
    tracker = NotificationTracker(database)
    notifier = NotificationEngine(
        slack,
        RetryConfig(
            max_attempts=config.notification_max_attempts,
            backoff_ms=config.notification_backoff_ms,
        ),
    )
    assignment = create_assignment_engine(persistence)
    events = EventProcessor(github, directory, assignment, tracker, notifier)

    return Services(
        config=config,
        database=database,
        github=github,
        slack=slack,
        directory=directory,
        persistence=persistence,
        tracker=tracker,
        notifier=notifier,
        assignment=assignment,
        events=events,
    )
