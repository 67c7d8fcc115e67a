"""GitHub webhook event processing."""

import logging
from typing import Any

import httpx

from .assignment.engine import AssignmentEngine
from .errors import GitHubAPIError
from .github.api import GitHubClient
from .jobs.common import load_repository_config
from .models import GitHubPullRequest, RepositoryRef, TeamMember
from .notifications.engine import NotificationEngine
from .notifications.messages import format_new_pr_message
from .notifications.tracker import NotificationTracker, NotificationType
from .repo_config import RepositoryConfig
from .storage.directory import RepositoryDirectory

logger = logging.getLogger(__name__)


def _repository_ref(installation_id: str, repository: dict[str, Any]) -> RepositoryRef:
    if "owner" in repository:
        owner = repository["owner"]["login"]
        name = repository["name"]
    else:
        # installation payloads only carry full_name
        owner, name = repository["full_name"].split("/", 1)
    return RepositoryRef(installation_id=installation_id, owner=owner, name=name)


class EventProcessor:
    """
    Handles validated webhook events.

    Runs after the webhook has been acknowledged, so failures surface in
    logs only.
    """

    def __init__(
        self,
        github: GitHubClient,
        directory: RepositoryDirectory,
        assignment: AssignmentEngine,
        tracker: NotificationTracker,
        notifier: NotificationEngine,
    ) -> None:
        self.github = github
        self.directory = directory
        self.assignment = assignment
        self.tracker = tracker
        self.notifier = notifier

    async def process(
        self, event: str, delivery_id: str | None, payload: dict[str, Any]
    ) -> dict[str, Any]:
        action = payload.get("action")
        logger.info(f"Processing {event}.{action} (delivery {delivery_id})")

        if event == "pull_request" and action == "opened":
            return await self.handle_pull_request_opened(delivery_id, payload)
        if event == "installation":
            return await self.handle_installation(payload)
        if event == "installation_repositories":
            return await self.handle_installation_repositories(payload)

        return {"status": "ignored", "event": event, "action": action}

    async def handle_pull_request_opened(
        self, delivery_id: str | None, payload: dict[str, Any]
    ) -> dict[str, Any]:
        installation_id = str(payload["installation"]["id"])
        repository = payload["repository"]
        repo = _repository_ref(installation_id, repository)
        pr = GitHubPullRequest.from_api(payload["pull_request"])

        await self.directory.upsert_repository(
            repo, default_branch=repository.get("default_branch") or "main"
        )

        config = await load_repository_config(self.github, repo, ref=pr.base_ref)
        if config is None:
            return {"status": "ignored", "reason": "no_config"}

        reviewers: list[TeamMember] = []
        if config.auto_assign.enabled:
            reviewers = await self._assign_reviewers(repo, pr, config)

        notified = False
        if config.new_pr_notifications.enabled:
            notified = await self._announce(delivery_id, repo, pr, config, reviewers)

        return {
            "status": "processed",
            "repository": repo.full_name,
            "pr_number": pr.number,
            "reviewers": [member.github for member in reviewers],
            "notified": notified,
        }

    async def _assign_reviewers(
        self, repo: RepositoryRef, pr: GitHubPullRequest, config: RepositoryConfig
    ) -> list[TeamMember]:
        selected = await self.assignment.assign_with_persistence(
            config.team.members,
            pr.to_assignment_view(),
            config,
            repo,
            load_source=self.github,
        )

        already_requested = {login.lower() for login in pr.requested_reviewers}
        to_request = [m.github for m in selected if m.github.lower() not in already_requested]
        if to_request:
            try:
                await self.github.request_reviewers(repo, pr.number, to_request)
                logger.info(f"Requested reviews from {to_request} on {repo.full_name}#{pr.number}")
            except (GitHubAPIError, httpx.HTTPError) as e:
                # The announcement still goes out with the selected reviewers
                logger.error(
                    f"Failed to request reviews from {to_request} on "
                    f"{repo.full_name}#{pr.number}: {e}"
                )
        else:
            logger.info(f"No new reviewers to request on {repo.full_name}#{pr.number}")
        return selected

    async def _announce(
        self,
        delivery_id: str | None,
        repo: RepositoryRef,
        pr: GitHubPullRequest,
        config: RepositoryConfig,
        selected: list[TeamMember],
    ) -> bool:
        channel = config.new_pr_notifications.channel
        reviewers = list(selected)
        for login in pr.requested_reviewers:
            if all(member.github.lower() != login.lower() for member in reviewers):
                reviewers.append(config.team.find_member(login) or TeamMember(login, ""))

        logical_id = f"{repo.full_name}#{pr.number}"
        already_sent = await self.tracker.check_and_mark(
            NotificationType.NEW_PR,
            delivery_id,
            logical_id,
            channel,
            {
                "reviewers": [member.github for member in reviewers],
                "labels": pr.labels,
                "author": pr.author,
                "title": pr.title,
            },
        )
        if already_sent:
            logger.info(f"New PR notification for {repo.full_name}#{pr.number} already sent")
            return False

        try:
            await self.notifier.send(format_new_pr_message(repo, pr, config, reviewers))
        except Exception:
            await self.tracker.unmark(NotificationType.NEW_PR, delivery_id, logical_id, channel)
            raise
        return True

    async def handle_installation(self, payload: dict[str, Any]) -> dict[str, Any]:
        installation = payload["installation"]
        installation_id = str(installation["id"])
        action = payload.get("action")

        if action == "deleted":
            await self.directory.remove_installation(installation_id)
            return {"status": "processed", "installation": installation_id}

        if action in ("created", "unsuspend", "new_permissions_accepted"):
            account = installation.get("account") or {}
            await self.directory.upsert_installation(
                installation_id,
                account_login=account.get("login", ""),
                account_type=account.get("type", "Organization"),
            )
            for repository in payload.get("repositories") or []:
                await self.directory.upsert_repository(
                    _repository_ref(installation_id, repository)
                )
            return {"status": "processed", "installation": installation_id}

        return {"status": "ignored", "event": "installation", "action": action}

    async def handle_installation_repositories(self, payload: dict[str, Any]) -> dict[str, Any]:
        installation_id = str(payload["installation"]["id"])

        added = payload.get("repositories_added") or []
        for repository in added:
            await self.directory.upsert_repository(_repository_ref(installation_id, repository))

        removed = payload.get("repositories_removed") or []
        for repository in removed:
            await self.directory.remove_repository(_repository_ref(installation_id, repository))

        logger.info(
            f"Installation {installation_id}: {len(added)} repositories added, "
            f"{len(removed)} removed"
        )
        return {"status": "processed", "installation": installation_id}
