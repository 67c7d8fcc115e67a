"""Reviewer selection strategies.

Each strategy maps (candidates, pull request, repository config) to an
ordered preference list of candidates. The engine truncates that list to
the configured reviewer count. Candidates are already author-filtered.
"""

import logging
import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from ..filters import is_excluded
from ..github.api import ReviewerLoadSource
from ..models import GitHubPullRequest, PullRequest, RepositoryRef, TeamMember
from ..repo_config import RepositoryConfig, RulesConfig
from .persistence import AssignmentPersistence

logger = logging.getLogger(__name__)


class StrategyName(str, Enum):
    """The closed set of assignment strategies."""

    ROUND_ROBIN = "round-robin"
    RANDOM = "random"
    LEAST_BUSY = "least-busy"


@dataclass(frozen=True)
class AssignmentContext:
    """Extra context for strategies that use durable or live state."""

    repository: RepositoryRef
    load_source: ReviewerLoadSource | None = None


class AssignmentStrategy(ABC):
    """Base class for reviewer selection strategies."""

    name: StrategyName

    @abstractmethod
    def select_reviewers(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
    ) -> list[TeamMember]:
        """Order candidates without any external state."""

    def accepts_context(self, context: AssignmentContext) -> bool:
        """Whether :meth:`select_reviewers_with_context` can use ``context``."""
        return False

    async def select_reviewers_with_context(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
        context: AssignmentContext,
    ) -> list[TeamMember]:
        """Order candidates using durable history or live repository state."""
        return self.select_reviewers(candidates, pr, config)


class RotationStore(Protocol):
    """Process-local rotation positions, used when no durable store exists."""

    def get_index(self, key: int) -> int:
        """Last used index for ``key``, or -1."""
        ...

    def set_index(self, key: int, index: int) -> None: ...


class InMemoryRotationStore:
    """
    Rotation positions kept in a dict, keyed by pull request number.

    This is the degraded mode for running without a database: each pull
    request number gets its own rotation sequence, so rotation is not
    shared across pull requests and resets on restart.
    """

    def __init__(self) -> None:
        self._indexes: dict[int, int] = {}

    def get_index(self, key: int) -> int:
        return self._indexes.get(key, -1)

    def set_index(self, key: int, index: int) -> None:
        self._indexes[key] = index


def _rotate(candidates: Sequence[TeamMember], start: int) -> list[TeamMember]:
    return list(candidates[start:]) + list(candidates[:start])


class RoundRobinStrategy(AssignmentStrategy):
    """Deterministic rotation through the team, keyed by repository."""

    name = StrategyName.ROUND_ROBIN

    def __init__(
        self,
        persistence: AssignmentPersistence | None = None,
        rotation_store: RotationStore | None = None,
    ) -> None:
        self.persistence = persistence
        self.rotation_store = rotation_store or InMemoryRotationStore()

    def select_reviewers(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
    ) -> list[TeamMember]:
        if not candidates:
            return []

        last_index = self.rotation_store.get_index(pr.number)
        next_index = (last_index + 1) % len(candidates)
        self.rotation_store.set_index(pr.number, next_index)
        return _rotate(candidates, next_index)

    def accepts_context(self, context: AssignmentContext) -> bool:
        return self.persistence is not None and self.persistence.available

    async def select_reviewers_with_context(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
        context: AssignmentContext,
    ) -> list[TeamMember]:
        if not candidates:
            return []
        if self.persistence is None or not self.persistence.available:
            return self.select_reviewers(candidates, pr, config)

        repository_id = context.repository.repository_id
        last_index = await self.persistence.get_last_assigned_index(
            repository_id, self.name.value, candidates
        )
        next_index = (last_index + 1) % len(candidates)

        await self.persistence.save_last_assigned_reviewer(
            repository_id, self.name.value, candidates[next_index].github
        )
        logger.debug(
            f"Round-robin for {context.repository.full_name}: last index {last_index}, "
            f"starting at {candidates[next_index].github}"
        )
        return _rotate(candidates, next_index)


class RandomStrategy(AssignmentStrategy):
    """Uniform shuffle of all candidates on every call."""

    name = StrategyName.RANDOM

    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def select_reviewers(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
    ) -> list[TeamMember]:
        shuffled = list(candidates)
        # random.shuffle is Fisher-Yates
        self.rng.shuffle(shuffled)
        return shuffled


def compute_reviewer_load(
    open_prs: Sequence[GitHubPullRequest],
    current_pr_number: int,
    rules: RulesConfig,
) -> dict[str, int]:
    """
    Count requested reviews per lowercase GitHub login.

    The pull request being assigned and pull requests excluded by the
    repository's label rules do not contribute.
    """
    load: dict[str, int] = {}
    for open_pr in open_prs:
        if open_pr.number == current_pr_number or is_excluded(open_pr, rules):
            continue
        for reviewer in open_pr.requested_reviewers:
            login = reviewer.lower()
            load[login] = load.get(login, 0) + 1
    return load


def _lexical(candidates: Sequence[TeamMember]) -> list[TeamMember]:
    return sorted(candidates, key=lambda m: (m.github.lower(), m.github))


class LeastBusyStrategy(AssignmentStrategy):
    """Prefer candidates with the fewest pending review requests."""

    name = StrategyName.LEAST_BUSY

    def __init__(self, persistence: AssignmentPersistence | None = None) -> None:
        self.persistence = persistence

    def select_reviewers(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
    ) -> list[TeamMember]:
        # Without live state every candidate has the same load
        return _lexical(candidates)

    def accepts_context(self, context: AssignmentContext) -> bool:
        return context.load_source is not None

    async def select_reviewers_with_context(
        self,
        candidates: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
        context: AssignmentContext,
    ) -> list[TeamMember]:
        if not candidates:
            return []
        if context.load_source is None:
            return self.select_reviewers(candidates, pr, config)

        try:
            open_prs = await context.load_source.list_open_pull_requests(context.repository)
        except Exception as e:
            logger.warning(
                f"Failed to load open pull requests for {context.repository.full_name}, "
                f"falling back to lexical order: {e}"
            )
            return self.select_reviewers(candidates, pr, config)

        load = compute_reviewer_load(open_prs, pr.number, config.rules)
        ordered = sorted(
            candidates,
            key=lambda m: (load.get(m.github.lower(), 0), m.github.lower(), m.github),
        )
        logger.debug(
            f"Reviewer load for {context.repository.full_name}#{pr.number}: "
            + ", ".join(f"{m.github}={load.get(m.github.lower(), 0)}" for m in ordered)
        )

        if self.persistence is not None:
            await self.persistence.save_last_assigned_reviewer(
                context.repository.repository_id, self.name.value, ordered[0].github
            )
        return ordered
