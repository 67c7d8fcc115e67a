"""Assignment engine: author exclusion, strategy resolution and dispatch."""

import logging
import random
from collections.abc import Iterable, Sequence

from ..errors import NoStrategyAvailableError
from ..github.api import ReviewerLoadSource
from ..models import PullRequest, RepositoryRef, TeamMember
from ..repo_config import RepositoryConfig
from .persistence import AssignmentPersistence
from .strategies import (
    AssignmentContext,
    AssignmentStrategy,
    LeastBusyStrategy,
    RandomStrategy,
    RotationStore,
    RoundRobinStrategy,
    StrategyName,
)

logger = logging.getLogger(__name__)

FALLBACK_STRATEGY = StrategyName.ROUND_ROBIN


class AssignmentEngine:
    """
    Selects reviewers for a pull request.

    Strategies are registered explicitly; an unknown strategy name falls
    back to round-robin. Use :meth:`assign` for a side-effect free
    selection and :meth:`assign_with_persistence` when rotation history
    and live reviewer load should be used (and updated).
    """

    def __init__(self, strategies: Iterable[AssignmentStrategy] = ()) -> None:
        self._strategies: dict[StrategyName, AssignmentStrategy] = {}
        for strategy in strategies:
            self.register_strategy(strategy)

    def register_strategy(self, strategy: AssignmentStrategy) -> None:
        self._strategies[strategy.name] = strategy

    @property
    def strategy_names(self) -> list[StrategyName]:
        return list(self._strategies)

    def resolve_strategy(self, name: str) -> AssignmentStrategy:
        """
        Look up a strategy by its configured name.

        Raises:
            NoStrategyAvailableError: If the name is unknown and round-robin
                is not registered either.
        """
        try:
            strategy = self._strategies.get(StrategyName(name))
        except ValueError:
            strategy = None

        if strategy is not None:
            return strategy

        fallback = self._strategies.get(FALLBACK_STRATEGY)
        if fallback is None:
            raise NoStrategyAvailableError(name)

        logger.warning(f"Unknown assignment strategy '{name}', using {FALLBACK_STRATEGY.value}")
        return fallback

    def _candidates(
        self, members: Sequence[TeamMember], pr: PullRequest, config: RepositoryConfig
    ) -> list[TeamMember]:
        if not config.auto_assign.exclude_authors:
            return list(members)
        # Exact handle match, as GitHub reports it
        return [member for member in members if member.github != pr.author]

    def assign(
        self,
        members: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
    ) -> list[TeamMember]:
        """Select reviewers without touching durable state."""
        candidates = self._candidates(members, pr, config)
        if not candidates:
            logger.warning(f"No reviewers available for PR #{pr.number} after excluding author")
            return []

        strategy = self.resolve_strategy(config.auto_assign.assignment_strategy)
        ordered = strategy.select_reviewers(candidates, pr, config)
        return ordered[: config.auto_assign.reviewers_per_pr]

    async def assign_with_persistence(
        self,
        members: Sequence[TeamMember],
        pr: PullRequest,
        config: RepositoryConfig,
        repository: RepositoryRef,
        load_source: ReviewerLoadSource | None = None,
    ) -> list[TeamMember]:
        """
        Select reviewers using rotation history and live reviewer load.

        Round-robin and least-busy record the chosen reviewer as the
        repository's last assignment.
        """
        candidates = self._candidates(members, pr, config)
        if not candidates:
            logger.warning(
                f"No reviewers available for {repository.full_name}#{pr.number} "
                "after excluding author"
            )
            return []

        strategy = self.resolve_strategy(config.auto_assign.assignment_strategy)
        context = AssignmentContext(repository=repository, load_source=load_source)

        if strategy.accepts_context(context):
            ordered = await strategy.select_reviewers_with_context(
                candidates, pr, config, context
            )
        else:
            ordered = strategy.select_reviewers(candidates, pr, config)

        selected = ordered[: config.auto_assign.reviewers_per_pr]
        logger.info(
            f"Selected reviewers for {repository.full_name}#{pr.number} "
            f"({strategy.name.value}): {[m.github for m in selected]}"
        )
        return selected


def default_strategies(
    persistence: AssignmentPersistence | None = None,
    rotation_store: RotationStore | None = None,
    rng: random.Random | None = None,
) -> list[AssignmentStrategy]:
    return [
        RoundRobinStrategy(persistence, rotation_store),
        RandomStrategy(rng),
        LeastBusyStrategy(persistence),
    ]


def create_assignment_engine(
    persistence: AssignmentPersistence | None = None,
    rotation_store: RotationStore | None = None,
    rng: random.Random | None = None,
) -> AssignmentEngine:
    """Build an engine with every built-in strategy registered."""
    return AssignmentEngine(default_strategies(persistence, rotation_store, rng))
