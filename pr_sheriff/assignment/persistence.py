"""Durable last-assigned-reviewer history for rotating strategies."""

import logging
from collections.abc import Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from ..models import TeamMember
from ..storage.database import Database
from ..storage.tables import AssignmentHistory, utcnow

logger = logging.getLogger(__name__)


def history_id(repository_id: str, strategy: str) -> str:
    return f"{repository_id}/{strategy}"


class AssignmentPersistence:
    """
    Reads and writes the last reviewer assigned per (repository, strategy).

    Never raises for storage problems: a failed read behaves like "no
    history" and a failed write is dropped, so assignment keeps working
    without a database.
    """

    def __init__(self, database: Database | None) -> None:
        self.database = database

    @property
    def available(self) -> bool:
        return self.database is not None

    async def get_last_assigned_reviewer(self, repository_id: str, strategy: str) -> str | None:
        if self.database is None:
            return None

        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(AssignmentHistory.last_assigned_reviewer).where(
                        AssignmentHistory.id == history_id(repository_id, strategy)
                    )
                )
                reviewer = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error(
                f"Error getting last assigned reviewer for {repository_id} ({strategy}): {e}"
            )
            return None

        if reviewer is None:
            logger.debug(f"No assignment history for {repository_id} ({strategy})")
        return reviewer

    async def save_last_assigned_reviewer(
        self, repository_id: str, strategy: str, reviewer: str
    ) -> None:
        if self.database is None:
            return

        record_id = history_id(repository_id, strategy)
        try:
            async with self.database.session() as session:
                existing = await session.get(AssignmentHistory, record_id)
                now = utcnow()
                if existing is None:
                    session.add(
                        AssignmentHistory(
                            id=record_id,
                            repository_id=repository_id,
                            strategy=strategy,
                            last_assigned_reviewer=reviewer,
                            last_assigned_at=now,
                            updated_at=now,
                        )
                    )
                else:
                    existing.last_assigned_reviewer = reviewer
                    existing.last_assigned_at = now
                    existing.updated_at = now
            logger.debug(f"Saved last assigned reviewer {reviewer} for {record_id}")
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Error saving assignment history for {record_id}: {e}")

    async def get_last_assigned_index(
        self, repository_id: str, strategy: str, members: Sequence[TeamMember]
    ) -> int:
        """
        Position of the last assigned reviewer among ``members``.

        Returns -1 when there is no history or the stored reviewer is no
        longer a member (compared case-insensitively).
        """
        last_reviewer = await self.get_last_assigned_reviewer(repository_id, strategy)
        if not last_reviewer:
            return -1

        wanted = last_reviewer.lower()
        for index, member in enumerate(members):
            if member.github.lower() == wanted:
                return index

        logger.debug(
            f"Last reviewer {last_reviewer} is no longer in the team for "
            f"{repository_id}, restarting rotation"
        )
        return -1
