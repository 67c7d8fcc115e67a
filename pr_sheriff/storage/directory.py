"""Directory of known installations and repositories."""

import logging

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from ..models import RepositoryRef
from .database import Database
from .tables import Installation, Repository

logger = logging.getLogger(__name__)


class RepositoryDirectory:
    """
    Installations and repositories learned from webhooks.

    The batch jobs read it to avoid enumerating every repository through
    the GitHub API. Without a database it is always empty, and storage
    errors are logged and treated as "nothing known".
    """

    def __init__(self, database: Database | None) -> None:
        self.database = database

    async def list_installations(self) -> list[str]:
        if self.database is None:
            return []
        try:
            async with self.database.session() as session:
                result = await session.execute(select(Installation.id).order_by(Installation.id))
                return [row[0] for row in result.all()]
        except SQLAlchemyError as e:
            logger.warning(f"Failed to load installations from database: {e}")
            return []

    async def list_repositories(self, installation_id: str) -> list[RepositoryRef]:
        if self.database is None:
            return []
        try:
            async with self.database.session() as session:
                result = await session.execute(
                    select(Repository)
                    .where(Repository.installation_id == installation_id)
                    .order_by(Repository.full_name)
                )
                return [
                    RepositoryRef(installation_id=row.installation_id, owner=row.owner, name=row.name)
                    for row in result.scalars().all()
                ]
        except SQLAlchemyError as e:
            logger.warning(
                f"Failed to load repositories for installation {installation_id}: {e}"
            )
            return []

    async def upsert_installation(
        self, installation_id: str, account_login: str = "", account_type: str = "Organization"
    ) -> None:
        if self.database is None:
            return
        try:
            async with self.database.session() as session:
                existing = await session.get(Installation, installation_id)
                if existing is None:
                    session.add(
                        Installation(
                            id=installation_id,
                            account_login=account_login,
                            account_type=account_type,
                        )
                    )
                else:
                    existing.account_login = account_login or existing.account_login
                    existing.account_type = account_type or existing.account_type
        except SQLAlchemyError as e:
            logger.error(f"Failed to save installation {installation_id}: {e}")

    async def remove_installation(self, installation_id: str) -> None:
        if self.database is None:
            return
        try:
            async with self.database.session() as session:
                await session.execute(
                    delete(Repository).where(Repository.installation_id == installation_id)
                )
                await session.execute(
                    delete(Installation).where(Installation.id == installation_id)
                )
            logger.info(f"Removed installation {installation_id}")
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove installation {installation_id}: {e}")

    async def upsert_repository(self, repo: RepositoryRef, default_branch: str = "main") -> None:
        if self.database is None:
            return
        try:
            async with self.database.session() as session:
                if await session.get(Installation, repo.installation_id) is None:
                    session.add(Installation(id=repo.installation_id, account_login=repo.owner))
                    await session.flush()

                existing = await session.get(Repository, repo.repository_id)
                if existing is None:
                    session.add(
                        Repository(
                            id=repo.repository_id,
                            installation_id=repo.installation_id,
                            owner=repo.owner,
                            name=repo.name,
                            full_name=repo.full_name,
                            default_branch=default_branch,
                        )
                    )
                else:
                    existing.default_branch = default_branch
        except SQLAlchemyError as e:
            logger.error(f"Failed to save repository {repo.full_name}: {e}")

    async def remove_repository(self, repo: RepositoryRef) -> None:
        if self.database is None:
            return
        try:
            async with self.database.session() as session:
                await session.execute(delete(Repository).where(Repository.id == repo.repository_id))
        except SQLAlchemyError as e:
            logger.error(f"Failed to remove repository {repo.full_name}: {e}")
