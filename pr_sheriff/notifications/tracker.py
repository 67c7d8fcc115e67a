"""Idempotency tracking for outbound notifications."""

import logging
from enum import Enum
from typing import Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..storage.database import Database
from ..storage.tables import Notification, utcnow

logger = logging.getLogger(__name__)


class NotificationType(str, Enum):
    NEW_PR = "new_pr"
    REMINDER = "reminder"
    BLAME = "blame"


def build_notification_id(
    notification_type: NotificationType,
    delivery_id: str | None = None,
    logical_id: str | None = None,
    recipient: str | None = None,
) -> str | None:
    """
    Deterministic notification key.

    ``new_pr/{deliveryId}`` when a new-PR notification has a webhook
    delivery id, otherwise ``{type}/{logicalId}/{recipient}``. Returns
    None when neither form can be built.
    """
    notification_type = NotificationType(notification_type)
    if notification_type is NotificationType.NEW_PR and delivery_id:
        return f"{notification_type.value}/{delivery_id}"
    if logical_id and recipient:
        return f"{notification_type.value}/{logical_id}/{recipient}"
    return None


def _pr_numbers(metadata: dict[str, Any] | None) -> set[int]:
    if not metadata:
        return set()
    return {int(n) for n in metadata.get("prNumbers") or []}


def _same_pending_prs(
    recorded: dict[str, Any] | None, current: dict[str, Any] | None
) -> bool:
    recorded = recorded or {}
    current = current or {}
    # Records written before pullRequests existed only carry bare numbers
    if "pullRequests" in recorded and "pullRequests" in current:
        return set(recorded["pullRequests"] or []) == set(current["pullRequests"] or [])
    return _pr_numbers(recorded) == _pr_numbers(current)


class NotificationTracker:
    """
    Records sent notifications so each logical event is delivered once.

    Every storage problem degrades to "not sent": a duplicate message is
    preferable to a dropped one. Without a database nothing is tracked.
    """

    def __init__(self, database: Database | None) -> None:
        self.database = database

    def _notification_id(
        self,
        notification_type: NotificationType,
        delivery_id: str | None,
        logical_id: str | None,
        recipient: str | None,
    ) -> str | None:
        notification_id = build_notification_id(
            notification_type, delivery_id, logical_id, recipient
        )
        if notification_id is None:
            logger.warning(
                f"Insufficient info to track {NotificationType(notification_type).value} "
                f"notification (delivery_id={delivery_id}, logical_id={logical_id}, recipient={recipient})"
            )
        return notification_id

    async def was_sent(
        self,
        notification_type: NotificationType,
        delivery_id: str | None = None,
        logical_id: str | None = None,
        recipient: str | None = None,
    ) -> bool:
        if self.database is None:
            logger.debug("No database, notification tracking disabled (duplicates possible)")
            return False

        notification_id = self._notification_id(
            notification_type, delivery_id, logical_id, recipient
        )
        if notification_id is None:
            return False

        try:
            async with self.database.session() as session:
                return await session.get(Notification, notification_id) is not None
        except SQLAlchemyError as e:
            logger.error(f"Error checking notification {notification_id}: {e}")
            return False

    async def mark_as_sent(
        self,
        notification_type: NotificationType,
        delivery_id: str | None,
        logical_id: str | None,
        recipient: str,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        if self.database is None:
            return

        notification_id = self._notification_id(
            notification_type, delivery_id, logical_id, recipient
        )
        if notification_id is None:
            return

        try:
            async with self.database.session() as session:
                session.add(
                    Notification(
                        id=notification_id,
                        type=NotificationType(notification_type).value,
                        delivery_id=delivery_id,
                        logical_id=logical_id,
                        recipient=recipient,
                        meta=metadata,
                    )
                )
            logger.debug(f"Notification {notification_id} marked as sent")
        except SQLAlchemyError as e:
            logger.error(f"Error marking notification {notification_id} as sent: {e}")

    async def check_and_mark(
        self,
        notification_type: NotificationType,
        delivery_id: str | None,
        logical_id: str | None,
        recipient: str,
        metadata: dict[str, Any] | None = None,
    ) -> bool:
        """
        Check whether a notification was sent and record it if not.

        Returns True when the caller must not send. For reminders an
        existing record whose pending pull requests (``pullRequests``, as
        ``owner/repo#number``) differ from ``metadata`` is updated in place
        and False is returned, so the changed reminder goes out again.
        """
        if self.database is None:
            return False

        notification_type = NotificationType(notification_type)
        notification_id = self._notification_id(
            notification_type, delivery_id, logical_id, recipient
        )
        if notification_id is None:
            return False

        try:
            async with self.database.session() as session:
                existing = await session.get(Notification, notification_id)

                if existing is None:
                    session.add(
                        Notification(
                            id=notification_id,
                            type=notification_type.value,
                            delivery_id=delivery_id,
                            logical_id=logical_id,
                            recipient=recipient,
                            meta=metadata,
                        )
                    )
                    return False

                if notification_type is not NotificationType.REMINDER:
                    return True

                if _same_pending_prs(existing.meta, metadata):
                    return True

                logger.info(f"Pending PRs changed for {notification_id}, resending reminder")
                existing.meta = metadata
                existing.sent_at = utcnow()
                return False
        except IntegrityError:
            # Another process recorded the same notification first
            logger.debug(f"Notification {notification_id} recorded concurrently")
            return True
        except SQLAlchemyError as e:
            logger.error(f"Error tracking notification {notification_id}: {e}")
            return False

    async def unmark(
        self,
        notification_type: NotificationType,
        delivery_id: str | None,
        logical_id: str | None,
        recipient: str,
    ) -> None:
        """
        Forget a recorded notification so the next run sends it again.

        Used when delivery fails after :meth:`check_and_mark` recorded it.
        """
        if self.database is None:
            return

        notification_id = self._notification_id(
            notification_type, delivery_id, logical_id, recipient
        )
        if notification_id is None:
            return

        try:
            async with self.database.session() as session:
                existing = await session.get(Notification, notification_id)
                if existing is not None:
                    await session.delete(existing)
            logger.info(f"Notification {notification_id} unmarked after failed delivery")
        except SQLAlchemyError as e:
            logger.error(f"Error unmarking notification {notification_id}: {e}")
