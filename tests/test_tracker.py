"""Tests for notification idempotency tracking."""

from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from pr_sheriff.notifications.tracker import (
    NotificationTracker,
    NotificationType,
    build_notification_id,
)
from pr_sheriff.storage.tables import Notification


class TestBuildNotificationId:
    """Tests for deterministic notification keys."""

    def test_new_pr_uses_delivery_id(self) -> None:
        notification_id = build_notification_id(
            NotificationType.NEW_PR, "delivery-1", "acme/api#1", "C1"
        )
        assert notification_id == "new_pr/delivery-1"

    def test_new_pr_without_delivery_id(self) -> None:
        notification_id = build_notification_id(NotificationType.NEW_PR, None, "acme/api#1", "C1")
        assert notification_id == "new_pr/acme/api#1/C1"

    def test_reminder_ignores_delivery_id(self) -> None:
        notification_id = build_notification_id(
            NotificationType.REMINDER, "delivery-1", "reviewer/bob", "U_BOB"
        )
        assert notification_id == "reminder/reviewer/bob/U_BOB"

    def test_insufficient_info(self) -> None:
        assert build_notification_id(NotificationType.BLAME, None, "acme/api", None) is None
        assert build_notification_id(NotificationType.REMINDER) is None


class TestNotificationTracker:
    """Tests for was_sent / mark_as_sent / check_and_mark."""

    @pytest.mark.asyncio
    async def test_new_pr_is_sent_once(self, database) -> None:
        tracker = NotificationTracker(database)

        first = await tracker.check_and_mark(NotificationType.NEW_PR, "d-1", "acme/api#1", "C1")
        second = await tracker.check_and_mark(NotificationType.NEW_PR, "d-1", "acme/api#1", "C1")

        assert first is False
        assert second is True

    @pytest.mark.asyncio
    async def test_was_sent_and_mark_as_sent(self, database) -> None:
        tracker = NotificationTracker(database)

        assert await tracker.was_sent(NotificationType.BLAME, None, "acme/api/blame", "C1") is False
        await tracker.mark_as_sent(
            NotificationType.BLAME, None, "acme/api/blame", "C1", {"prNumbers": [1]}
        )
        assert await tracker.was_sent(NotificationType.BLAME, None, "acme/api/blame", "C1") is True

    @pytest.mark.asyncio
    async def test_reminder_resent_when_pr_set_changes(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.REMINDER, None, "reviewer/bob", "U_BOB")

        first = await tracker.check_and_mark(*args, {"prNumbers": [1, 2]})
        second = await tracker.check_and_mark(*args, {"prNumbers": [1, 3]})

        assert (first, second) == (False, False)

        async with database.session() as session:
            record = await session.get(Notification, "reminder/reviewer/bob/U_BOB")
            assert record.meta == {"prNumbers": [1, 3]}

    @pytest.mark.asyncio
    async def test_reminder_not_resent_when_pr_set_unchanged(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.REMINDER, None, "reviewer/bob", "U_BOB")

        await tracker.check_and_mark(*args, {"prNumbers": [1, 2]})
        again = await tracker.check_and_mark(*args, {"prNumbers": [2, 1]})

        assert again is True

    @pytest.mark.asyncio
    async def test_blame_not_resent_when_content_changes(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.BLAME, None, "acme/api/blame/2024-06-10", "C1")

        await tracker.check_and_mark(*args, {"prNumbers": [1]})
        again = await tracker.check_and_mark(*args, {"prNumbers": [1, 2]})

        assert again is True

    @pytest.mark.asyncio
    async def test_insufficient_info_allows_send(self, database) -> None:
        tracker = NotificationTracker(database)

        assert await tracker.check_and_mark(NotificationType.BLAME, None, None, "C1") is False
        assert await tracker.check_and_mark(NotificationType.BLAME, None, None, "C1") is False

    @pytest.mark.asyncio
    async def test_without_database_everything_is_sendable(self) -> None:
        tracker = NotificationTracker(None)

        assert await tracker.check_and_mark(NotificationType.NEW_PR, "d-1", None, "C1") is False
        assert await tracker.check_and_mark(NotificationType.NEW_PR, "d-1", None, "C1") is False
        assert await tracker.was_sent(NotificationType.NEW_PR, "d-1") is False

    @pytest.mark.asyncio
    async def test_storage_errors_allow_send(self) -> None:
        database = MagicMock()
        database.session.side_effect = OperationalError("SELECT", {}, Exception("locked"))
        tracker = NotificationTracker(database)

        assert await tracker.check_and_mark(NotificationType.NEW_PR, "d-1", None, "C1") is False
        assert await tracker.was_sent(NotificationType.NEW_PR, "d-1") is False
        await tracker.mark_as_sent(NotificationType.NEW_PR, "d-1", None, "C1")
        await tracker.unmark(NotificationType.NEW_PR, "d-1", None, "C1")

    @pytest.mark.asyncio
    async def test_reminder_resent_when_same_number_moves_repository(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.REMINDER, None, "reviewer/bob", "U_BOB")

        await tracker.check_and_mark(*args, {"prNumbers": [1], "pullRequests": ["acme/api#1"]})
        again = await tracker.check_and_mark(
            *args, {"prNumbers": [1], "pullRequests": ["acme/web#1"]}
        )

        assert again is False

    @pytest.mark.asyncio
    async def test_reminder_record_without_repositories_compares_numbers(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.REMINDER, None, "reviewer/bob", "U_BOB")

        await tracker.check_and_mark(*args, {"prNumbers": [1]})
        again = await tracker.check_and_mark(
            *args, {"prNumbers": [1], "pullRequests": ["acme/api#1"]}
        )

        assert again is True


class TestUnmark:
    """Tests for forgetting a notification after a failed delivery."""

    @pytest.mark.asyncio
    async def test_unmark_allows_resend(self, database) -> None:
        tracker = NotificationTracker(database)
        args = (NotificationType.BLAME, None, "acme/api/blame/2024-06-10", "C1")

        assert await tracker.check_and_mark(*args, {"prNumbers": [1]}) is False
        await tracker.unmark(*args)

        assert await tracker.was_sent(*args) is False
        assert await tracker.check_and_mark(*args, {"prNumbers": [1]}) is False
        assert await tracker.check_and_mark(*args, {"prNumbers": [1]}) is True

    @pytest.mark.asyncio
    async def test_unmark_unknown_notification_is_noop(self, database) -> None:
        tracker = NotificationTracker(database)

        await tracker.unmark(NotificationType.REMINDER, None, "reviewer/bob", "U_BOB")

        assert await tracker.was_sent(NotificationType.REMINDER, None, "reviewer/bob", "U_BOB") is False

    @pytest.mark.asyncio
    async def test_unmark_without_database(self) -> None:
        tracker = NotificationTracker(None)
        await tracker.unmark(NotificationType.NEW_PR, "d-1", None, "C1")
