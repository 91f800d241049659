"""
Unit tests for EffectDispatcher.

WHY: Side effects are best-effort. One failing notification must not
stop the websocket push that follows it, and nothing may raise into the
code that already committed the state change.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from arsenal.models.notification import NotificationType
from arsenal.models.user import UserRole
from arsenal.services.dispatcher import EffectDispatcher
from arsenal.services.escalation import NotifyUsers, PublishEvent


def notify_effect(**overrides) -> NotifyUsers:
    values = dict(
        notification_type=NotificationType.TICKET_CREATED,
        subject="Ticket created: TKT-202603-00001",
        body="Battery bank below 20% (priority CRITICAL)",
        roles=[UserRole.OPS],
        ticket_id=1,
    )
    values.update(overrides)
    return NotifyUsers(**values)


@pytest.fixture
def notifier():
    service = MagicMock()
    service.notify = AsyncMock(return_value=[])
    return service


@pytest.fixture
def bus():
    manager = MagicMock()
    manager.publish = AsyncMock(return_value=1)
    return manager


class TestDispatch:
    @pytest.mark.asyncio
    async def test_runs_effects_in_order(self, notifier, bus):
        calls = []
        notifier.notify.side_effect = lambda **kw: calls.append(("notify", kw["subject"]))
        bus.publish.side_effect = lambda topic, event, data: calls.append(("publish", event))
        dispatcher = EffectDispatcher(MagicMock(), notification_service=notifier, bus=bus)

        failures = await dispatcher.dispatch(
            [
                notify_effect(),
                PublishEvent("tickets", "ticket:new", {"id": 1}),
            ]
        )

        assert failures == 0
        assert calls == [
            ("notify", "Ticket created: TKT-202603-00001"),
            ("publish", "ticket:new"),
        ]

    @pytest.mark.asyncio
    async def test_passes_notification_fields(self, notifier, bus):
        dispatcher = EffectDispatcher(MagicMock(), notification_service=notifier, bus=bus)

        await dispatcher.dispatch([notify_effect(user_ids=[7], alert_id=3, context={"kind": "ticket"})])

        kwargs = notifier.notify.await_args.kwargs
        assert kwargs["notification_type"] == NotificationType.TICKET_CREATED
        assert kwargs["user_ids"] == [7]
        assert kwargs["roles"] == [UserRole.OPS]
        assert kwargs["alert_id"] == 3
        assert kwargs["ticket_id"] == 1
        assert kwargs["context"] == {"kind": "ticket"}

    @pytest.mark.asyncio
    async def test_failure_is_isolated_and_counted(self, notifier, bus, caplog):
        notifier.notify.side_effect = RuntimeError("smtp down")
        dispatcher = EffectDispatcher(MagicMock(), notification_service=notifier, bus=bus)

        failures = await dispatcher.dispatch(
            [
                notify_effect(),
                PublishEvent("tickets", "ticket:new", {"id": 1}),
            ]
        )

        assert failures == 1
        bus.publish.assert_awaited_once_with("tickets", "ticket:new", {"id": 1})
        assert "smtp down" in caplog.text

    @pytest.mark.asyncio
    async def test_unknown_effect_counts_as_failure(self, notifier, bus):
        dispatcher = EffectDispatcher(MagicMock(), notification_service=notifier, bus=bus)

        assert await dispatcher.dispatch([object()]) == 1

    @pytest.mark.asyncio
    async def test_empty(self, notifier, bus):
        dispatcher = EffectDispatcher(MagicMock(), notification_service=notifier, bus=bus)

        assert await dispatcher.dispatch([]) == 0
        notifier.notify.assert_not_awaited()
        bus.publish.assert_not_awaited()
