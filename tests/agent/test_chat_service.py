"""Tests for the chat service facade."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.htmbot.agent.chat_service import PAGE_MESSAGE_LIMIT, ChatService
from src.htmbot.agent.domain.entities import DeltaEvent, user_message
from src.htmbot.agent.domain.exceptions import QueueFullError, SessionNotFoundError, SubscriptionClosed
from src.htmbot.agent.domain.ports import IPubSub, ISubscription
from src.htmbot.agent.memory import InMemoryChatRepository
from src.htmbot.agent.pubsub import ChannelPubSub


@pytest.fixture
def repo():
    return InMemoryChatRepository()


@pytest.fixture
def bus():
    return ChannelPubSub()


@pytest.fixture
def enqueuer():
    enqueuer = MagicMock()
    enqueuer.enqueue = AsyncMock()
    return enqueuer


@pytest.fixture
def service(repo, bus, enqueuer):
    return ChatService(repo, bus, enqueuer)


class TestSessions:
    @pytest.mark.asyncio
    async def test_create_and_list(self, service):
        session = await service.create_chat("  Support  ")

        assert session.name == "Support"
        assert [s.id for s in await service.list_sessions()] == [session.id]
        assert await service.get_session_name(session.id) == "Support"

    @pytest.mark.asyncio
    async def test_blank_name(self, service):
        with pytest.raises(ValueError):
            await service.create_chat("   ")

    @pytest.mark.asyncio
    async def test_delete(self, service):
        session = await service.create_chat("Old")

        assert await service.delete_chat(session.id) is True
        assert await service.delete_chat(session.id) is False
        with pytest.raises(SessionNotFoundError):
            await service.get_session_name(session.id)


class TestChatPage:
    @pytest.mark.asyncio
    async def test_page_data(self, service, repo):
        session = await service.create_chat("Support")
        await repo.save_messages(session.id, user_message("hello"))

        page = await service.get_chat_page_data(session.id)

        assert page.session_id == session.id
        assert page.name == "Support"
        assert page.messages == [user_message("hello")]

    @pytest.mark.asyncio
    async def test_page_is_limited_to_most_recent(self, service, repo):
        session = await service.create_chat("Busy")
        await repo.save_messages(
            session.id, *[user_message(f"m{i}") for i in range(PAGE_MESSAGE_LIMIT + 5)]
        )

        page = await service.get_chat_page_data(session.id)

        assert len(page.messages) == PAGE_MESSAGE_LIMIT
        assert page.messages[0] == user_message("m5")
        assert page.messages[-1] == user_message(f"m{PAGE_MESSAGE_LIMIT + 4}")

    @pytest.mark.asyncio
    async def test_unknown_session(self, service):
        with pytest.raises(SessionNotFoundError):
            await service.get_chat_page_data("missing")


class TestSendMessage:
    @pytest.mark.asyncio
    async def test_enqueues(self, service, enqueuer):
        session = await service.create_chat("Support")

        await service.send_message(session.id, "Hello")

        enqueuer.enqueue.assert_awaited_once_with(session.id, "Hello")

    @pytest.mark.asyncio
    async def test_message_is_not_saved_by_the_service(self, service, repo):
        session = await service.create_chat("Support")

        await service.send_message(session.id, "Hello")

        assert await repo.get_messages(session.id) == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("text", ["", "   "])
    async def test_blank_text(self, service, enqueuer, text):
        session = await service.create_chat("Support")

        with pytest.raises(ValueError):
            await service.send_message(session.id, text)

        enqueuer.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_session(self, service, enqueuer):
        with pytest.raises(SessionNotFoundError):
            await service.send_message("missing", "Hello")

        enqueuer.enqueue.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_queue_full_propagates(self, service, enqueuer):
        session = await service.create_chat("Support")
        enqueuer.enqueue.side_effect = QueueFullError(1000)

        with pytest.raises(QueueFullError):
            await service.send_message(session.id, "Hello")


class TestSubscribe:
    @pytest.mark.asyncio
    async def test_receives_session_events(self, service, bus):
        session = await service.create_chat("Support")
        event = DeltaEvent(session_id=session.id, delta_id="d1", text="Hi")

        with service.subscribe_to_messages(session.id) as subscription:
            bus.publish(session.id, event)
            assert await subscription.get() == event

        assert bus.subscriber_count(session.id) == 0

    @pytest.mark.asyncio
    async def test_subscription_is_a_port_type(self, service):
        session = await service.create_chat("Support")

        with service.subscribe_to_messages(session.id) as subscription:
            assert isinstance(subscription, ISubscription)
            assert subscription.topic == session.id

    @pytest.mark.asyncio
    async def test_works_with_any_bus_implementation(self, repo, enqueuer):
        class ReplaySubscription(ISubscription):
            def __init__(self, topic, events):
                self.topic = topic
                self._events = list(events)
                self._closed = False

            @property
            def closed(self):
                return self._closed

            async def get(self):
                if not self._events:
                    raise SubscriptionClosed(self.topic)
                return self._events.pop(0)

            def cancel(self):
                self._closed = True

        class ReplayBus(IPubSub):
            def __init__(self, events):
                self.events = events
                self.opened = []

            def subscribe(self, topic):
                subscription = ReplaySubscription(topic, self.events)
                self.opened.append(subscription)
                return subscription

            def publish(self, topic, event):
                self.events.append(event)

        events = [DeltaEvent(session_id="s1", delta_id="d1", text="Hi")]
        bus = ReplayBus(events)
        service = ChatService(repo, bus, enqueuer)

        with service.subscribe_to_messages("s1") as subscription:
            received = [event async for event in subscription]

        assert received == events
        assert bus.opened[0].closed
