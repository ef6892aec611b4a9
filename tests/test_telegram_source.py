from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from telethon.tl.types import Message, MessageService, MessageActionPinMessage, PeerChannel

from adapters.telegram_source import TelegramMessageSource, record_from_message
from core.ports import MalformedPayloadError

DATE = datetime(2024, 2, 1, 8, 30, tzinfo=timezone.utc)


class DummyClient:
    def __init__(self, result) -> None:
        self.result = result
        self.requests = []

    async def __call__(self, request):
        self.requests.append(request)
        return self.result


def _message(message_id: int, text: str = "hi") -> Message:
    return Message(id=message_id, peer_id=PeerChannel(123), date=DATE, message=text)


def test_record_uses_chat_scoped_id() -> None:
    record = record_from_message(_message(5, "hello :blob_pyon:"))

    assert record.id == "-100123:5"
    assert record.channel_id == "-100123"
    assert record.content == "hello :blob_pyon:"
    assert record.created_at == DATE


def test_record_requires_date() -> None:
    message = Message(id=5, peer_id=PeerChannel(123), date=None, message="x")
    with pytest.raises(MalformedPayloadError):
        record_from_message(message)


def test_fetch_page_maps_hits_and_total() -> None:
    client = DummyClient(SimpleNamespace(count=250, messages=[_message(9), _message(8)]))
    source = TelegramMessageSource(client, peer="chat", from_user="target", page_size=2)

    page = asyncio.run(source.fetch_page(100))

    assert page.total_hits == 250
    assert [record.id for record in page.records] == ["-100123:9", "-100123:8"]
    request = client.requests[0]
    assert request.add_offset == 100
    assert request.limit == 2
    assert request.from_id == "target"
    assert request.min_date is None
    assert request.max_date is None


def test_fetch_page_widens_date_bounds() -> None:
    client = DummyClient(SimpleNamespace(count=0, messages=[]))
    source = TelegramMessageSource(client, peer="chat", from_user="target")
    after = datetime(2024, 1, 1, tzinfo=timezone.utc)
    before = datetime(2024, 1, 2, tzinfo=timezone.utc)

    asyncio.run(source.fetch_page(0, after=after, before=before))

    request = client.requests[0]
    assert request.min_date == after - timedelta(seconds=1)
    assert request.max_date == before + timedelta(seconds=1)


def test_service_messages_are_skipped_but_counted() -> None:
    service = MessageService(
        id=7, peer_id=PeerChannel(123), date=DATE, action=MessageActionPinMessage()
    )
    client = DummyClient(SimpleNamespace(count=3, messages=[_message(9), service, _message(6)]))
    source = TelegramMessageSource(client, peer="chat", from_user="target")

    page = asyncio.run(source.fetch_page(0))

    assert len(page.records) == 2
    assert page.skipped == 1
    assert page.span == 3


def test_result_without_count_is_one_complete_page() -> None:
    client = DummyClient(SimpleNamespace(messages=[_message(2), _message(1)]))
    source = TelegramMessageSource(client, peer="chat", from_user="target")

    page = asyncio.run(source.fetch_page(0))

    assert page.total_hits == 2


def test_result_without_messages_is_malformed() -> None:
    source = TelegramMessageSource(DummyClient(SimpleNamespace(count=1)), "chat", "target")
    with pytest.raises(MalformedPayloadError):
        asyncio.run(source.fetch_page(0))
