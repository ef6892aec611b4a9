"""Telegram message source adapter.

Pages through one chat's history of the target user with the raw
``messages.search`` request, which reports the total hit count alongside each
page and accepts both date bounds.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from telethon import functions, types, utils
from telethon.extensions import markdown

from core.models import FetchPage, MessageRecord
from core.ports import MalformedPayloadError

LOGGER = logging.getLogger(__name__)

# Telegram dates have one-second resolution and the bounds are exclusive, so
# both are widened by a second; the synchronizer drops the overlap by id.
_DATE_SLACK = timedelta(seconds=1)


def record_from_message(message: types.Message) -> MessageRecord:
    """Build a MessageRecord from a raw Telegram message."""

    if message.id is None or message.peer_id is None or message.date is None:
        raise MalformedPayloadError(f"Search hit is missing id, peer or date: {message!r}")

    channel_id = str(utils.get_peer_id(message.peer_id))
    # Markdown keeps mention links, so they survive as entity-link segments.
    content = markdown.unparse(message.message or "", message.entities or [])
    return MessageRecord(
        id=f"{channel_id}:{message.id}",
        channel_id=channel_id,
        content=content,
        created_at=message.date,
    )


class TelegramMessageSource:
    """MessageSourcePort over one chat, filtered to one sender."""

    def __init__(self, client, peer, from_user, page_size: int = 100) -> None:
        self._client = client
        self._peer = peer
        self._from_user = from_user
        self._page_size = page_size

    async def fetch_page(
        self,
        offset: int,
        after: Optional[datetime] = None,
        before: Optional[datetime] = None,
    ) -> FetchPage:
        result = await self._client(
            functions.messages.SearchRequest(
                peer=self._peer,
                q="",
                filter=types.InputMessagesFilterEmpty(),
                min_date=after - _DATE_SLACK if after else None,
                max_date=before + _DATE_SLACK if before else None,
                offset_id=0,
                add_offset=offset,
                limit=self._page_size,
                max_id=0,
                min_id=0,
                hash=0,
                from_id=self._from_user,
            )
        )

        hits = getattr(result, "messages", None)
        if hits is None:
            raise MalformedPayloadError(f"Search result has no messages: {type(result).__name__}")

        # Service messages (joins, pins) count towards the total but carry no text.
        records = [record_from_message(hit) for hit in hits if isinstance(hit, types.Message)]

        # messages.Messages (no count) means the whole result fit in one response.
        total_hits = getattr(result, "count", None)
        if total_hits is None:
            total_hits = offset + len(hits)

        LOGGER.debug("Search page offset=%s: %s hits of %s", offset, len(hits), total_hits)
        return FetchPage(
            total_hits=int(total_hits),
            records=records,
            skipped=len(hits) - len(records),
        )
