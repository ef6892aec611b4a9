"""Telegram-to-core event mapping adapter.

This keeps Telethon-specific details out of the core event processor.
"""

from __future__ import annotations

from typing import Optional

from core.models import (
    ChannelJoined,
    ChannelLeft,
    DirectMessageCreated,
    InboundEvent,
    MessageCreated,
)


async def event_from_new_message(event) -> InboundEvent:
    """Build a core message event from a Telethon NewMessage event."""

    message = event.message
    sender = await event.get_sender()
    author_is_bot = bool(getattr(sender, "bot", False))
    channel_id = str(event.chat_id)
    author_id = str(event.sender_id)
    text = message.raw_text or ""

    if event.is_private:
        return DirectMessageCreated(
            channel_id=channel_id,
            author_id=author_id,
            author_is_bot=author_is_bot,
            text=text,
        )

    # Telegram sets "mentioned" for @mentions and for replies to our messages.
    return MessageCreated(
        channel_id=channel_id,
        author_id=author_id,
        author_is_bot=author_is_bot,
        text=text,
        is_mention=bool(getattr(message, "mentioned", False)),
    )


def event_from_chat_action(event, my_user_id: int) -> Optional[InboundEvent]:
    """Map a Telethon ChatAction event about our own account, if it is one."""

    user_ids = getattr(event, "user_ids", None) or []
    if my_user_id not in user_ids:
        return None

    channel_id = str(event.chat_id)
    if getattr(event, "user_joined", False) or getattr(event, "user_added", False):
        return ChannelJoined(channel_id=channel_id)
    if getattr(event, "user_left", False) or getattr(event, "user_kicked", False):
        return ChannelLeft(channel_id=channel_id)
    return None
