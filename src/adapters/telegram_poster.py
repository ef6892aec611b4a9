"""Telegram posting adapter.

Sends generated messages through the user client. Posting is fire-and-forget:
rate-limited posts are dropped and Telegram errors are logged, never raised
into the event handler or the scheduler.
"""

from __future__ import annotations

import logging

from telethon import errors, functions

from core.rate_limit import PostRateLimiter

LOGGER = logging.getLogger(__name__)


class TelegramPoster:
    """PosterPort implementation on top of a Telethon client."""

    def __init__(self, client, limiter: PostRateLimiter) -> None:
        self._client = client
        self._limiter = limiter

    async def post(self, channel_id: str, text: str) -> None:
        if not self._limiter.allow():
            LOGGER.warning("Post rate limit reached, dropping message for %s", channel_id)
            return
        try:
            await self._client.send_message(int(channel_id), text, parse_mode="md", link_preview=False)
        except (errors.RPCError, ConnectionError, ValueError):
            LOGGER.exception("Failed to post message to %s", channel_id)

    async def join(self, channel_id: str) -> None:
        try:
            entity = await self._client.get_input_entity(int(channel_id))
            await self._client(functions.channels.JoinChannelRequest(entity))
        except (errors.RPCError, ConnectionError, ValueError, TypeError):
            # TypeError: basic groups are not channels and cannot be joined this way.
            LOGGER.exception("Failed to join %s", channel_id)
            return
        LOGGER.info("Joined %s", channel_id)

    async def leave(self, channel_id: str) -> None:
        try:
            await self._client.delete_dialog(int(channel_id))
        except (errors.RPCError, ConnectionError, ValueError):
            LOGGER.exception("Failed to leave %s", channel_id)
            return
        LOGGER.info("Left %s", channel_id)
