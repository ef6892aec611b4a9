"""Core inbound event handling.

This module is integration-agnostic. It only relies on ports for storage and
posting, enabling other chat adapters without changes here.
"""

from __future__ import annotations

import logging
import re

from core.frequency import FrequencyGate, FrequencyValidationError
from core.markov import MarkovModel
from core.models import (
    ChannelJoined,
    ChannelLeft,
    DirectMessageCreated,
    InboundEvent,
    MessageCreated,
)
from core.ports import PosterPort, StorageError

LOGGER = logging.getLogger(__name__)

# "@name /freq 50" (a backslash works too, for clients that eat slash commands).
FREQ_COMMAND = re.compile(r"^\s*@(?:\w|[_-])+\s+(?:\\|/)freq\s+(\S+)\s*$")
# "@name join" / "@name leave" and nothing else. Replies to our own messages
# also count as mentions, so loose wording must never trigger a leave.
MEMBERSHIP_COMMAND = re.compile(r"^\s*@(?:\w|[_-])+\s+(?:\\|/)?(join|leave)\s*$", re.IGNORECASE)

JOINED_TEXT = "Joined :blob_pyon:"
FREQUENCY_READ_FAILED_TEXT = "Failed to read the reply frequency :Hyperblob:"
FREQUENCY_UPDATE_FAILED_TEXT = "Failed to update the reply frequency :Hyperblob:"


def frequency_confirmation(frequency: int) -> str:
    if frequency == 0:
        return "Replies turned off :blob_pyon:"
    if frequency == 100:
        return "Replying to every message now :blob_pyon:"
    return f"Reply frequency set to {frequency}% :blob_pyon:"


class EventProcessor:
    """Route inbound chat events to the frequency gate and the model."""

    def __init__(self, model: MarkovModel, gate: FrequencyGate, poster: PosterPort) -> None:
        self._model = model
        self._gate = gate
        self._poster = poster

    async def handle(self, event: InboundEvent) -> None:
        """Process one inbound event."""

        if isinstance(event, ChannelJoined):
            await self._poster.post(event.channel_id, JOINED_TEXT)
        elif isinstance(event, ChannelLeft):
            LOGGER.info("Left %s", event.channel_id)
        elif isinstance(event, DirectMessageCreated):
            if event.author_is_bot:
                return
            await self.reply(event.channel_id)
        elif isinstance(event, MessageCreated):
            if event.author_is_bot:
                return
            if event.is_mention:
                await self._handle_mention(event)
            else:
                await self._maybe_reply(event.channel_id)

    async def reply(self, channel_id: str) -> None:
        """Generate one message and post it; an empty model posts nothing."""

        text = self._model.generate()
        if not text:
            LOGGER.info("Model is empty, nothing to post to %s", channel_id)
            return
        await self._poster.post(channel_id, text)

    async def _handle_mention(self, event: MessageCreated) -> None:
        membership = MEMBERSHIP_COMMAND.match(event.text)
        if membership:
            if membership.group(1).lower() == "join":
                await self._poster.join(event.channel_id)
            else:
                await self._poster.leave(event.channel_id)
            return
        if await self._try_change_frequency(event):
            return
        await self._maybe_reply(event.channel_id)

    async def _maybe_reply(self, channel_id: str) -> None:
        try:
            should_reply = self._gate.should_reply(channel_id)
        except StorageError:
            LOGGER.exception("Failed to read frequency for %s", channel_id)
            await self._poster.post(channel_id, FREQUENCY_READ_FAILED_TEXT)
            return
        if should_reply:
            await self.reply(channel_id)

    async def _try_change_frequency(self, event: MessageCreated) -> bool:
        """Handle a ``/freq`` command; return False when the text is not one."""

        match = FREQ_COMMAND.match(event.text)
        if not match:
            return False

        try:
            frequency = self._gate.set_frequency(event.channel_id, match.group(1))
            reply = frequency_confirmation(frequency)
        except FrequencyValidationError as exc:
            reply = str(exc)
        except StorageError:
            LOGGER.exception("Failed to update frequency for %s", event.channel_id)
            reply = FREQUENCY_UPDATE_FAILED_TEXT

        await self._poster.post(event.channel_id, reply)
        return True
