"""Telegram client factory for mockingbird.

The client is a user session, not a bot: only user accounts may search chat
history by sender, which corpus synchronization depends on.
"""

from __future__ import annotations

import logging
import os

from dotenv import load_dotenv
from telethon import TelegramClient


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    API_ID/API_HASH are read via python-dotenv to keep secrets out of the repo.
    The session name defaults to "mockingbird" (a local .session file).
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "mockingbird")

    # Without credentials client.start() would fall into an interactive login.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    logging.getLogger(__name__).info("Initializing Telegram client (session %s)", session_name)

    return TelegramClient(session_name, int(api_id), api_hash)
