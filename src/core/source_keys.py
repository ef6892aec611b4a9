"""Helpers for working with mockingbird source keys.

A source key names a chat in config.json: ``@username`` for public chats,
``chat_id:<id>`` for everything else.
"""

from __future__ import annotations

from typing import Union

CHAT_ID_PREFIX = "chat_id:"


def normalize_source_key(source_key: str) -> str:
    """Lowercase usernames; chat_id keys are returned stripped."""

    source_key = source_key.strip()
    if source_key.startswith("@"):
        return source_key.lower()
    return source_key


def entity_ref_from_source_key(source_key: str) -> Union[str, int]:
    """Return what Telethon's ``get_entity`` expects for a source key."""

    source_key = normalize_source_key(source_key)
    if source_key.startswith("@"):
        return source_key
    if source_key.startswith(CHAT_ID_PREFIX):
        raw_chat_id = source_key[len(CHAT_ID_PREFIX):]
        try:
            return int(raw_chat_id)
        except ValueError:
            raise ValueError(f"Invalid chat id in source key: {source_key}") from None
    raise ValueError(f"Unsupported source key: {source_key}")
