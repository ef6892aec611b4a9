from __future__ import annotations

import pytest

from core.source_keys import entity_ref_from_source_key, normalize_source_key


def test_usernames_are_lowercased() -> None:
    assert normalize_source_key("  @Some_Group ") == "@some_group"
    assert normalize_source_key("chat_id:-100123") == "chat_id:-100123"


def test_entity_refs() -> None:
    assert entity_ref_from_source_key("@Group") == "@group"
    assert entity_ref_from_source_key("chat_id:-100987654321") == -100987654321


@pytest.mark.parametrize("key", ["chat_id:abc", "group", "t.me/group"])
def test_invalid_keys_are_rejected(key: str) -> None:
    with pytest.raises(ValueError):
        entity_ref_from_source_key(key)
