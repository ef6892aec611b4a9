from __future__ import annotations

from core.models import EntityLink, PlainText, Stamp
from core.segmenter import segment
from core.tokenizer import OPAQUE_SPACE, TokenizerAdapter


def _split_words(text: str) -> list[str]:
    return text.split()


def test_training_string_keeps_stamp_whole() -> None:
    adapter = TokenizerAdapter()
    assert adapter.training_string("Hello :blob_pyon: world") == "Hello :blob_pyon: world"


def test_plain_text_goes_through_tokenizer() -> None:
    calls: list[str] = []

    def tokenize(text: str) -> list[str]:
        calls.append(text)
        return text.split()

    adapter = TokenizerAdapter(tokenize=tokenize)
    flattened = adapter.flatten([PlainText("a b "), Stamp(":s:"), PlainText(" c")])

    assert flattened == "a b :s: c"
    assert calls == ["a b ", " c"]


def test_stamp_and_link_are_never_tokenized() -> None:
    def tokenize(text: str) -> list[str]:
        # Splits every character, which would shred a stamp or a link.
        return list(text)

    adapter = TokenizerAdapter(tokenize=tokenize)
    tokens = adapter.tokens(segment("x:ok:[A B](tg://user?id=7)"))

    assert tokens == ["x", ":ok:", f"[A{OPAQUE_SPACE}B](tg://user?id=7)"]


def test_whitespace_tokens_are_dropped() -> None:
    adapter = TokenizerAdapter(tokenize=lambda text: ["", " ", "word", "\n"])
    assert adapter.flatten([PlainText("ignored")]) == "word"


def test_default_blocklist() -> None:
    adapter = TokenizerAdapter(tokenize=_split_words)
    assert adapter.is_blocked(":awoo:")
    assert adapter.is_blocked("https://example.com/page")
    assert adapter.is_blocked("")
    assert adapter.is_blocked("[preview](https://example.com/a)")
    assert adapter.is_blocked("www")
    assert not adapter.is_blocked("look at https://example.com")
    assert not adapter.is_blocked(":awoo: hello")


def test_blocked_message_has_no_training_string() -> None:
    adapter = TokenizerAdapter(tokenize=_split_words)
    assert adapter.training_string(":awoo:") is None


def test_blocklist_is_checked_on_raw_text() -> None:
    adapter = TokenizerAdapter(blocklist=[r"^secret"], tokenize=_split_words)
    assert adapter.training_string("secret :x: plans") is None
    assert adapter.training_string("no secret here") == "no secret here"


def test_link_segment_is_one_token() -> None:
    adapter = TokenizerAdapter(blocklist=[], tokenize=_split_words)
    assert adapter.flatten([EntityLink("@someone")]) == "@someone"
