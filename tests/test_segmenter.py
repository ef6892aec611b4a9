from __future__ import annotations

from core.models import EntityLink, PlainText, Stamp
from core.segmenter import segment


def _joined(segments) -> str:
    return "".join(item.text for item in segments)


def test_stamp_between_words() -> None:
    assert segment("Hello :blob_pyon: world") == [
        PlainText("Hello "),
        Stamp(":blob_pyon:"),
        PlainText(" world"),
    ]


def test_no_match_is_single_plain_text() -> None:
    assert segment("just some words") == [PlainText("just some words")]


def test_whole_input_stamp_has_no_empty_text() -> None:
    assert segment(":awoo:") == [Stamp(":awoo:")]


def test_empty_input_has_no_segments() -> None:
    assert segment("") == []


def test_entity_link_claims_text_before_stamps() -> None:
    text = "ping [Al :x: ice](tg://user?id=42) now"
    assert segment(text) == [
        PlainText("ping "),
        EntityLink("[Al :x: ice](tg://user?id=42)"),
        PlainText(" now"),
    ]


def test_mention_and_stamp_are_separate_segments() -> None:
    result = segment("@someone :wave: hi")
    assert result == [EntityLink("@someone"), PlainText(" "), Stamp(":wave:"), PlainText(" hi")]


def test_adjacent_stamps_without_text_between() -> None:
    assert segment(":a::b:") == [Stamp(":a:"), Stamp(":b:")]


def test_email_is_not_a_mention() -> None:
    assert segment("mail me@example.com") == [PlainText("mail me@example.com")]


def test_coverage_and_no_empty_segments() -> None:
    samples = [
        "",
        "plain",
        ":only:",
        "a:b:c",
        "::",
        ":@blob-x.y: tail",
        "head [n](https://t.me/chan) :s: @user_name\nnext line",
        "日本語のテキスト:blob_pyon:です",
        "[not a link](https://example.com) :x",
    ]
    for text in samples:
        result = segment(text)
        assert _joined(result) == text
        assert all(item.text for item in result)
        for left, right in zip(result, result[1:]):
            assert not (isinstance(left, PlainText) and isinstance(right, PlainText))


def test_segmentation_is_deterministic() -> None:
    text = "x :a: [b](tg://user?id=1) y"
    assert segment(text) == segment(text)


def test_user_stamp_is_not_split_by_mention() -> None:
    assert segment(":@blob-x.y: tail") == [Stamp(":@blob-x.y:"), PlainText(" tail")]
