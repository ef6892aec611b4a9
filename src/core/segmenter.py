"""Split raw chat text into ordered typed spans (core domain).

Segmentation runs ordered matchers: entity links first over the whole text,
then stamps over whatever plain text is left. The concatenation of the
resulting segments is always the original text, and no segment is empty.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Iterable, List

from core.models import EntityLink, PlainText, Segment, Stamp

# Markdown links to Telegram entities as produced by Telethon's message.text,
# plus bare @username mentions.
ENTITY_LINK_PATTERN = re.compile(
    r"\[[^\[\]\n]+\]\((?:tg://[^()\s]+|https?://t\.me/[^()\s]+)\)"
    r"|(?<![\w@:])@[A-Za-z]\w{3,31}"
)

STAMP_PATTERN = re.compile(r":@?(?:\w|[-.])+:")


@dataclass(frozen=True)
class Matcher:
    """One segmentation stage: a pattern and the segment type it produces."""

    pattern: re.Pattern
    build: Callable[[str], Segment]

    def split(self, text: str) -> List[Segment]:
        """Split plain text into matched and unmatched pieces, in order."""

        pieces: List[Segment] = []
        position = 0
        for match in self.pattern.finditer(text):
            start, end = match.span()
            if start == end:
                continue
            if start > position:
                pieces.append(PlainText(text[position:start]))
            pieces.append(self.build(match.group(0)))
            position = end
        if position < len(text):
            pieces.append(PlainText(text[position:]))
        return pieces


DEFAULT_MATCHERS = (
    Matcher(ENTITY_LINK_PATTERN, EntityLink),
    Matcher(STAMP_PATTERN, Stamp),
)


def _coalesce(segments: Iterable[Segment]) -> List[Segment]:
    result: List[Segment] = []
    for segment in segments:
        if not segment.text:
            continue
        if isinstance(segment, PlainText) and result and isinstance(result[-1], PlainText):
            result[-1] = PlainText(result[-1].text + segment.text)
            continue
        result.append(segment)
    return result


def segment(text: str, matchers: Iterable[Matcher] = DEFAULT_MATCHERS) -> List[Segment]:
    """Return the ordered segments of ``text``.

    Later matchers only see text that earlier matchers left unclaimed. An empty
    input yields an empty list.
    """

    segments: List[Segment] = [PlainText(text)] if text else []
    for matcher in matchers:
        staged: List[Segment] = []
        for item in segments:
            if isinstance(item, PlainText):
                staged.extend(matcher.split(item.text))
            else:
                staged.append(item)
        segments = staged
    return _coalesce(segments)
