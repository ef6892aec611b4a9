"""Turn raw messages into training strings for the Markov model.

Plain text goes through janome's morphological tokenizer; stamps and entity
links are kept as single opaque tokens so the tokenizer never splits them.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import Callable, Iterable, List, Optional

from janome.tokenizer import Tokenizer

from core.models import PlainText, Segment
from core.segmenter import segment

LOGGER = logging.getLogger(__name__)

# Messages matching any of these (on the raw text) are never trained on:
# - empty, a lone :awoo: stamp, or a bare URL
# - a bare Markdown link embed
# - laugh filler only ("www", "草")
DEFAULT_BLOCKLIST = (
    r"^(?::awoo:|(?:https?:)//\S+\n*)?$",
    r"^\s*\[[^\]\n]*\]\(https?://\S+\)\s*$",
    r"^\s*[wｗ草]+\s*$",
)

OPAQUE_SPACE = "\u00a0"


class TokenizerAdapter:
    """Blocklist filtering, segmentation and tokenization for one message."""

    def __init__(
        self,
        blocklist: Iterable[str] = DEFAULT_BLOCKLIST,
        tokenize: Optional[Callable[[str], Iterable[str]]] = None,
    ) -> None:
        self._blocklist = [re.compile(pattern) for pattern in blocklist]
        self._tokenize = tokenize
        self._init_lock = threading.Lock()

    def _word_tokenizer(self) -> Callable[[str], Iterable[str]]:
        # Loading janome's dictionary takes a while, so do it on first use.
        with self._init_lock:
            if self._tokenize is None:
                LOGGER.debug("Loading janome dictionary")
                self._tokenize = Tokenizer(wakati=True).tokenize
            return self._tokenize

    def is_blocked(self, raw_text: str) -> bool:
        return any(pattern.search(raw_text) for pattern in self._blocklist)

    def tokens(self, segments: Iterable[Segment]) -> List[str]:
        tokenize = self._word_tokenizer()
        result: List[str] = []
        for item in segments:
            if isinstance(item, PlainText):
                for token in tokenize(item.text):
                    token = token.strip()
                    if token:
                        result.append(token)
            else:
                # Link labels may contain spaces; keep the token whole after joining.
                result.append(item.text.replace(" ", OPAQUE_SPACE))
        return result

    def flatten(self, segments: Iterable[Segment]) -> str:
        """Space-join every token of every segment in order."""

        return " ".join(self.tokens(segments))

    def training_string(self, raw_text: str) -> Optional[str]:
        """Return the training string for a message, or None when excluded."""

        if self.is_blocked(raw_text):
            return None
        flattened = self.flatten(segment(raw_text))
        return flattened or None
