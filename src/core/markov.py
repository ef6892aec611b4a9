"""Order-N Markov chain and the lock-guarded model shared by all tasks.

Only ``MarkovModel`` is handed to other components; the chain itself is never
exposed, so every read and write goes through the model's lock.
"""

from __future__ import annotations

import json
import random
import threading
from typing import Dict, Iterable, List, Optional, Tuple

from core.tokenizer import OPAQUE_SPACE

# Pads the start state and marks the end of a message. Tokens are never empty.
BOUNDARY = ""

_NO_SPACE_BEFORE = set(",.!?;)]}'\"")
_NO_SPACE_AFTER = set("([{")


class MarkovChain:
    """Transition counts keyed by the previous ``order`` tokens."""

    def __init__(self, order: int = 3) -> None:
        if order < 1:
            raise ValueError(f"order must be positive, got {order}")
        self.order = order
        self._transitions: Dict[Tuple[str, ...], Dict[str, int]] = {}

    def is_empty(self) -> bool:
        return not self._transitions

    def feed_tokens(self, tokens: Iterable[str]) -> None:
        tokens = list(tokens)
        if not tokens:
            return
        padded = [BOUNDARY] * self.order + tokens + [BOUNDARY]
        for index in range(len(padded) - self.order):
            state = tuple(padded[index : index + self.order])
            following = padded[index + self.order]
            counts = self._transitions.setdefault(state, {})
            counts[following] = counts.get(following, 0) + 1

    def walk(self, max_tokens: int, rng: random.Random) -> List[str]:
        """Sample one message worth of tokens, starting from the begin state."""

        state = (BOUNDARY,) * self.order
        output: List[str] = []
        while len(output) < max_tokens:
            counts = self._transitions.get(state)
            if not counts:
                break
            token = rng.choices(list(counts), weights=list(counts.values()))[0]
            if token == BOUNDARY:
                break
            output.append(token)
            state = state[1:] + (token,)
        return output

    def to_dict(self) -> dict:
        return {
            "order": self.order,
            "transitions": [[list(state), counts] for state, counts in self._transitions.items()],
        }

    @classmethod
    def from_dict(cls, data: dict) -> "MarkovChain":
        chain = cls(int(data["order"]))
        for state, counts in data.get("transitions", []):
            if len(state) != chain.order:
                raise ValueError(f"State {state!r} does not match order {chain.order}")
            chain._transitions[tuple(state)] = {str(k): int(v) for k, v in counts.items()}
        return chain


def render_tokens(tokens: Iterable[str]) -> str:
    """Join generated tokens into display text.

    Japanese text is joined without separators; a space is kept only between
    two tokens whose touching characters are both ASCII.
    """

    parts: List[str] = []
    previous = ""
    for token in tokens:
        token = token.replace(OPAQUE_SPACE, " ")
        if previous:
            left, right = previous[-1], token[0]
            if (
                left.isascii()
                and right.isascii()
                and left not in _NO_SPACE_AFTER
                and right not in _NO_SPACE_BEFORE
            ):
                parts.append(" ")
        parts.append(token)
        previous = token
    return "".join(parts)


class MarkovModel:
    """Process-wide model; ``feed`` and ``generate`` are serialized by one lock."""

    def __init__(
        self,
        order: int = 3,
        max_tokens: int = 80,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._chain = MarkovChain(order)
        self._max_tokens = max_tokens
        self._rng = rng or random.Random()
        self._lock = threading.Lock()

    @property
    def order(self) -> int:
        return self._chain.order

    def is_empty(self) -> bool:
        with self._lock:
            return self._chain.is_empty()

    def feed(self, text: str) -> None:
        """Ingest one space-joined training string."""

        tokens = [token for token in text.split(" ") if token]
        with self._lock:
            self._chain.feed_tokens(tokens)

    def generate(self) -> str:
        """Return one generated message, or an empty string for an empty model."""

        with self._lock:
            tokens = self._chain.walk(self._max_tokens, self._rng)
        return render_tokens(tokens)

    def snapshot(self) -> str:
        with self._lock:
            return json.dumps(self._chain.to_dict(), ensure_ascii=False)

    def restore(self, payload: str) -> None:
        chain = MarkovChain.from_dict(json.loads(payload))
        if chain.order != self._chain.order:
            raise ValueError(
                f"Snapshot order {chain.order} does not match model order {self._chain.order}"
            )
        with self._lock:
            self._chain = chain
