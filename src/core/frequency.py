"""Per-chat reply frequency gate (core domain).

The persistent store is the source of truth; an in-memory cache keyed by
channel id is filled on first read and updated on every successful write.
"""

from __future__ import annotations

import logging
import random
import re
import threading
from typing import Optional, Union

from core.ports import StoragePort

LOGGER = logging.getLogger(__name__)

DEFAULT_FREQUENCY = 20
MIN_FREQUENCY = 0
MAX_FREQUENCY = 100

_OFF_WORDS = {"off", "0", "no"}
_FULL_WORDS = {"full", "100"}


class FrequencyValidationError(ValueError):
    """Rejected frequency input. The message is suitable as a chat reply."""


# int() alone would also take "+5", "1_0" and non-ASCII digits.
_INTEGER = re.compile(r"-?[0-9]+")


def _parse_int(value: str) -> Optional[int]:
    if not _INTEGER.fullmatch(value):
        return None
    return int(value)


def parse_frequency_argument(argument: str) -> int:
    """Parse a ``/freq`` command argument into a percentage."""

    if argument in _OFF_WORDS:
        return MIN_FREQUENCY
    if argument in _FULL_WORDS:
        return MAX_FREQUENCY

    number = _parse_int(argument)
    if number is None:
        raise FrequencyValidationError("Invalid argument :Hyperblob: (0~100 expected)")
    if not MIN_FREQUENCY < number < MAX_FREQUENCY:
        raise FrequencyValidationError("Invalid number :Hyperblob: (0~100 expected)")
    return number


class FrequencyGate:
    """Decide whether to reply in a chat, backed by a write-through cache."""

    def __init__(
        self,
        storage: StoragePort,
        default_frequency: int = DEFAULT_FREQUENCY,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._storage = storage
        self._default = default_frequency
        self._rng = rng or random.Random()
        self._cache: dict[str, int] = {}
        self._lock = threading.Lock()

    def get_frequency(self, channel_id: str) -> int:
        with self._lock:
            cached = self._cache.get(channel_id)
        if cached is not None:
            return cached

        entry = self._storage.get_frequency(channel_id)
        frequency = entry.frequency if entry else self._default
        with self._lock:
            # A concurrent set wins over a stale read.
            return self._cache.setdefault(channel_id, frequency)

    def set_frequency(self, channel_id: str, value: Union[int, str]) -> int:
        """Validate, persist and cache a new frequency; return the stored value."""

        if isinstance(value, str):
            frequency = parse_frequency_argument(value)
        elif isinstance(value, bool) or not isinstance(value, int):
            raise FrequencyValidationError("Invalid argument :Hyperblob: (0~100 expected)")
        elif not MIN_FREQUENCY <= value <= MAX_FREQUENCY:
            raise FrequencyValidationError("Invalid number :Hyperblob: (0~100 expected)")
        else:
            frequency = value

        self._storage.set_frequency(channel_id, frequency)
        with self._lock:
            self._cache[channel_id] = frequency
        LOGGER.info("Frequency for %s set to %s", channel_id, frequency)
        return frequency

    def should_reply(self, channel_id: str) -> bool:
        frequency = self.get_frequency(channel_id)
        return frequency >= self._rng.randint(1, 100)
