"""Order number generation.

Order numbers look like ``SS2610180042``: prefix, ``YYMMDD`` and a per-day
sequence padded to four digits. They sort lexicographically by creation day
and within a day by sequence.

The sequence comes from an atomic per-day counter. Uniqueness is then
enforced against persisted orders: a taken number (``DuplicateKey``) makes
the generator draw the next counter value. After ``MAX_ATTEMPTS`` collisions it
falls back to a timestamp/random identifier, as it does once a day has
used up all ``MAX_SEQUENCE`` four-digit sequences.
"""

import secrets
import string
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import UTC, datetime

import structlog

from shared.errors import DuplicateKey

logger = structlog.get_logger(__name__)

MAX_ATTEMPTS = 5
SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10**SEQUENCE_WIDTH - 1

_BASE36 = string.digits + string.ascii_lowercase


# ---------------------------------------------------------------------------
# Counter port and in-memory adapter
# ---------------------------------------------------------------------------
class SequenceCounter(ABC):
    """Atomic per-key counter (a sequence table or counter document in production)."""

    @abstractmethod
    def next_value(self, key: str) -> int:
        """Atomically increment the counter for ``key`` and return the new value."""
        ...


class InMemorySequenceCounter(SequenceCounter):
    def __init__(self) -> None:
        self._values: dict[str, int] = {}
        self._lock = threading.Lock()

    def next_value(self, key: str) -> int:
        with self._lock:
            value = self._values.get(key, 0) + 1
            self._values[key] = value
            return value


_current_counter: SequenceCounter | None = None


def get_sequence_counter() -> SequenceCounter:
    global _current_counter
    if _current_counter is None:
        _current_counter = InMemorySequenceCounter()
    return _current_counter


def set_sequence_counter(counter: SequenceCounter) -> None:
    global _current_counter
    _current_counter = counter


def reset_sequence_counter() -> None:
    global _current_counter
    _current_counter = None


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------
def day_prefix(prefix: str, moment: datetime) -> str:
    return f"{prefix}{moment:%y%m%d}"


def format_order_number(prefix: str, moment: datetime, sequence: int) -> str:
    if not 0 < sequence <= MAX_SEQUENCE:
        raise ValueError(f"Order sequence {sequence} outside 1..{MAX_SEQUENCE}")
    return f"{day_prefix(prefix, moment)}{sequence:0{SEQUENCE_WIDTH}d}"


def _to_base36(value: int) -> str:
    digits = []
    while value:
        value, remainder = divmod(value, 36)
        digits.append(_BASE36[remainder])
    return "".join(reversed(digits)) or "0"


def fallback_order_number() -> str:
    """``ORD-<base36 millis>-<5 random base36 chars>``, upper-cased."""
    timestamp = _to_base36(int(time.time() * 1000))
    suffix = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"ORD-{timestamp}-{suffix}".upper()


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------
class OrderNumberGenerator:
    """Draws order numbers from a counter and retries on collisions.

    Args:
        prefix: Leading letters of every number.
        counter: Atomic per-day counter.
        is_taken: Callable returning True if a number is already persisted.
            Defaults to "never taken".
        clock: Returns the current time; the day is taken in UTC.
    """

    def __init__(
        self,
        prefix: str,
        counter: SequenceCounter,
        is_taken: Callable[[str], bool] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.prefix = prefix
        self.counter = counter
        self.is_taken = is_taken or (lambda number: False)
        self.clock = clock or (lambda: datetime.now(UTC))

    def _draw(self) -> str | None:
        """Next sequential number, or None once the day's sequences are used up."""
        now = self.clock()
        key = day_prefix(self.prefix, now)
        sequence = self.counter.next_value(key)
        if sequence > MAX_SEQUENCE:
            logger.warning("order_number_sequence_exhausted", day=key, sequence=sequence)
            return None
        number = format_order_number(self.prefix, now, sequence)
        if self.is_taken(number):
            raise DuplicateKey("orderNumber", number)
        return number

    def next_number(self) -> str:
        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                number = self._draw()
            except DuplicateKey as exc:
                logger.warning("order_number_collision", order_number=exc.value, attempt=attempt)
                continue
            if number is None:
                break
            return number

        number = fallback_order_number()
        logger.warning("order_number_fallback", order_number=number)
        return number
