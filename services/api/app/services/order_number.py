from __future__ import annotations

import secrets
from collections.abc import Callable
from datetime import datetime, timezone

_ALPHABET = "0123456789ABCDEFGHIJKLMNOPQRSTUVWXYZ"


def _base36(value: int) -> str:
    if value == 0:
        return "0"
    digits: list[str] = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_ALPHABET[rem])
    return "".join(reversed(digits))


class OrderNumberGenerator:
    """Human readable order numbers: prefix + base36(ms timestamp) + random suffix.

    Numbers sort roughly by creation time. The 4 character suffix gives 36**4 values per
    millisecond; the store's unique constraint plus a bounded retry covers the rest.
    """

    def __init__(
        self,
        prefix: str = "GC",
        *,
        suffix_length: int = 4,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.prefix = prefix
        self.suffix_length = suffix_length
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def __call__(self) -> str:
        millis = int(self._clock().timestamp() * 1000)
        suffix = "".join(secrets.choice(_ALPHABET) for _ in range(self.suffix_length))
        return f"{self.prefix}{_base36(millis)}{suffix}"
