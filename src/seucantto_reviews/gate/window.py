"""
Sliding window attempt counter.
"""

from typing import Iterable, List, Optional


class SlidingWindow:
    """
    Ordered attempt timestamps (epoch millis) kept within a trailing window.

    Callers must prune with the current time before reading the count or
    recording, so expired attempts never count toward a limit. A window of
    ``None`` never decays and only shrinks through ``clear()``.
    """

    def __init__(self, window_ms: Optional[int] = None, attempts: Iterable[int] = ()):
        """
        Initialize the window.

        Args:
            window_ms: Window length in milliseconds, None for no time decay
            attempts: Previously recorded timestamps
        """
        self.window_ms = window_ms
        self.attempts: List[int] = sorted(int(t) for t in attempts)

    def prune(self, now: int) -> int:
        """
        Drop attempts recorded before ``now - window_ms``.

        Returns:
            Number of attempts removed
        """
        if self.window_ms is None:
            return 0

        before = len(self.attempts)
        cutoff = now - self.window_ms
        self.attempts = [t for t in self.attempts if t >= cutoff]
        return before - len(self.attempts)

    def count(self) -> int:
        return len(self.attempts)

    def record(self, now: int) -> None:
        self.attempts.append(now)
        if len(self.attempts) > 1 and self.attempts[-2] > now:
            self.attempts.sort()

    def oldest(self) -> Optional[int]:
        return self.attempts[0] if self.attempts else None

    def newest(self) -> Optional[int]:
        return self.attempts[-1] if self.attempts else None

    def clear(self) -> None:
        self.attempts = []

    def __len__(self) -> int:
        return len(self.attempts)
