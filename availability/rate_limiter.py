# availability/rate_limiter.py
import logging
import threading
import time

logger = logging.getLogger("availability.rate_limiter")

DEFAULT_WINDOW_SECONDS = 1.0


class SourceRateLimiter:
    """
    Advisory per-source cooldown.

    Remembers when each source was last fetched successfully. Failed fetches
    are never recorded, so a failing source can be retried straight away.
    """

    def __init__(self, registry, clock=time.monotonic):
        self.registry = registry
        self.clock = clock
        self._last_success = {}
        self._lock = threading.Lock()

    def window_for(self, name):
        """
        Return the cooldown window of a source in seconds.

        Args:
            name (str): Source name as registered

        Returns:
            float: The source's rate_limit, or DEFAULT_WINDOW_SECONDS when the
                source is unknown or configures a window of 0
        """
        source = self.registry.get(name)
        if source is None or not source.rate_limit:
            return DEFAULT_WINDOW_SECONDS
        return source.rate_limit

    def is_rate_limited(self, name):
        """
        Decide whether a new fetch of a source must be skipped.

        Args:
            name (str): Source name as registered

        Returns:
            bool: True iff a successful fetch was recorded and its window
                has not elapsed yet

        Note:
            Advisory only. Two concurrent checks of the same source can both
            see False before either records a success.
        """
        with self._lock:
            last = self._last_success.get(name)
        if last is None:
            return False
        limited = self.clock() - last < self.window_for(name)
        if limited:
            logger.info(f"Rate limited: {name}")
        return limited

    def record_success(self, name):
        """Start the cooldown of a source. Call only after a successful fetch."""
        with self._lock:
            self._last_success[name] = self.clock()

    def last_success(self, name):
        """Clock reading of the last successful fetch, or None if there was none."""
        with self._lock:
            return self._last_success.get(name)
