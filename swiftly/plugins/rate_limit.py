"""
Swiftly: Rate Limiting Plugin
==============================

What:  Per-IP sliding window rate limiter.
How:   Each client IP keeps a list of request timestamps. On every request,
       timestamps older than the window are dropped; if the remaining count
       has reached the limit, the plugin answers with API_RATE_LIMITED (14)
       and a Retry-After header and short-circuits the pipeline.

Algorithm: Sliding Window Log
    1. prune timestamps <= now - window
    2. count >= limit → reject, retry_after = oldest + window - now
    3. otherwise record now and continue

Single-process only: the window lives in this plugin instance.
"""

import logging
import time
from collections import defaultdict
from typing import Callable, Dict, Iterable, List

from swiftly.codes import Code
from swiftly.context import RequestContext
from swiftly.plugins.base import Plugin
from swiftly.response import make_error

logger = logging.getLogger(__name__)

CLEANUP_EVERY = 1000


class SlidingWindow:
    def __init__(self, limit: int, window: int, clock: Callable[[], float] = time.time):
        self.limit = limit
        self.window = window
        self._clock = clock
        self._requests: Dict[str, List[float]] = defaultdict(list)
        self._seen = 0

    def hit(self, key: str) -> int:
        """Record a request for `key`. Returns 0 when allowed, else seconds to wait."""
        now = self._clock()
        window_start = now - self.window
        timestamps = [ts for ts in self._requests[key] if ts > window_start]
        self._requests[key] = timestamps

        if len(timestamps) >= self.limit:
            return int(timestamps[0] + self.window - now) + 1

        timestamps.append(now)
        self._seen += 1
        if self._seen % CLEANUP_EVERY == 0:
            self._cleanup(window_start)
        return 0

    def _cleanup(self, window_start: float) -> None:
        inactive = [key for key, ts in self._requests.items() if not ts or ts[-1] <= window_start]
        for key in inactive:
            del self._requests[key]
        if inactive:
            logger.debug("Cleaned up %d inactive rate-limit entries", len(inactive))

    def __len__(self) -> int:
        return len(self._requests)


class RateLimitPlugin(Plugin):
    name = "rate_limit"
    order = 3

    def __init__(self, excluded_paths: Iterable[str] = ("/core/health/check",)):
        self.excluded_paths = frozenset(excluded_paths)

    def on_init(self, app_ctx) -> SlidingWindow:
        config = app_ctx.config
        logger.info(
            "Rate limiting: %d requests per %ds per IP",
            config.rate_limit_requests,
            config.rate_limit_window,
        )
        return SlidingWindow(config.rate_limit_requests, config.rate_limit_window)

    def on_request(self, ctx: RequestContext, window: SlidingWindow) -> None:
        if ctx.path in self.excluded_paths:
            return
        client_ip = ctx.client_ip
        retry_after = window.hit(client_ip)
        if not retry_after:
            return

        logger.warning(
            "Rate limit exceeded for IP %s: %d requests in %ds window",
            client_ip,
            window.limit,
            window.window,
        )
        ctx.response.send(
            make_error(
                Code.API_RATE_LIMITED,
                f"Too many requests. Please wait {retry_after} seconds before retrying.",
                {"retry_after": retry_after},
                registry=ctx.registry,
            ),
            **{"Retry-After": str(retry_after)},
        )
