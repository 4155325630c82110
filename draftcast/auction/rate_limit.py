"""
Fixed-window rate limiting on top of the key-value store.

Counters live at ratelimit:{kind}:{identifier}:{windowStart} and are bumped
with an atomic INCR. A failing store lets the request through.
"""

import ipaddress
import logging
import math
from dataclasses import dataclass
from typing import Dict, Mapping, Optional

from .. import config
from .errors import RateLimitError
from .models import now_ms
from .storage import Clock, KeyValueStore

logger = logging.getLogger(__name__)


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int       # epoch ms
    limit: int

    def headers(self) -> Dict[str, str]:
        return {
            'X-RateLimit-Limit': str(self.limit),
            'X-RateLimit-Remaining': str(self.remaining),
            'X-RateLimit-Reset': str(self.reset_at),
        }


class RateLimiter:
    """Counts requests per (kind, identifier) in fixed windows."""

    def __init__(self, store: KeyValueStore, clock: Optional[Clock] = None):
        self.store = store
        self._clock = clock or now_ms

    def _window(self, kind: str):
        limit, window_seconds = config.RATE_LIMITS[kind]
        now = self._clock() // 1000
        window_start = (now // window_seconds) * window_seconds
        return limit, window_seconds, window_start

    def check(self, identifier: str, kind: str) -> RateLimitResult:
        """
        Consume one unit of quota.

        Args:
            identifier: Client identifier (IP, or IP plus tournament)
            kind: Key into config.RATE_LIMITS

        Returns:
            RateLimitResult; allowed is True when the store is unreachable
        """
        limit, window_seconds, window_start = self._window(kind)
        key = f"ratelimit:{kind}:{identifier}:{window_start}"

        try:
            count = self.store.incr(key)
            if count == 1:
                self.store.expire(key, window_seconds + config.RATE_LIMIT_TTL_BUFFER_SECONDS)
        except Exception as e:
            logger.error(f"Rate limit check failed for {kind}: {e}", exc_info=True)
            return RateLimitResult(
                allowed=True,
                remaining=limit,
                reset_at=self._clock() + window_seconds * 1000,
                limit=limit,
            )

        return RateLimitResult(
            allowed=count <= limit,
            remaining=max(0, limit - count),
            reset_at=(window_start + window_seconds) * 1000,
            limit=limit,
        )

    def peek(self, identifier: str, kind: str) -> RateLimitResult:
        """Report quota without consuming it."""
        limit, window_seconds, window_start = self._window(kind)
        key = f"ratelimit:{kind}:{identifier}:{window_start}"

        try:
            count = int(self.store.get(key) or 0)
        except Exception as e:
            logger.error(f"Rate limit peek failed for {kind}: {e}", exc_info=True)
            count = 0

        return RateLimitResult(
            allowed=count < limit,
            remaining=max(0, limit - count),
            reset_at=(window_start + window_seconds) * 1000,
            limit=limit,
        )

    def enforce(self, identifier: str, kind: str) -> RateLimitResult:
        """
        Consume quota or fail.

        Raises:
            RateLimitError: If the window's limit is exhausted
        """
        result = self.check(identifier, kind)
        if not result.allowed:
            self._reject(identifier, kind, result)
        return result

    def ensure_available(self, identifier: str, kind: str) -> RateLimitResult:
        """
        Fail if the window is already exhausted, without consuming quota.

        Used where only some outcomes count (failed logins), with check()
        called afterwards for those.

        Raises:
            RateLimitError: If the window's limit is exhausted
        """
        result = self.peek(identifier, kind)
        if not result.allowed:
            self._reject(identifier, kind, result)
        return result

    def _reject(self, identifier: str, kind: str, result: RateLimitResult):
        retry_after = max(0, math.ceil((result.reset_at - self._clock()) / 1000))
        logger.warning(f"Rate limit {kind} exceeded for {identifier}")
        raise RateLimitError(reset_at=result.reset_at, retry_after=retry_after)


# ===== Identifiers =====

def _is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
        return True
    except ValueError:
        return False


def client_ip(headers: Mapping[str, str], fallback: Optional[str] = None) -> str:
    """Client IP from proxy headers, else the socket peer, else 'unknown'."""
    forwarded = headers.get('x-forwarded-for')
    if forwarded:
        first = forwarded.split(',')[0].strip()
        if _is_valid_ip(first):
            return first

    for header in ('x-real-ip', 'cf-connecting-ip'):
        value = headers.get(header)
        if value and _is_valid_ip(value.strip()):
            return value.strip()

    return fallback or 'unknown'


def tournament_rate_limit_id(ip: str, tournament_id: str) -> str:
    return f"{ip}:{tournament_id}"


def auth_rate_limit_id(ip: str, tournament_id: str) -> str:
    return f"auth:{ip}:{tournament_id}"
