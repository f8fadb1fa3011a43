"""
Fixed-window rate limiting on top of `limits`, exposed as FastAPI dependencies.

Counters live in the storage named by RATE_LIMIT_STORAGE_URI: "memory://" keeps
them in this process, "redis://host:6379" shares them between workers.
"""
import logging
import math
import time
from dataclasses import dataclass

from fastapi import Depends, HTTPException, Request
from limits import RateLimitItem, RateLimitItemPerSecond
from limits.storage import storage_from_string
from limits.strategies import FixedWindowRateLimiter

from .. import config
from ..utils.dependencies import Actor
from ..utils.error_handlers import get_error_message
from ..utils.roles import candidate_only

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitRule:
    name: str
    max_requests: int
    window_seconds: int
    message: str

    @classmethod
    def parse(cls, name: str, value: str, message: str) -> "RateLimitRule":
        """Build a rule from a "<max requests>/<window seconds>" string."""
        try:
            count, window = (int(part) for part in value.split("/", 1))
        except (AttributeError, ValueError):
            raise ValueError(f"Invalid rate limit for {name!r}: {value!r}") from None
        if count < 1 or window < 1:
            raise ValueError(f"Invalid rate limit for {name!r}: {value!r}")
        return cls(name=name, max_requests=count, window_seconds=window, message=message)

    @property
    def item(self) -> RateLimitItem:
        return RateLimitItemPerSecond(self.max_requests, self.window_seconds, namespace=self.name)


class RateLimiter:
    def __init__(self, storage_uri: str = "memory://"):
        self.storage = storage_from_string(storage_uri)
        self.strategy = FixedWindowRateLimiter(self.storage)

    def hit(self, rule: RateLimitRule, key: str) -> tuple[bool, int]:
        """Count one request; returns (allowed, seconds until the window resets)."""
        allowed = self.strategy.hit(rule.item, key)
        reset_time, _ = self.strategy.get_window_stats(rule.item, key)
        return allowed, max(1, math.ceil(reset_time - time.time()))

    def reset(self) -> None:
        self.storage.reset()


limiter = RateLimiter(config.RATE_LIMIT_STORAGE_URI)

API_RULE = RateLimitRule.parse("api", config.RATE_LIMIT_API, get_error_message("rate_limited"))
AUTH_RULE = RateLimitRule.parse("auth", config.RATE_LIMIT_AUTH, get_error_message("auth_rate_limited"))
APPLICATION_RULE = RateLimitRule.parse(
    "application", config.RATE_LIMIT_APPLICATION, get_error_message("application_rate_limited")
)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce(rule: RateLimitRule, request: Request) -> None:
    if not config.RATE_LIMIT_ENABLED:
        return
    key = _client_key(request)
    allowed, retry_after = limiter.hit(rule, key)
    if not allowed:
        logger.warning("Rate limit %s exceeded by %s", rule.name, key)
        raise HTTPException(
            status_code=429,
            detail=rule.message,
            headers={"Retry-After": str(retry_after)},
        )


def rate_limit(rule: RateLimitRule):
    def check(request: Request) -> None:
        enforce(rule, request)
    return check


api_limit = rate_limit(API_RULE)
auth_limit = rate_limit(AUTH_RULE)


def application_limit(request: Request, user: Actor = Depends(candidate_only)) -> Actor:
    # Only authenticated candidates spend the application quota.
    enforce(APPLICATION_RULE, request)
    return user
