"""Backend endpoint, live-stream and buffer configuration."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Final

from .env import env_float, env_int, optional_env_var
from .http_resilience import CacheConfig, RateLimit, ResilienceConfig, RetryPolicy

DEFAULT_API_URL: Final[str] = "http://127.0.0.1:3000"
DEFAULT_POLL_INTERVAL_SECONDS: Final[float] = 2.0
DEFAULT_BUFFER_CAPACITY: Final[int] = 100
DEFAULT_INSIGHTS_LIMIT: Final[int] = 50
DEFAULT_TIMEOUT_SECONDS: Final[float] = 30.0
ASSISTANT_TIMEOUT_SECONDS: Final[float] = 120.0
REFERENCE_CACHE_TTL_SECONDS: Final[float] = 10.0
ASSISTANT_RATE_LIMIT: Final[RateLimit] = RateLimit(max_calls=10, per_seconds=60.0)

_DEFAULT_HEADERS: Final[dict[str, str]] = {"Accept": "application/json"}


@dataclass(frozen=True, slots=True)
class StreamConfig:
    """Reconnect policy for push subscriptions."""

    initial_delay_seconds: float = 1.0
    max_delay_seconds: float = 30.0
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int) -> float:
        delay = self.initial_delay_seconds * (self.backoff_factor ** max(attempt - 1, 0))
        return min(delay, self.max_delay_seconds)


def _live_resilience(base_url: str, timeout_seconds: float) -> ResilienceConfig:
    return ResilienceConfig(
        name="telewatch-live",
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        default_headers=_DEFAULT_HEADERS,
    )


def _cacheable_reference_payload(payload: object) -> bool:
    return not (isinstance(payload, dict) and "error" in payload)


def _reference_resilience(base_url: str, timeout_seconds: float) -> ResilienceConfig:
    return ResilienceConfig(
        name="telewatch-reference",
        base_url=base_url,
        timeout_seconds=timeout_seconds,
        cache=CacheConfig(
            default_ttl_seconds=REFERENCE_CACHE_TTL_SECONDS,
            should_cache=_cacheable_reference_payload,
        ),
        default_headers=_DEFAULT_HEADERS,
    )


def _assistant_resilience(base_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="telewatch-assistant",
        base_url=base_url,
        timeout_seconds=ASSISTANT_TIMEOUT_SECONDS,
        retry=RetryPolicy(total=0),
        ratelimit=ASSISTANT_RATE_LIMIT,
        default_headers=_DEFAULT_HEADERS,
    )


@dataclass(frozen=True, slots=True)
class BackendConfig:
    base_url: str = DEFAULT_API_URL
    poll_interval_seconds: float = DEFAULT_POLL_INTERVAL_SECONDS
    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY
    insights_limit: int = DEFAULT_INSIGHTS_LIMIT
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    stream: StreamConfig = field(default_factory=StreamConfig)
    live: ResilienceConfig = field(
        default_factory=lambda: _live_resilience(DEFAULT_API_URL, DEFAULT_TIMEOUT_SECONDS)
    )
    reference: ResilienceConfig = field(
        default_factory=lambda: _reference_resilience(DEFAULT_API_URL, DEFAULT_TIMEOUT_SECONDS)
    )
    assistant: ResilienceConfig = field(
        default_factory=lambda: _assistant_resilience(DEFAULT_API_URL)
    )

    def with_base_url(self, base_url: str) -> BackendConfig:
        base_url = base_url.rstrip("/")
        return replace(
            self,
            base_url=base_url,
            live=replace(self.live, base_url=base_url),
            reference=replace(self.reference, base_url=base_url),
            assistant=replace(self.assistant, base_url=base_url),
        )


def get_backend_config() -> BackendConfig:
    base_url = (optional_env_var("TELEWATCH_API_URL") or DEFAULT_API_URL).rstrip("/")
    timeout_seconds = env_float("TELEWATCH_TIMEOUT", DEFAULT_TIMEOUT_SECONDS)
    return BackendConfig(
        base_url=base_url,
        poll_interval_seconds=env_float(
            "TELEWATCH_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_SECONDS
        ),
        buffer_capacity=env_int("TELEWATCH_BUFFER_CAPACITY", DEFAULT_BUFFER_CAPACITY),
        insights_limit=env_int("TELEWATCH_INSIGHTS_LIMIT", DEFAULT_INSIGHTS_LIMIT),
        timeout_seconds=timeout_seconds,
        live=_live_resilience(base_url, timeout_seconds),
        reference=_reference_resilience(base_url, timeout_seconds),
        assistant=_assistant_resilience(base_url),
    )
