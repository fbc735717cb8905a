"""Provider health checks. Ping each chat API before serving."""

import asyncio
import logging
import time
from dataclasses import dataclass

from fishtank.providers.base import ChatProvider

logger = logging.getLogger(__name__)

_PING = [{"role": "user", "content": "Reply with the word OK only."}]
_TIMEOUT_SEC = 15.0


@dataclass
class HealthStatus:
    name: str
    model: str
    ok: bool
    error: str = ""
    latency_sec: float = 0.0


async def check_provider(provider: ChatProvider) -> HealthStatus:
    """Send a five-token ping. Never raises."""
    start = time.monotonic()
    try:
        await asyncio.wait_for(provider.complete(_PING, max_tokens=5), timeout=_TIMEOUT_SEC)
    except TimeoutError:
        error = f"no answer within {_TIMEOUT_SEC:g}s"
    except Exception as exc:
        error = str(exc) or type(exc).__name__
    else:
        return HealthStatus(provider.name(), provider.model_string(), True, latency_sec=time.monotonic() - start)

    logger.warning("Health check failed for %s: %s", provider.name(), error)
    return HealthStatus(provider.name(), provider.model_string(), False, error, time.monotonic() - start)


async def run_health_checks(providers: list[ChatProvider]) -> dict[str, HealthStatus]:
    """Ping all providers in parallel, keyed by provider name."""
    statuses = await asyncio.gather(*(check_provider(p) for p in providers))
    return {s.name: s for s in statuses}
