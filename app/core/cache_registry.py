"""
Cache Registry

This module owns the process-wide cache instances.

Design:
- Caches are built once on application startup and stored on ``app.state``
- Components receive the cache they need through their constructor;
  endpoints reach the registry through the ``get_caches`` dependency
- Tests build fresh, isolated registries with ``build_cache_registry``
- Each instance keeps its own caches (process-local, no coordination)
"""

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import FastAPI, Request

from app.core.cache import TTLCache
from app.core.setting import Settings, settings

logger = logging.getLogger(__name__)


def timezone_offset_key(timezone_name: str) -> str:
    return f"timezone:{timezone_name}:offset"


def user_timezone_key(user_id: int) -> str:
    return f"user:{user_id}:timezone"


@dataclass
class CacheRegistry:
    """Holder for the shared caches of one application instance."""
    timezone_offsets: TTLCache[int]
    user_timezones: TTLCache[str]

    def all(self) -> dict[str, TTLCache]:
        return {
            "timezone_cache": self.timezone_offsets,
            "user_cache": self.user_timezones,
        }

    def start_sweepers(self) -> None:
        for cache in self.all().values():
            cache.start_sweeper()

    def stats(self) -> dict[str, dict]:
        """Per-cache statistics for monitoring."""
        return {name: cache.get_stats() for name, cache in self.all().items()}

    def clear(self) -> None:
        for cache in self.all().values():
            cache.clear()
        logger.info("All caches cleared")

    def shutdown(self) -> None:
        """Stop background sweeps and drop all entries."""
        for cache in self.all().values():
            cache.stop_sweeper()
        self.clear()
        logger.info("Cache cleanup intervals stopped")


def build_cache_registry(config: Optional[Settings] = None) -> CacheRegistry:
    """
    Build a new registry from settings.

    Sweepers are not started here; call ``start_sweepers`` (done by
    ``initialize_caches`` on application startup).
    """
    config = config or settings
    return CacheRegistry(
        timezone_offsets=TTLCache(
            max_size=config.TIMEZONE_CACHE_MAX_SIZE,
            default_ttl_ms=config.TIMEZONE_CACHE_TTL_MS,
            sweep_interval=config.CACHE_SWEEP_INTERVAL_SECONDS,
            name="timezone",
        ),
        user_timezones=TTLCache(
            max_size=config.USER_CACHE_MAX_SIZE,
            default_ttl_ms=config.USER_CACHE_TTL_MS,
            sweep_interval=config.CACHE_SWEEP_INTERVAL_SECONDS,
            name="user",
        ),
    )


def initialize_caches(app: FastAPI) -> CacheRegistry:
    """Create the registry for this instance and start its sweepers."""
    existing = getattr(app.state, "caches", None)
    if existing is not None:
        logger.warning("Caches already initialized")
        return existing

    registry = build_cache_registry()
    registry.start_sweepers()
    app.state.caches = registry

    logger.info(
        f"Caches initialized: "
        f"timezone_max={settings.TIMEZONE_CACHE_MAX_SIZE}, "
        f"user_max={settings.USER_CACHE_MAX_SIZE}"
    )
    return registry


def shutdown_caches(app: FastAPI) -> None:
    registry = getattr(app.state, "caches", None)
    if registry is None:
        return

    logger.info("Shutting down caches")
    registry.shutdown()
    app.state.caches = None


def get_caches(request: Request) -> CacheRegistry:
    """
    Dependency returning the registry of the running application.

    Usage in FastAPI:
        @router.get("/endpoint")
        async def endpoint(caches: CacheRegistry = Depends(get_caches)):
            ...
    """
    registry = getattr(request.app.state, "caches", None)
    if registry is None:
        # Startup hook did not run (e.g. ASGI transport without lifespan)
        registry = initialize_caches(request.app)
    return registry
