"""
Read-through caching for async request handlers.
"""

import functools
from typing import Any, Callable, Optional, Union

from fastapi.encoders import jsonable_encoder
from starlette.responses import Response

from shared.errors import ListingsException
from shared.logging import get_logger
from .service import CacheService


KeyFn = Union[str, Callable[..., str]]

logger = get_logger("listings.cache.read_through")


def _resolve_key(key_fn: KeyFn, args, kwargs) -> Optional[str]:
    if isinstance(key_fn, str):
        return key_fn
    try:
        return key_fn(*args, **kwargs)
    except ListingsException as e:
        # The handler rejects the same request parameters.
        logger.debug("Cache key not derived for invalid request", code=e.code)
        return None
    except Exception as e:
        logger.warning("Cache key derivation failed; bypassing cache", error=str(e))
        return None


def with_read_through_cache(cache: CacheService, key_fn: KeyFn, ttl: Optional[int] = None):
    """Serve a read handler from cache, populating the cache on a miss.

    ``key_fn`` is a literal key or a callable receiving the handler's
    arguments. Cache faults fall through to the handler; handler exceptions
    propagate and nothing is stored. ``Response`` objects and ``None`` results
    are passed through uncached.
    """

    def decorator(func: Callable[..., Any]):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            key = _resolve_key(key_fn, args, kwargs)
            if key is None:
                return await func(*args, **kwargs)

            cached = await cache.get(key)
            if cached is not None:
                logger.debug("Serving cached response", key=key)
                return cached

            result = await func(*args, **kwargs)
            if result is None or isinstance(result, Response):
                return result

            try:
                payload = jsonable_encoder(result)
            except (TypeError, ValueError) as e:
                logger.warning("Response not cacheable", key=key, error=str(e))
                return result

            await cache.set(key, payload, ttl)
            return payload

        return wrapper

    return decorator
