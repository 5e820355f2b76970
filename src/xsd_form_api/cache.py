"""Caching layer for parsed schema trees.

Provides:
    * In-memory dictionary cache with TTL expiry.
    * Optional Redis-backed distributed cache with graceful local fallback.
    * :class:`CachedSchemaParser`, which memoises parse results by the md5 of
      the XSD text and parser configuration.

Design goals:
    1. Deterministic keys: all cache keys are md5 hashes of argument tuples.
    2. Predictable invalidation: TTL expiry, or explicit ``invalidate``.
    3. Fail soft: Redis outages automatically revert to the local cache.

Quick examples::

    from xsd_form_api.cache import SchemaCache
    cache = SchemaCache(default_ttl=5)
    key = cache.make_key("xsd", "<xs:schema .../>")
    cache.set(key, {"parsed": True})
    assert cache.get(key)["parsed"] is True

    from xsd_form_api.cache import get_cached_parser
    root = get_cached_parser().parse(xsd_text)
"""

from __future__ import annotations

import hashlib
import logging
import os
import pickle
import time
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, Optional, Union, cast

# Optional imports for distributed cache backends
try:  # pragma: no cover - import guarded
    import redis
except Exception:  # pragma: no cover - if redis not installed
    redis = None  # type: ignore[assignment]
try:  # pragma: no cover
    import fakeredis
except Exception:  # pragma: no cover
    fakeredis = None  # type: ignore[assignment]

from .errors import SchemaParseError
from .models import SchemaNode
from .monitoring import get_monitor
from .xsd_parser import ParserConfig, XSDParser

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with TTL."""

    data: Any
    timestamp: float = field(default_factory=time.time)
    ttl: float = 3600.0

    def is_expired(self) -> bool:
        return time.time() - self.timestamp > self.ttl


class SchemaCache:
    """Simple in-memory cache for parsed schema trees."""

    def __init__(self, default_ttl: float = 3600.0, enable_monitoring: bool = True):
        self.default_ttl = default_ttl
        self.enable_monitoring = enable_monitoring
        self._cache: Dict[str, CacheEntry] = {}

    def make_key(self, *args: Any) -> str:
        """Create cache key from arguments."""
        return hashlib.md5(str(args).encode()).hexdigest()

    def get(self, key: str) -> Optional[Any]:
        """Retrieve a value if present and not expired."""
        entry = self._cache.get(key)
        if entry is None:
            self._record("miss")
            return None
        if entry.is_expired():
            del self._cache[key]
            self._record("miss")
            self._record("eviction")
            return None
        self._record("hit")
        return entry.data

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        self._cache[key] = CacheEntry(data=data, ttl=ttl or self.default_ttl)
        if self.enable_monitoring:
            get_monitor().update_cache_size(len(self._cache))

    def invalidate(self, key: str) -> None:
        self._cache.pop(key, None)

    def clear(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        return {
            "backend": "local",
            "cache_size": len(self._cache),
            "default_ttl": self.default_ttl,
        }

    def _record(self, event: str) -> None:
        if not self.enable_monitoring:
            return
        monitor = get_monitor()
        if event == "hit":
            monitor.record_cache_hit()
        elif event == "miss":
            monitor.record_cache_miss()
        else:
            monitor.record_cache_eviction()


class DistributedCache:
    """Redis cache with automatic fakeredis / local fallback.

    Order of backend selection when no explicit client is provided:
        1. Real Redis (``redis`` library + reachable server)
        2. ``fakeredis`` when ``XSD_FORMS_FORCE_FAKEREDIS=1``
        3. In-process :class:`SchemaCache` only

    Environment variables:
        XSD_FORMS_FORCE_FAKEREDIS=1  Use fakeredis even if Redis is reachable.
        REDIS_URL                    Redis connection URL (default: redis://localhost:6379/0)
    """

    def __init__(
        self,
        default_ttl: float = 3600.0,
        redis_url: Optional[str] = None,
        redis_prefix: str = "xsdforms:",
        fallback_cache: Optional[SchemaCache] = None,
        redis_client: Any = None,
    ) -> None:
        self.default_ttl = default_ttl
        self.redis_prefix = redis_prefix
        self.fallback_cache = fallback_cache or SchemaCache(default_ttl=default_ttl)
        self._redis: Any = None
        self._redis_available = False
        if redis_client is not None:
            self._redis = redis_client
            self._redis_available = True
        else:
            self._init_backend(redis_url)

    def _init_backend(self, redis_url: Optional[str]) -> None:
        url = redis_url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        if os.getenv("XSD_FORMS_FORCE_FAKEREDIS") == "1" and fakeredis:
            self._redis = fakeredis.FakeStrictRedis()
            self._redis_available = True
            return
        if redis:
            try:
                self._redis = redis.from_url(url, decode_responses=False)
                self._redis.ping()
                self._redis_available = True
                return
            except Exception as exc:
                logger.warning(f"Redis unavailable at {url}, using local cache: {exc}")
        self._redis = None
        self._redis_available = False

    @property
    def redis_available(self) -> bool:
        return self._redis_available

    def make_key(self, *parts: Any) -> str:
        return f"{self.redis_prefix}{hashlib.md5(str(parts).encode()).hexdigest()}"

    def get(self, key: str) -> Optional[Any]:
        if self._redis_available:
            try:
                blob = self._redis.get(key)
            except Exception as exc:
                logger.warning(f"Redis get failed, falling back to local cache: {exc}")
                return self.fallback_cache.get(key)
            if blob is None:
                get_monitor().record_cache_miss()
                return None
            get_monitor().record_cache_hit()
            return pickle.loads(blob)
        return self.fallback_cache.get(key)

    def set(self, key: str, data: Any, ttl: Optional[float] = None) -> None:
        ttl_seconds = int(ttl or self.default_ttl)
        if self._redis_available:
            try:
                self._redis.setex(key, ttl_seconds, pickle.dumps(data))
                return
            except Exception as exc:
                logger.warning(f"Redis set failed, falling back to local cache: {exc}")
        self.fallback_cache.set(key, data, ttl=ttl)

    def invalidate(self, key: str) -> None:
        if self._redis_available:
            try:
                self._redis.delete(key)
            except Exception as exc:
                logger.warning(f"Redis delete failed: {exc}")
        self.fallback_cache.invalidate(key)

    def clear(self) -> None:
        if self._redis_available:
            try:
                keys = list(self._redis.scan_iter(f"{self.redis_prefix}*"))
                if keys:
                    self._redis.delete(*keys)
            except Exception as exc:
                logger.warning(f"Redis clear failed: {exc}")
        self.fallback_cache.clear()

    def get_cache_stats(self) -> Dict[str, Any]:
        stats = {
            "backend": "redis" if self._redis_available else "local",
            "redis_available": self._redis_available,
            "default_ttl": self.default_ttl,
        }
        stats["local"] = self.fallback_cache.get_cache_stats()
        return stats


_schema_cache = SchemaCache()
_distributed_cache: Optional[DistributedCache] = None


def _get_default_cache() -> Union[SchemaCache, DistributedCache]:
    """Pick the cache backend from ``XSD_FORMS_CACHE_TYPE`` / ``REDIS_URL``."""
    global _distributed_cache
    cache_type = os.getenv("XSD_FORMS_CACHE_TYPE", "local").lower()
    redis_url = os.getenv("REDIS_URL")
    if cache_type == "distributed" or redis_url:
        if _distributed_cache is None:
            _distributed_cache = DistributedCache(
                default_ttl=float(os.getenv("XSD_FORMS_CACHE_TTL", "3600")),
                redis_url=redis_url,
            )
        return _distributed_cache
    return _schema_cache


class CachedSchemaParser:
    """Parser wrapper that memoises schema trees by XSD content.

    Parse failures are not cached; they are raised to the caller every time.
    """

    def __init__(
        self,
        cache: Optional[Union[SchemaCache, DistributedCache]] = None,
        parser_config: Optional[ParserConfig] = None,
    ):
        self.cache = cache or _get_default_cache()
        self.parser_config = parser_config or ParserConfig()

    def parse(self, xsd_text: Union[str, bytes], force_refresh: bool = False) -> SchemaNode:
        """Parse XSD text, returning a cached tree when available.

        Raises:
            SchemaParseError: If the text is not a supported schema.
        """
        raw = xsd_text.encode("utf-8") if isinstance(xsd_text, str) else xsd_text
        cache_key = self.cache.make_key(
            "xsd", hashlib.md5(raw).hexdigest(), str(self.parser_config.__dict__)
        )
        if not force_refresh:
            cached = self.cache.get(cache_key)
            if cached is not None:
                return cast(SchemaNode, cached)

        monitor = get_monitor()
        try:
            result = XSDParser(xsd_text, config=self.parser_config).parse()
        except Exception:
            monitor.record_operation("parse", failed=True)
            raise
        monitor.record_operation("parse")
        self.cache.set(cache_key, result)
        return result

    def invalidate_all(self) -> None:
        self.cache.clear()


def parser_config_from_string(config_str: str) -> ParserConfig:
    """Build a :class:`ParserConfig` from ``key=value,key=value`` text.

    Raises:
        SchemaParseError: If a ``max_*`` value is not an integer.
    """
    config = ParserConfig()
    for pair in config_str.split(","):
        if "=" not in pair:
            continue
        key, value = (part.strip() for part in pair.split("=", 1))
        if not hasattr(config, key):
            continue
        if key.startswith("max_"):
            try:
                setattr(config, key, int(value))
            except ValueError as exc:
                raise SchemaParseError(
                    f"Invalid integer value '{value}' for parser option '{key}'"
                ) from exc
        else:
            setattr(config, key, value.lower() == "true")
    return config


@lru_cache(maxsize=4)
def get_cached_parser(parser_config_key: Optional[str] = None) -> CachedSchemaParser:
    """Get or create a cached parser for the given config string."""
    config = parser_config_from_string(parser_config_key or "")
    return CachedSchemaParser(cache=_get_default_cache(), parser_config=config)
