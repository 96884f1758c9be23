"""
Redis Match Cache

Caches the two expensive things the pipeline produces:
- Match results (7 day TTL): completion-service scores per (posting, user).
  Match quality is treated as stable, so entries live for days.
- Scraped pages (30 min TTL): raw HTML of a fetched page, so retried or
  re-executed scrape tasks do not hit the source again.

Cache Key Patterns:
    - ai:match:{posting_id}:{user_id} - MatchResult JSON
    - scrape:page:{url_hash} - Page HTML

A cached MatchResult is either trusted as-is or absent; there is no
partial state. All operations degrade gracefully when Redis is down,
logging a warning and behaving like a miss.

Usage:
    cache = await get_cache()

    result = await cache.get_match(posting.id, user_id)
    if result is None:
        result = await score(posting)
        await cache.set_match(posting.id, user_id, result)
"""

import json
import hashlib
import logging
from enum import Enum
from typing import Any, Dict, Optional

import redis.asyncio as redis

from jobpipeline.config import get_settings
from jobpipeline.metrics import record_cache_hit, record_cache_miss
from jobpipeline.schemas.matching import MatchResult

logger = logging.getLogger(__name__)


class CacheLayer(Enum):
    """Cache layers with TTL values in seconds."""

    MATCH_RESULT = ("match_result", 604800)  # 7 days
    SCRAPED_PAGE = ("scraped_page", 1800)    # 30 minutes

    def __init__(self, layer_name: str, ttl: int):
        self.layer_name = layer_name
        self._ttl = ttl

    @property
    def ttl(self) -> int:
        return self._ttl


def hash_content(*args: Any) -> str:
    """
    Generate a 16-character hex hash from JSON-serializable content.

    Dict keys are sorted for consistent hashing.
    """
    content = json.dumps(args, sort_keys=True, default=str)
    return hashlib.sha256(content.encode()).hexdigest()[:16]


def match_key(posting_id: str, user_id: str) -> str:
    return f"ai:match:{posting_id}:{user_id}"


def page_key(url: str) -> str:
    return f"scrape:page:{hash_content(url)}"


class MatchCache:
    """
    Redis cache for match results and scraped pages.

    Attributes:
        redis: Async Redis client (connected lazily)
        stats: Dict tracking hits/misses per layer
    """

    def __init__(self, redis_url: str):
        self.redis_url = redis_url
        self.redis: Optional[redis.Redis] = None
        self.stats: Dict[str, Dict[str, int]] = {
            "hits": {layer.layer_name: 0 for layer in CacheLayer},
            "misses": {layer.layer_name: 0 for layer in CacheLayer},
        }

    async def _ensure_connected(self) -> Optional[redis.Redis]:
        """Ensure Redis connection is established."""
        if self.redis is None:
            try:
                self.redis = redis.from_url(
                    self.redis_url,
                    encoding="utf-8",
                    decode_responses=True
                )
            except Exception as e:
                logger.warning(f"Failed to connect to Redis: {e}")
                return None
        return self.redis

    def _hit(self, layer: CacheLayer) -> None:
        self.stats["hits"][layer.layer_name] += 1
        record_cache_hit(layer.layer_name)

    def _miss(self, layer: CacheLayer) -> None:
        self.stats["misses"][layer.layer_name] += 1
        record_cache_miss(layer.layer_name)

    # ==================== Match Results ====================

    async def get_match(self, posting_id: str, user_id: str) -> Optional[MatchResult]:
        """
        Get cached match result for a posting-user pair.

        Returns:
            MatchResult or None on miss, error, or unreadable entry
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return None

            cached = await client.get(match_key(posting_id, user_id))

            if cached:
                result = MatchResult.model_validate_json(cached)
                self._hit(CacheLayer.MATCH_RESULT)
                return result

            self._miss(CacheLayer.MATCH_RESULT)
            return None

        except Exception as e:
            logger.warning(f"Redis get error (match cache): {e}")
            self._miss(CacheLayer.MATCH_RESULT)
            return None

    async def set_match(
        self,
        posting_id: str,
        user_id: str,
        result: MatchResult,
        ttl: Optional[int] = None,
    ) -> bool:
        """
        Cache a match result.

        Args:
            posting_id: Stable posting id
            user_id: User the score belongs to
            result: Fully computed match result
            ttl: Expiry in seconds (defaults to the 7 day layer TTL)

        Returns:
            True if cached successfully
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.setex(
                match_key(posting_id, user_id),
                ttl or CacheLayer.MATCH_RESULT.ttl,
                result.model_dump_json(),
            )
            return True

        except Exception as e:
            logger.warning(f"Redis set error (match cache): {e}")
            return False

    async def invalidate_match(self, posting_id: str, user_id: str) -> bool:
        """Drop one cached match result."""
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            return await client.delete(match_key(posting_id, user_id)) > 0

        except Exception as e:
            logger.warning(f"Redis delete error: {e}")
            return False

    async def invalidate_user_matches(self, user_id: str) -> int:
        """
        Drop all cached match results of a user, e.g. after a preference change.

        Uses SCAN so large keyspaces do not block Redis.

        Returns:
            Number of keys deleted
        """
        try:
            client = await self._ensure_connected()
            if not client:
                return 0

            keys = [key async for key in client.scan_iter(match=match_key("*", user_id))]
            if keys:
                return await client.delete(*keys)
            return 0

        except Exception as e:
            logger.warning(f"Redis delete error: {e}")
            return 0

    # ==================== Scraped Pages ====================

    async def get_page(self, url: str) -> Optional[str]:
        try:
            client = await self._ensure_connected()
            if not client:
                return None

            cached = await client.get(page_key(url))
            if cached:
                self._hit(CacheLayer.SCRAPED_PAGE)
                return cached

            self._miss(CacheLayer.SCRAPED_PAGE)
            return None

        except Exception as e:
            logger.warning(f"Redis get error (page cache): {e}")
            self._miss(CacheLayer.SCRAPED_PAGE)
            return None

    async def set_page(self, url: str, html: str) -> bool:
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.setex(page_key(url), CacheLayer.SCRAPED_PAGE.ttl, html)
            return True

        except Exception as e:
            logger.warning(f"Redis set error (page cache): {e}")
            return False

    # ==================== Health & Stats ====================

    async def health_check(self) -> bool:
        """Check Redis connection health."""
        try:
            client = await self._ensure_connected()
            if not client:
                return False

            await client.ping()
            return True

        except Exception as e:
            logger.warning(f"Redis health check failed: {e}")
            return False

    def get_stats(self) -> Dict[str, Dict[str, Any]]:
        """Hit/miss counts and hit rate per layer."""
        stats = {}

        for layer in CacheLayer:
            hits = self.stats["hits"][layer.layer_name]
            misses = self.stats["misses"][layer.layer_name]
            total = hits + misses

            stats[layer.layer_name] = {
                "hits": hits,
                "misses": misses,
                "total": total,
                "hit_rate": hits / total if total > 0 else 0.0,
            }

        return stats

    async def close(self) -> None:
        """Close Redis connection."""
        if self.redis:
            await self.redis.close()
            self.redis = None


# ==================== Factory Function ====================

_cache_instance: Optional[MatchCache] = None


async def get_cache(redis_url: Optional[str] = None) -> MatchCache:
    """
    Get or create the process-wide cache.

    Args:
        redis_url: Optional Redis URL (uses settings if not provided)
    """
    global _cache_instance

    if _cache_instance is None:
        url = redis_url or get_settings().redis_url
        _cache_instance = MatchCache(redis_url=url)

    return _cache_instance
