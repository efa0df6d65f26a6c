"""
Cache utilities for the F1 Predictions application
Season-level race data is read far more often than it changes, so it is
cached per season and dropped whenever a race of that season is written.
"""

import functools

from flask import current_app

from app import cache

SEASON_CACHE_KEYS = ("season_stats_{season}", "season_calendar_{season}")


def cached_season_query(key_template, timeout=None):
    """
    Decorator for caching a per-season service result

    Args:
        key_template: Cache key with a ``{season}`` placeholder
        timeout: Cache timeout in seconds (defaults to CACHE_DEFAULT_TIMEOUT)
    """

    def decorator(f):
        @functools.wraps(f)
        def wrapped(self, season, *args, **kwargs):
            cache_key = key_template.format(season=season)

            result = cache.get(cache_key)
            if result is not None:
                current_app.logger.debug(f"Cache hit for key: {cache_key}")
                return result

            result = f(self, season, *args, **kwargs)
            cache.set(cache_key, result, timeout=timeout)
            current_app.logger.debug(f"Cache set for key: {cache_key}")

            return result

        return wrapped

    return decorator


def invalidate_season_cache(season):
    """
    Drop every cached aggregate for a season

    Args:
        season: Season year whose races changed
    """
    keys = [template.format(season=season) for template in SEASON_CACHE_KEYS]
    cache.delete_many(*keys)
    current_app.logger.debug(f"Season cache invalidated for {season}")


def get_cache_stats():
    """Get cache configuration summary"""
    return {
        "type": current_app.config.get("CACHE_TYPE", "Unknown"),
        "timeout": current_app.config.get("CACHE_DEFAULT_TIMEOUT", 300),
        "prefix": current_app.config.get("CACHE_KEY_PREFIX", ""),
    }
