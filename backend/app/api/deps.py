"""
Shared route dependencies.
"""

from fastapi import Request

from app.services.cache_service import CacheService


def get_cache(request: Request) -> CacheService:
    return request.app.state.cache
