"""
Knowledge helpers shared by the targeting services.
"""

from .ttl_cache import TTLCache

__all__ = ["TTLCache"]
