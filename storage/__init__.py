"""
Storage Package

In-memory caches only; everything is rebuilt on process restart.

Current implementation:
- VolumeCache: short-TTL, single-flight cache for provider volume results

The chain directory cache lives with the Chain Registry (core/chain_registry.py).
"""

from storage.volume_cache import VolumeCache

__all__ = ["VolumeCache"]
