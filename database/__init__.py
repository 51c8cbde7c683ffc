# database/__init__.py
"""Storage backends: vector index writer and knowledge tag registries."""
from typing import List, Protocol

from config import TAG_REGISTRY_BACKEND


class TagRegistry(Protocol):
    """Ordered, deduplicated collection of knowledge tags."""

    def list_tags(self) -> List[str]: ...

    def register_tag(self, tag: str) -> bool: ...


def build_tag_registry(backend: str = TAG_REGISTRY_BACKEND) -> TagRegistry:
    """Create the configured tag registry ("redis" or "sql")."""
    if backend == "redis":
        from database.redis_store import RedisTagRegistry

        return RedisTagRegistry()
    if backend == "sql":
        from database.postgres import SqlTagRegistry

        registry = SqlTagRegistry()
        registry.init_database()
        return registry
    raise ValueError(f"Unknown tag registry backend: {backend}")


__all__ = [
    "TagRegistry",
    "build_tag_registry",
]
