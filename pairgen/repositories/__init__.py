"""Repository cache, git transport and URL helpers."""

from .cache import RepositoryCache
from .index import CacheIndex
from .transport import GitTransport, Transport, classify_clone_failure
from .urls import cache_directory_name, normalize_repository_url, repository_name, repository_owner

__all__ = [
    "CacheIndex",
    "GitTransport",
    "RepositoryCache",
    "Transport",
    "cache_directory_name",
    "classify_clone_failure",
    "normalize_repository_url",
    "repository_name",
    "repository_owner",
]
