"""Helpers for deriving names and cache locations from repository URLs."""

from __future__ import annotations

import hashlib
import re

_UNSAFE_NAME_CHARS = re.compile(r"[^A-Za-z0-9._-]+")


def normalize_repository_url(url: str) -> str:
    """Return the cache key for a URL; `.../eza` and `.../eza.git/` are the same repository."""
    normalized = url.strip().rstrip("/")
    if normalized.endswith(".git"):
        normalized = normalized[: -len(".git")]
    return normalized.rstrip("/")


def repository_name(url: str) -> str:
    """Return the repository name, e.g. `eza` for https://github.com/eza-community/eza.git."""
    last_segment = normalize_repository_url(url).split("/")[-1]
    if ":" in last_segment:
        last_segment = last_segment.rsplit(":", 1)[-1]
    return last_segment


def repository_owner(url: str) -> str | None:
    """Return the owner segment of a hosted repository URL, if it has one."""
    normalized = normalize_repository_url(url)
    if "://" in normalized:
        # Drop the scheme and host.
        parts = normalized.split("://", 1)[1].split("/")[1:]
    elif "@" in normalized and ":" in normalized:
        parts = normalized.split(":", 1)[1].split("/")
    else:
        parts = normalized.split("/")
    parts = [part for part in parts if part]
    if len(parts) < 2:
        return None
    return parts[-2]


def cache_directory_name(url: str) -> str:
    """Return a stable, filesystem-safe directory name for a repository checkout."""
    normalized = normalize_repository_url(url)
    digest = hashlib.sha1(normalized.encode("utf-8")).hexdigest()[:12]
    name = _safe_segment(repository_name(url)) or "repository"
    owner = repository_owner(url)
    if owner:
        name = f"{_safe_segment(owner)}__{name}"
    return f"{name}-{digest}"


def _safe_segment(value: str) -> str:
    return _UNSAFE_NAME_CHARS.sub("-", value).strip("-.")


__all__ = [
    "cache_directory_name",
    "normalize_repository_url",
    "repository_name",
    "repository_owner",
]
