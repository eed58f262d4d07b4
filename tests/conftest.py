from __future__ import annotations

from pathlib import Path
from typing import List

import pytest

from pairgen.repositories import RepositoryCache
from tests._fixtures.repo_builder import FakeTransport, UpstreamRepos


@pytest.fixture
def upstream(tmp_path: Path) -> UpstreamRepos:
    """Provide a set of fake remote repositories rooted at the pytest tmp_path."""
    return UpstreamRepos(tmp_path)


@pytest.fixture
def transport(upstream: UpstreamRepos) -> FakeTransport:
    return FakeTransport(upstream)


@pytest.fixture
def sleeps() -> List[float]:
    return []


@pytest.fixture
def cache(tmp_path: Path, transport: FakeTransport, sleeps: List[float]) -> RepositoryCache:
    """Repository cache wired to the fake transport, recording backoff delays instead of sleeping."""
    return RepositoryCache(tmp_path / "cache", transport, sleep=sleeps.append)
