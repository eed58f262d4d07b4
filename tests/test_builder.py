"""Tests for corpus materialization and run modes."""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List

import pytest

from pairgen.builder import STAGING_DIRNAME, CorpusBuilder, RunMode, select_demo_pairs
from pairgen.errors import PermanentCloneError
from pairgen.extractor import SourceExtractor
from pairgen.models import FeatureRelationship, Language, PairResult, PairState, ProgramSource, ResolvedPair
from pairgen.repositories import RepositoryCache
from tests._fixtures.repo_builder import FakeTransport, UpstreamRepos


def _pair(name: str, c_url: str, c_paths: List[str], rust_url: str, rust_paths: List[str]) -> ResolvedPair:
    return ResolvedPair(
        program_name=name,
        c_side=ProgramSource(Language.C, c_url, tuple(c_paths)),
        rust_side=ProgramSource(Language.RUST, rust_url, tuple(rust_paths)),
        feature_relationship=FeatureRelationship.EQUIVALENT,
        translation_tools=("manual",),
        origin=f"test.json#/pairs/{name}",
    )


def _tree(root: Path) -> Dict[str, bytes]:
    return {
        path.relative_to(root).as_posix(): path.read_bytes()
        for path in sorted(root.rglob("*"))
        if path.is_file()
    }


@pytest.fixture
def coreutils(upstream: UpstreamRepos) -> Dict[str, str]:
    c_url = upstream.add(
        "coreutils",
        {
            "cat.c": "#include <stdio.h>\nint main(void) { return 0; }\n",
            "src/ls.c": "/* ls */\n",
            "src/ls.h": "/* ls header */\n",
            "src/README": "not source\n",
        },
        owner="gnu",
    )
    rust_url = upstream.add(
        "coreutils",
        {
            "src/main.rs": "fn main() { println!(\"cat\"); }\n",
            "src/uu/ls/src/ls.rs": "pub fn ls() {}\n",
            "src/uu/ls/Cargo.toml": "[package]\n",
        },
        owner="uutils",
    )
    return {"c": c_url, "rust": rust_url}


def test_cat_pair_is_materialized_with_identical_contents(
    tmp_path: Path, cache: RepositoryCache, upstream: UpstreamRepos, coreutils: Dict[str, str]
) -> None:
    output = tmp_path / "programs"
    builder = CorpusBuilder(output, cache)

    report = builder.build([_pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])])

    assert report.ok
    result = report.result_for("cat")
    assert result is not None
    assert result.state is PairState.DONE
    assert (result.c_files, result.rust_files) == (1, 1)
    c_source = upstream.path_for(coreutils["c"])
    rust_source = upstream.path_for(coreutils["rust"])
    assert c_source is not None and rust_source is not None
    assert (output / "cat" / "c-program" / "cat.c").read_bytes() == (c_source / "cat.c").read_bytes()
    assert (output / "cat" / "rust-program" / "src" / "main.rs").read_bytes() == (
        rust_source / "src" / "main.rs"
    ).read_bytes()
    assert not (output / STAGING_DIRNAME).exists()


def test_shared_repositories_are_cloned_once(
    tmp_path: Path, cache: RepositoryCache, transport: FakeTransport, coreutils: Dict[str, str]
) -> None:
    pairs = [
        _pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"]),
        _pair("ls", coreutils["c"], ["src/ls.c", "src/ls.h"], coreutils["rust"], ["src/uu/ls"]),
    ]

    report = CorpusBuilder(tmp_path / "programs", cache, workers=2).build(pairs)

    assert report.ok
    assert transport.clone_count(coreutils["c"]) == 1
    assert transport.clone_count(coreutils["rust"]) == 1
    assert _tree(tmp_path / "programs" / "ls") == {
        "c-program/src/ls.c": b"/* ls */\n",
        "c-program/src/ls.h": b"/* ls header */\n",
        "rust-program/src/uu/ls/src/ls.rs": b"pub fn ls() {}\n",
    }


def test_rerun_produces_byte_identical_tree(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    output = tmp_path / "programs"
    pairs = [
        _pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"]),
        _pair("ls", coreutils["c"], ["src"], coreutils["rust"], ["src/uu/ls/src"]),
    ]
    builder = CorpusBuilder(output, cache)

    builder.build(pairs)
    first = _tree(output)
    (output / "cat" / "c-program" / "stray.c").write_text("left over", encoding="utf-8")
    builder.build(pairs)

    assert _tree(output) == first


def test_failing_pair_does_not_affect_others(
    tmp_path: Path,
    cache: RepositoryCache,
    upstream: UpstreamRepos,
    transport: FakeTransport,
    coreutils: Dict[str, str],
) -> None:
    broken = upstream.add("broken", {"main.c": ""})
    transport.fail(broken, PermanentCloneError("remote: Repository not found."))
    pairs = [
        _pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"]),
        _pair("bad", broken, ["main.c"], coreutils["rust"], ["src/main.rs"]),
        _pair("ls", coreutils["c"], ["src/ls.c"], coreutils["rust"], ["src/uu/ls/src"]),
        _pair("typo", coreutils["c"], ["src/tac.c"], coreutils["rust"], ["src/main.rs"]),
    ]

    report = CorpusBuilder(tmp_path / "programs", cache, workers=3).build(pairs)

    assert [result.program_name for result in report.results] == ["cat", "bad", "ls", "typo"]
    assert [result.program_name for result in report.succeeded] == ["cat", "ls"]
    assert [result.program_name for result in report.failed] == ["bad", "typo"]
    bad = report.result_for("bad")
    typo = report.result_for("typo")
    assert bad is not None and typo is not None
    assert bad.state is PairState.FAILED
    assert "Failed to clone repository" in (bad.reason or "")
    assert "src/tac.c" in (typo.reason or "")
    assert not (tmp_path / "programs" / "bad").exists()
    assert not (tmp_path / "programs" / "typo").exists()
    assert report.summary_lines()[-1] == "2 succeeded, 2 failed, 4 total"


def test_demo_mode_selects_the_same_subset_every_time(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    pairs = [
        _pair(name, coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])
        for name in ["cat", "ls", "wc", "head", "tail"]
    ]
    builder = CorpusBuilder(tmp_path / "programs", cache, demo_limit=2)

    first = builder.build(pairs, RunMode.DEMO)
    second = builder.build(pairs, "demo")

    assert [result.program_name for result in first.results] == ["cat", "ls"]
    assert [result.program_name for result in second.results] == ["cat", "ls"]
    assert sorted(path.name for path in (tmp_path / "programs").iterdir()) == ["cat", "ls"]


def test_select_demo_pairs_uses_allow_list_in_load_order(coreutils: Dict[str, str]) -> None:
    pairs = [
        _pair(name, coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])
        for name in ["cat", "ls", "wc"]
    ]

    selected = select_demo_pairs(pairs, programs=["wc", "cat", "missing"])

    assert [pair.program_name for pair in selected] == ["cat", "wc"]
    assert [pair.program_name for pair in select_demo_pairs(pairs, limit=1)] == ["cat"]


def test_delete_mode_removes_output_and_cache(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    output = tmp_path / "programs"
    builder = CorpusBuilder(output, cache)
    builder.build([_pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])])
    assert output.exists() and cache.root.exists()

    report = builder.build([], RunMode.DELETE)

    assert report.ok
    assert report.results == []
    assert not output.exists()
    assert not cache.root.exists()


def test_delete_mode_succeeds_when_nothing_exists(tmp_path: Path, cache: RepositoryCache) -> None:
    builder = CorpusBuilder(tmp_path / "programs", cache)

    report = builder.build([], RunMode.DELETE)

    assert report.ok
    assert not (tmp_path / "programs").exists()


def test_stale_staging_is_cleared_at_start(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    output = tmp_path / "programs"
    stale = output / STAGING_DIRNAME / "cat-12345678" / "c-program"
    stale.mkdir(parents=True)
    (stale / "half.c").write_text("", encoding="utf-8")

    report = CorpusBuilder(output, cache).build(
        [_pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])]
    )

    assert report.ok
    assert sorted(path.name for path in output.iterdir()) == ["cat"]


class _ExplodingExtractor(SourceExtractor):
    def extract(self, checkout_path, source_paths, destination_dir, *, program_name, language):  # type: ignore[no-untyped-def]
        raise OSError(28, "No space left on device")


def test_output_errors_abort_the_run(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    output = tmp_path / "programs"
    builder = CorpusBuilder(output, cache, extractor=_ExplodingExtractor(), workers=1)
    pairs = [
        _pair(name, coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])
        for name in ["cat", "ls"]
    ]

    with pytest.raises(OSError):
        builder.build(pairs)

    assert not (output / STAGING_DIRNAME).exists()
    assert not (output / "cat").exists()


class _RecordingProgress:
    def __init__(self) -> None:
        self.totals: List[int] = []
        self.finished: List[str] = []

    def start(self, total: int) -> None:
        self.totals.append(total)

    def advance(self, result: PairResult) -> None:
        self.finished.append(result.program_name)


def test_progress_sees_every_selected_pair_once(
    tmp_path: Path, cache: RepositoryCache, transport: FakeTransport, coreutils: Dict[str, str]
) -> None:
    missing = "https://git.example.com/example/missing.git"
    transport.fail(missing, PermanentCloneError("remote: Repository not found."))
    pairs = [
        _pair("cat", coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"]),
        _pair("ls", coreutils["c"], ["src/ls.c"], coreutils["rust"], ["src/uu/ls"]),
        _pair("gone", missing, ["main.c"], coreutils["rust"], ["src/main.rs"]),
    ]
    progress = _RecordingProgress()

    report = CorpusBuilder(tmp_path / "programs", cache, workers=3).build(pairs, progress=progress)

    assert progress.totals == [3]
    assert sorted(progress.finished) == ["cat", "gone", "ls"]
    assert report.summary_lines()[-1] == "2 succeeded, 1 failed, 3 total"


def test_progress_total_follows_demo_selection(
    tmp_path: Path, cache: RepositoryCache, coreutils: Dict[str, str]
) -> None:
    pairs = [
        _pair(name, coreutils["c"], ["cat.c"], coreutils["rust"], ["src/main.rs"])
        for name in ["cat", "ls", "wc", "head"]
    ]
    builder = CorpusBuilder(tmp_path / "programs", cache, demo_limit=2)
    progress = _RecordingProgress()

    assert [pair.program_name for pair in builder.select(pairs, "demo")] == ["cat", "ls"]
    assert builder.select(pairs, RunMode.DELETE) == []

    builder.build(pairs, RunMode.DEMO, progress=progress)

    assert progress.totals == [2]
    assert sorted(progress.finished) == ["cat", "ls"]
