"""Tests for source extraction out of checkouts."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Mapping

import pytest

from pairgen.errors import MissingSourcePath, UnsafeSourcePath
from pairgen.extractor import SourceExtractor
from pairgen.models import Language


def _checkout(root: Path, files: Mapping[str, str]) -> Path:
    root.mkdir(parents=True)
    (root / ".git").mkdir()
    for relative, content in files.items():
        path = root / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content, encoding="utf-8")
    return root


def _files(root: Path) -> list[str]:
    return sorted(path.relative_to(root).as_posix() for path in root.rglob("*") if path.is_file())


def test_directory_entries_keep_only_source_files(tmp_path: Path) -> None:
    checkout = _checkout(
        tmp_path / "checkout",
        {
            "src/main.c": "int main(void) { return 0; }\n",
            "src/util.h": "#pragma once\n",
            "src/lib/parse.rs": "pub fn parse() {}\n",
            "src/README.md": "# docs\n",
            "src/Makefile": "all:\n",
            "src/tests/fixture.txt": "data\n",
        },
    )
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout, ["src"], destination, program_name="demo", language=Language.C
    )

    assert count == 3
    assert _files(destination) == ["src/lib/parse.rs", "src/main.c", "src/util.h"]
    assert (destination / "src/main.c").read_text(encoding="utf-8") == "int main(void) { return 0; }\n"


def test_directory_filter_is_case_sensitive(tmp_path: Path) -> None:
    checkout = _checkout(
        tmp_path / "checkout",
        {
            "src/main.c": "int main(void) { return 0; }\n",
            "src/widget.C": "class Widget {};\n",
            "src/widget.H": "class Widget;\n",
            "src/legacy.RS": "fn legacy() {}\n",
        },
    )
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout, ["src"], destination, program_name="widget", language=Language.C
    )

    assert count == 1
    assert _files(destination) == ["src/main.c"]


def test_overlapping_entries_copy_each_file_once(tmp_path: Path) -> None:
    checkout = _checkout(
        tmp_path / "checkout",
        {"src/main.rs": "fn main() {}\n", "src/lib.rs": "pub fn lib() {}\n"},
    )
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout,
        ["src", "src/main.rs", "./src/lib.rs"],
        destination,
        program_name="demo",
        language=Language.RUST,
    )

    assert count == 2
    assert _files(destination) == ["src/lib.rs", "src/main.rs"]


def test_file_entries_are_copied_regardless_of_extension(tmp_path: Path) -> None:
    checkout = _checkout(
        tmp_path / "checkout",
        {"Cargo.toml": "[package]\n", "src/main.rs": "fn main() {}\n", "src/lib.rs": "\n"},
    )
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout,
        ["Cargo.toml", "src/main.rs", "src/lib.rs"],
        destination,
        program_name="demo",
        language=Language.RUST,
    )

    assert count == 3
    assert _files(destination) == ["Cargo.toml", "src/lib.rs", "src/main.rs"]


def test_git_directory_is_never_walked(tmp_path: Path) -> None:
    checkout = _checkout(tmp_path / "checkout", {"cat.c": "/* cat */\n", ".git/hooks/sample.c": "x"})
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout, ["."], destination, program_name="cat", language=Language.C
    )

    assert count == 1
    assert _files(destination) == ["cat.c"]


def test_missing_path_names_pair_side_and_path(tmp_path: Path) -> None:
    checkout = _checkout(tmp_path / "checkout", {"src/cat.c": ""})

    with pytest.raises(MissingSourcePath) as excinfo:
        SourceExtractor().extract(
            checkout,
            ["src/cat.c", "src/tac.c"],
            tmp_path / "out",
            program_name="cat",
            language=Language.C,
        )

    error = excinfo.value
    assert error.program_name == "cat"
    assert error.language is Language.C
    assert error.path == "src/tac.c"
    assert str(error) == "C source path 'src/tac.c' of 'cat' does not exist in the repository"


def test_declared_symlink_escaping_checkout_is_refused(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.c").write_text("secret", encoding="utf-8")
    checkout = _checkout(tmp_path / "checkout", {})
    os.symlink(outside, checkout / "vendor")

    with pytest.raises(UnsafeSourcePath) as excinfo:
        SourceExtractor().extract(
            checkout, ["vendor"], tmp_path / "out", program_name="x", language=Language.C
        )

    assert excinfo.value.path == "vendor"
    assert not (tmp_path / "out").exists()


def test_walked_symlinks_outside_checkout_are_skipped(tmp_path: Path) -> None:
    outside = tmp_path / "outside"
    outside.mkdir()
    (outside / "secret.rs").write_text("secret", encoding="utf-8")
    (outside / "nested").mkdir()
    (outside / "nested" / "deep.rs").write_text("deep", encoding="utf-8")
    checkout = _checkout(tmp_path / "checkout", {"src/main.rs": "fn main() {}\n", "src/real.rs": "real"})
    os.symlink(outside / "secret.rs", checkout / "src" / "leak.rs")
    os.symlink(outside / "nested", checkout / "src" / "nested")
    os.symlink(checkout / "src" / "real.rs", checkout / "src" / "alias.rs")
    destination = tmp_path / "out"

    count = SourceExtractor().extract(
        checkout, ["src"], destination, program_name="x", language=Language.RUST
    )

    assert count == 3
    assert _files(destination) == ["src/alias.rs", "src/main.rs", "src/real.rs"]
    assert (destination / "src/alias.rs").read_text(encoding="utf-8") == "real"
    assert not (destination / "src/alias.rs").is_symlink()


def test_custom_extensions(tmp_path: Path) -> None:
    checkout = _checkout(tmp_path / "checkout", {"src/a.c": "", "src/b.cc": ""})
    destination = tmp_path / "out"

    count = SourceExtractor(extensions=[".cc"]).extract(
        checkout, ["src"], destination, program_name="x", language=Language.C
    )

    assert count == 1
    assert _files(destination) == ["src/b.cc"]
