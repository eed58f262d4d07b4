"""Copy declared source files out of a repository checkout."""

from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import FrozenSet, Iterable, Iterator, Set, Tuple

from .errors import MissingSourcePath, UnsafeSourcePath
from .logging import get_logger
from .models import Language

SOURCE_EXTENSIONS: FrozenSet[str] = frozenset({".c", ".h", ".rs"})

_EXCLUDED_DIRS = {".git"}


class SourceExtractor:
    """Materializes a program side's `source_paths` into a destination tree.

    Files named explicitly are copied as-is. Directories are walked and only
    files whose extension matches exactly are kept, so `.C` and `.H`
    (C++) are skipped. Relative paths inside the checkout
    are preserved under the destination.
    """

    def __init__(self, extensions: Iterable[str] = SOURCE_EXTENSIONS) -> None:
        self.extensions = frozenset(extensions)
        self.logger = get_logger("extractor")

    def extract(
        self,
        checkout_path: Path,
        source_paths: Iterable[str],
        destination_dir: Path,
        *,
        program_name: str,
        language: Language,
    ) -> int:
        """Copy every declared path and return the number of files written."""
        root = checkout_path.resolve()
        written: Set[str] = set()
        for declared in source_paths:
            candidate = checkout_path / declared
            if not candidate.exists():
                raise MissingSourcePath(program_name=program_name, language=language, path=declared)

            target = candidate.resolve()
            if not target.is_relative_to(root):
                raise UnsafeSourcePath(
                    program_name=program_name, language=language, path=declared, target=target
                )

            if candidate.is_dir():
                files = list(self._iter_directory(root, checkout_path, candidate))
            elif candidate.is_file():
                files = [(candidate, candidate.relative_to(checkout_path).as_posix())]
            else:
                raise MissingSourcePath(program_name=program_name, language=language, path=declared)

            # Overlapping declarations ("src" and "src/main.rs") name the same file twice.
            for source, relative in files:
                if relative in written:
                    continue
                self._copy(source, destination_dir / relative)
                written.add(relative)

        self.logger.debug(
            "Extracted %d %s files for %s", len(written), language.label, program_name
        )
        return len(written)

    def _iter_directory(
        self, root: Path, checkout_path: Path, directory: Path
    ) -> Iterator[Tuple[Path, str]]:
        for dirpath, dirnames, filenames in os.walk(directory, followlinks=False):
            current_dir = Path(dirpath)
            dirnames[:] = sorted(
                name
                for name in dirnames
                if name not in _EXCLUDED_DIRS and not (current_dir / name).is_symlink()
            )

            for filename in sorted(filenames):
                path = current_dir / filename
                if path.suffix not in self.extensions:
                    continue
                if path.is_symlink():
                    real = path.resolve()
                    if not real.is_relative_to(root) or not real.is_file():
                        self.logger.warning("Skipping %s: symlink points outside the repository", path)
                        continue
                yield path, path.relative_to(checkout_path).as_posix()

    def _copy(self, source: Path, destination: Path) -> None:
        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(source, destination)


__all__ = ["SOURCE_EXTENSIONS", "SourceExtractor"]
