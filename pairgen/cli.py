"""CLI entrypoints for pairgen commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Tuple

from rich.console import Console
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)

from .builder import CorpusBuilder, RunMode
from .config import (
    CONFIG_FILENAME,
    DEFAULT_CACHE_DIR,
    DEFAULT_OUTPUT_DIR,
    ConfigError,
    PairgenConfig,
    load_config,
)
from .errors import MetadataError
from .logging import configure_logging, get_logger
from .metadata import LoadResult, load_metadata
from .models import PairResult, RunReport
from .repositories import GitTransport, RepositoryCache

EXIT_OK = 0
EXIT_PAIRS_FAILED = 1
EXIT_METADATA_INVALID = 2

_COMMAND_MODES = {
    "run": RunMode.FULL,
    "download": RunMode.FULL,
    "demo": RunMode.DEMO,
    "delete": RunMode.DELETE,
}


def _add_common_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    def _default(value: object) -> object:
        return argparse.SUPPRESS if suppress_default else value

    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=_default(False),
        help="Increase log verbosity for troubleshooting.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=_default(None),
        help=f"Path to the configuration file (defaults to ./{CONFIG_FILENAME}).",
    )
    parser.add_argument(
        "--output",
        type=Path,
        default=_default(None),
        help="Directory receiving the program pairs (overrides output_dir).",
    )
    parser.add_argument(
        "--cache",
        type=Path,
        default=_default(None),
        help="Directory holding repository checkouts (overrides cache_dir).",
    )


def _add_build_options(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    default = argparse.SUPPRESS if suppress_default else None
    parser.add_argument(
        "--metadata",
        type=Path,
        action="append",
        default=default,
        help="Metadata file or directory; repeat to load several (overrides metadata).",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=default,
        help="Number of pairs processed concurrently (overrides workers).",
    )
    parser.add_argument(
        "--report",
        type=Path,
        default=default,
        help="Write the run report as JSON to this path.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pairgen",
        description="Assemble a corpus of matched C and Rust program pairs from metadata.",
    )
    _add_common_options(parser)
    _add_build_options(parser)
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser(
        "run",
        aliases=["download"],
        help="Download every program pair declared in the metadata (default).",
    )
    _add_common_options(run_parser, suppress_default=True)
    _add_build_options(run_parser, suppress_default=True)

    demo_parser = subparsers.add_parser(
        "demo",
        help="Download a small fixed subset of program pairs.",
    )
    _add_common_options(demo_parser, suppress_default=True)
    _add_build_options(demo_parser, suppress_default=True)

    delete_parser = subparsers.add_parser(
        "delete",
        help="Remove downloaded program pairs and the repository cache.",
    )
    _add_common_options(delete_parser, suppress_default=True)

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint for pairgen commands. Returns the process exit status."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config or Path.cwd())
    except ConfigError as exc:
        parser.exit(EXIT_METADATA_INVALID, f"{exc}\n")
    _apply_overrides(config, args)

    configure_logging(verbose=bool(args.verbose), log_file=config.log_file)
    logger = get_logger("cli")

    command = args.command or "run"
    mode = _COMMAND_MODES[command]
    output_dir, cache_dir = _output_paths(config)
    builder = _make_builder(config)

    if mode is RunMode.DELETE:
        try:
            builder.build([], RunMode.DELETE)
        except OSError as exc:
            parser.exit(EXIT_PAIRS_FAILED, f"pairgen delete failed: {exc}\n")
        print(f"Removed {_relativize(output_dir)} and {_relativize(cache_dir)}")
        return EXIT_OK

    result = load_metadata(config.metadata_paths)
    try:
        result.raise_for_errors()
    except MetadataError as exc:
        for error in exc.errors:
            print(f"error: {error}", file=sys.stderr)
        parser.exit(EXIT_METADATA_INVALID, f"{exc}; no pairs were processed.\n")

    try:
        report = _build_with_progress(builder, result, mode)
    except OSError as exc:
        logger.debug("Fatal filesystem error", exc_info=True)
        parser.exit(EXIT_PAIRS_FAILED, f"pairgen {command} failed: {exc}\nRun with --verbose for more details.\n")

    for line in report.summary_lines():
        print(line)
    report_path = getattr(args, "report", None)
    if report_path is not None:
        _write_report(report, report_path)
    return EXIT_OK if report.ok else EXIT_PAIRS_FAILED


def _apply_overrides(config: PairgenConfig, args: argparse.Namespace) -> None:
    if getattr(args, "output", None) is not None:
        config.output_dir = args.output
    if getattr(args, "cache", None) is not None:
        config.cache_dir = args.cache
    if getattr(args, "metadata", None):
        config.metadata_paths = list(args.metadata)
    workers = getattr(args, "workers", None)
    if workers is not None:
        config.workers = max(workers, 1)


def _output_paths(config: PairgenConfig) -> Tuple[Path, Path]:
    output_dir = config.output_dir or config.root / DEFAULT_OUTPUT_DIR
    cache_dir = config.cache_dir or config.root / DEFAULT_CACHE_DIR
    return output_dir, cache_dir


def _make_builder(config: PairgenConfig) -> CorpusBuilder:
    output_dir, cache_dir = _output_paths(config)
    cache = RepositoryCache(
        cache_dir,
        GitTransport(timeout=config.clone.timeout),
        depth=config.clone.depth,
        retries=config.clone.retries,
        backoff=config.clone.backoff,
    )
    return CorpusBuilder(
        output_dir,
        cache,
        workers=config.workers,
        demo_programs=config.demo.programs,
        demo_limit=config.demo.limit,
    )


class _PairProgress:
    """Advances a rich progress task as pair results come in."""

    def __init__(self, progress: Progress, description: str = "Materializing pairs") -> None:
        self._progress = progress
        self._description = description
        self._task: Optional[TaskID] = None

    def start(self, total: int) -> None:
        self._task = self._progress.add_task(self._description, total=total)

    def advance(self, result: PairResult) -> None:
        if self._task is not None:
            self._progress.advance(self._task)


def _build_with_progress(builder: CorpusBuilder, result: LoadResult, mode: RunMode) -> RunReport:
    console = Console(stderr=True)
    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        console=console,
        transient=True,
        disable=not console.is_terminal,
    ) as progress:
        return builder.build(result.pair_list(), mode, progress=_PairProgress(progress))


def _write_report(report: RunReport, path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(report.to_dict(), indent=2) + "\n", encoding="utf-8")


def _relativize(path: Path) -> str:
    try:
        return str(path.relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
