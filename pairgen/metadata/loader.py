"""Metadata discovery, parsing and normalization into resolved pairs."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterable, List, Sequence, Tuple

from ..errors import DuplicateProgramName, LoadError, MergeError, MetadataError, ValidationError
from ..logging import get_logger
from ..models import Language, MetadataDocument, MetadataForm, ProgramSource, ResolvedPair
from .schema import LocalPairConfig, ProjectInformation
from .validator import (
    IssueCollector,
    pointer_join,
    validate_document,
    validate_individual_pair,
    validate_project_information,
    validate_project_pair,
)

_METADATA_SUFFIX = ".json"

logger = get_logger("metadata")


@dataclass
class LoadResult:
    """Resolved pairs keyed by program name, plus every load-time error."""

    pairs: Dict[str, ResolvedPair] = field(default_factory=dict)
    errors: List[LoadError] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors

    def pair_list(self) -> List[ResolvedPair]:
        return list(self.pairs.values())

    def raise_for_errors(self) -> None:
        if self.errors:
            raise MetadataError(self.errors)


def discover_metadata_files(paths: Iterable[Path]) -> Tuple[List[Path], List[LoadError]]:
    """Expand files and directories into an ordered list of metadata files."""
    files: List[Path] = []
    errors: List[LoadError] = []
    seen = set()
    for path in paths:
        if path.is_dir():
            candidates = sorted(
                child for child in path.iterdir() if child.is_file() and child.suffix == _METADATA_SUFFIX
            )
            if not candidates:
                logger.warning("No metadata files found in %s", path)
        elif path.is_file():
            candidates = [path]
        else:
            errors.append(ValidationError("metadata path does not exist", source=str(path)))
            continue
        for candidate in candidates:
            key = candidate.resolve()
            if key in seen:
                continue
            seen.add(key)
            files.append(candidate)
    return files, errors


def read_metadata_file(path: Path) -> MetadataDocument:
    """Parse one metadata file; unreadable or malformed JSON is a validation error."""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ValidationError(f"failed to read file: {exc}", source=str(path)) from exc
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ValidationError(
            f"invalid JSON at line {exc.lineno} column {exc.colno}: {exc.msg}", source=str(path)
        ) from exc
    return MetadataDocument(source=str(path), data=data)


def merge_project_pair(
    info: ProjectInformation, local: LocalPairConfig, *, source: str, pointer: str
) -> ResolvedPair:
    """Combine global project settings with one local pair entry.

    Repository URLs always come from the project; source paths only from the
    local entry. Local translation tools extend the project's list and a local
    feature relationship or documentation URL overrides the project's value.
    """
    sides: Dict[Language, ProgramSource] = {}
    for language in Language:
        global_program = info.c_program if language is Language.C else info.rust_program
        local_program = local.c_program if language is Language.C else local.rust_program
        if local_program is None or not local_program.source_paths:
            raise MergeError(
                f"MissingPaths: no source_paths supplied for the {language.label} program",
                source=source,
                pointer=pointer_join(pointer, language.metadata_key, "source_paths"),
            )
        sides[language] = ProgramSource(
            language=language,
            repository_url=global_program.repository_url,
            documentation_url=local_program.documentation_url or global_program.documentation_url,
            source_paths=local_program.source_paths,
        )

    tools = list(info.translation_tools)
    for tool in local.translation_tools:
        if tool not in tools:
            tools.append(tool)

    return ResolvedPair(
        program_name=local.program_name,
        program_description=local.program_description,
        translation_tools=tuple(tools),
        feature_relationship=local.feature_relationship or info.feature_relationship,
        c_side=sides[Language.C],
        rust_side=sides[Language.RUST],
        origin=f"{source}#{pointer}",
    )


def resolve_document(document: MetadataDocument) -> Tuple[List[ResolvedPair], List[LoadError]]:
    """Validate one document and return the pairs it declares, in file order."""
    issues = IssueCollector(document.source)
    form, entries = validate_document(document.data, issues)
    pairs: List[ResolvedPair] = []
    merge_errors: List[LoadError] = []

    if form is MetadataForm.INDIVIDUAL:
        for index, entry in enumerate(entries):
            pair = validate_individual_pair(entry, pointer_join("", "pairs", index), issues)
            if pair is not None:
                pairs.append(pair)
    else:
        info = validate_project_information(
            document.data.get("project_information"), "/project_information", issues
        )
        for index, entry in enumerate(entries):
            pointer = pointer_join("", "pairs", index)
            local = validate_project_pair(entry, pointer, issues)
            if local is None or info is None:
                continue
            try:
                pairs.append(merge_project_pair(info, local, source=document.source, pointer=pointer))
            except MergeError as exc:
                merge_errors.append(exc)

    errors: List[LoadError] = [*issues.errors, *merge_errors]
    logger.debug(
        "Resolved %d pairs from %s (%s form, %d errors)",
        len(pairs),
        document.source,
        form.value,
        len(errors),
    )
    return pairs, errors


def load_pairs(documents: Iterable[MetadataDocument]) -> LoadResult:
    """Resolve documents into a duplicate-free mapping of pairs.

    A program name declared more than once is reported for every extra
    occurrence and removed from the result entirely, so no output directory is
    ever claimed ambiguously. Names are compared case-folded: `Cat` and `cat`
    would share a directory on macOS and Windows.
    """
    result = LoadResult()
    occurrences: Dict[str, List[ResolvedPair]] = {}
    for document in documents:
        pairs, errors = resolve_document(document)
        result.errors.extend(errors)
        for pair in pairs:
            occurrences.setdefault(pair.program_name.casefold(), []).append(pair)

    for declared in occurrences.values():
        if len(declared) == 1:
            result.pairs[declared[0].program_name] = declared[0]
            continue
        first = declared[0]
        for duplicate in declared[1:]:
            source, _, pointer = duplicate.origin.partition("#")
            result.errors.append(
                DuplicateProgramName(
                    duplicate.program_name,
                    source=source,
                    pointer=pointer,
                    first_origin=first.origin,
                    first_name=first.program_name,
                )
            )
    return result


def load_metadata(paths: Sequence[Path]) -> LoadResult:
    """Discover, read and resolve every metadata file under `paths`."""
    files, errors = discover_metadata_files(paths)
    documents: List[MetadataDocument] = []
    for path in files:
        try:
            documents.append(read_metadata_file(path))
        except ValidationError as exc:
            errors.append(exc)

    result = load_pairs(documents)
    result.errors[:0] = errors
    logger.info(
        "Loaded %d pairs from %d metadata files (%d errors)",
        len(result.pairs),
        len(files),
        len(result.errors),
    )
    return result


__all__ = [
    "LoadResult",
    "discover_metadata_files",
    "load_metadata",
    "load_pairs",
    "merge_project_pair",
    "read_metadata_file",
    "resolve_document",
]
