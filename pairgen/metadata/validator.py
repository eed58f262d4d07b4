"""Structural validation of metadata records.

Every check reports a :class:`~pairgen.errors.ValidationError` carrying the
metadata source and a JSON pointer to the offending field. Validators never
raise for bad input; they collect errors so that a single malformed entry does
not hide problems elsewhere in the same file.
"""

from __future__ import annotations

import re
from pathlib import PurePosixPath
from typing import Any, Iterable, List, Mapping, Optional, Tuple

from ..errors import ValidationError
from ..models import (
    FEATURE_RELATIONSHIP_VALUES,
    FeatureRelationship,
    Language,
    MetadataForm,
    ProgramSource,
    ResolvedPair,
)
from .schema import (
    GLOBAL_PROGRAM_KEYS,
    INDIVIDUAL_DOCUMENT_KEYS,
    INDIVIDUAL_PAIR_KEYS,
    INDIVIDUAL_PROGRAM_KEYS,
    LOCAL_PAIR_KEYS,
    LOCAL_PROGRAM_KEYS,
    PROJECT_DOCUMENT_KEYS,
    PROJECT_INFORMATION_KEYS,
    GlobalProgramConfig,
    LocalPairConfig,
    LocalProgramConfig,
    ProjectInformation,
)

_PROGRAM_NAME_PATTERN = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._+-]*$")
_CLONE_URL_PATTERN = re.compile(r"^(?:https?|ssh|git|file)://\S+$")
_SCP_URL_PATTERN = re.compile(r"^[\w.-]+@[\w.-]+:\S+$")
_DOCUMENTATION_URL_PATTERN = re.compile(r"^https?://\S+$")
_WINDOWS_DRIVE_PATTERN = re.compile(r"^[A-Za-z]:[\\/]")


class IssueCollector:
    """Accumulates validation errors for one metadata source."""

    def __init__(self, source: str) -> None:
        self.source = source
        self.errors: List[ValidationError] = []

    def add(self, pointer: str, message: str) -> None:
        self.errors.append(ValidationError(message, source=self.source, pointer=pointer))

    def mark(self) -> int:
        return len(self.errors)

    def clean_since(self, mark: int) -> bool:
        return len(self.errors) == mark


def pointer_join(base: str, *parts: object) -> str:
    """Extend a JSON pointer, escaping `~` and `/` per RFC 6901."""
    pointer = base
    for part in parts:
        token = str(part).replace("~", "~0").replace("/", "~1")
        pointer = f"{pointer}/{token}"
    return pointer


def detect_form(data: Any) -> MetadataForm:
    if isinstance(data, Mapping) and "project_information" in data:
        return MetadataForm.PROJECT
    return MetadataForm.INDIVIDUAL


def validate_document(data: Any, issues: IssueCollector) -> Tuple[MetadataForm, List[Any]]:
    """Check the document envelope and return its form and raw pair entries."""
    form = detect_form(data)
    if not isinstance(data, Mapping):
        issues.add("", "metadata document must be a JSON object")
        return form, []

    allowed = PROJECT_DOCUMENT_KEYS if form is MetadataForm.PROJECT else INDIVIDUAL_DOCUMENT_KEYS
    _check_keys(data, allowed, "", issues)

    pairs = data.get("pairs")
    if pairs is None:
        issues.add("/pairs", "required field is missing")
        return form, []
    if not isinstance(pairs, list):
        issues.add("/pairs", "must be an array")
        return form, []
    if not pairs:
        issues.add("/pairs", "must contain at least one pair")
    return form, pairs


def validate_individual_pair(
    entry: Any, pointer: str, issues: IssueCollector
) -> Optional[ResolvedPair]:
    """Validate a complete individual-form record and build its pair."""
    mark = issues.mark()
    if not isinstance(entry, Mapping):
        issues.add(pointer, "pair entry must be a JSON object")
        return None
    _check_keys(entry, INDIVIDUAL_PAIR_KEYS, pointer, issues)

    program_name = _program_name(entry, pointer, issues)
    description = _optional_str(entry, "program_description", pointer, issues) or ""
    tools = _string_list(entry, "translation_tools", pointer, issues, required=True)
    relationship = _relationship(entry, pointer, issues, required=True)

    c_side = _individual_program(entry, Language.C, pointer, issues)
    rust_side = _individual_program(entry, Language.RUST, pointer, issues)

    if not issues.clean_since(mark):
        return None
    if program_name is None or relationship is None or c_side is None or rust_side is None:
        return None
    return ResolvedPair(
        program_name=program_name,
        program_description=description,
        translation_tools=tools,
        feature_relationship=relationship,
        c_side=c_side,
        rust_side=rust_side,
        origin=f"{issues.source}#{pointer}",
    )


def validate_project_information(
    data: Any, pointer: str, issues: IssueCollector
) -> Optional[ProjectInformation]:
    """Validate the global configuration block of a project file."""
    mark = issues.mark()
    if not isinstance(data, Mapping):
        issues.add(pointer, "project_information must be a JSON object")
        return None
    _check_keys(data, PROJECT_INFORMATION_KEYS, pointer, issues)

    project_name = _required_str(data, "program_name", pointer, issues)
    description = _optional_str(data, "program_description", pointer, issues) or ""
    tools = _string_list(data, "translation_tools", pointer, issues, required=True)
    relationship = _relationship(data, pointer, issues, required=True)

    c_program = _global_program(data, Language.C, pointer, issues)
    rust_program = _global_program(data, Language.RUST, pointer, issues)

    if not issues.clean_since(mark):
        return None
    if project_name is None or relationship is None or c_program is None or rust_program is None:
        return None
    return ProjectInformation(
        project_name=project_name,
        program_description=description,
        translation_tools=tools,
        feature_relationship=relationship,
        c_program=c_program,
        rust_program=rust_program,
    )


def validate_project_pair(
    entry: Any, pointer: str, issues: IssueCollector
) -> Optional[LocalPairConfig]:
    """Validate one local pair entry of a project file.

    Missing `source_paths` are not reported here: the merge step owns that
    check because it is what makes the local entry incomplete.
    """
    mark = issues.mark()
    if not isinstance(entry, Mapping):
        issues.add(pointer, "pair entry must be a JSON object")
        return None
    _check_keys(entry, LOCAL_PAIR_KEYS, pointer, issues)

    program_name = _program_name(entry, pointer, issues)
    description = _optional_str(entry, "program_description", pointer, issues) or ""
    tools = _string_list(entry, "translation_tools", pointer, issues, required=False)
    relationship = _relationship(entry, pointer, issues, required=False)

    c_program = _local_program(entry, Language.C, pointer, issues)
    rust_program = _local_program(entry, Language.RUST, pointer, issues)

    if not issues.clean_since(mark) or program_name is None:
        return None
    return LocalPairConfig(
        program_name=program_name,
        program_description=description,
        translation_tools=tools,
        feature_relationship=relationship,
        c_program=c_program,
        rust_program=rust_program,
    )


def is_clonable_url(value: str) -> bool:
    return bool(_CLONE_URL_PATTERN.match(value) or _SCP_URL_PATTERN.match(value))


def normalize_source_path(value: str) -> Optional[str]:
    """Return the canonical POSIX form of a relative path, or None when unsafe."""
    if not value or value != value.strip():
        return None
    if value.startswith(("/", "\\")) or _WINDOWS_DRIVE_PATTERN.match(value):
        return None
    path = PurePosixPath(value.replace("\\", "/"))
    if ".." in path.parts:
        return None
    return path.as_posix()


# ----------------------------------------------------------------------
# Side validators


def _individual_program(
    entry: Mapping[str, Any], language: Language, pointer: str, issues: IssueCollector
) -> Optional[ProgramSource]:
    key = language.metadata_key
    side_pointer = pointer_join(pointer, key)
    data = entry.get(key)
    if data is None:
        issues.add(side_pointer, "required field is missing")
        return None
    if not isinstance(data, Mapping):
        issues.add(side_pointer, "must be a JSON object")
        return None
    _check_keys(data, INDIVIDUAL_PROGRAM_KEYS, side_pointer, issues)

    repository_url = _repository_url(data, side_pointer, issues)
    documentation_url = _documentation_url(data, side_pointer, issues)
    paths = _source_paths(data, side_pointer, issues, required=True)
    if repository_url is None or not paths:
        return None
    return ProgramSource(
        language=language,
        repository_url=repository_url,
        documentation_url=documentation_url,
        source_paths=paths,
    )


def _global_program(
    data: Mapping[str, Any], language: Language, pointer: str, issues: IssueCollector
) -> Optional[GlobalProgramConfig]:
    key = language.metadata_key
    side_pointer = pointer_join(pointer, key)
    program = data.get(key)
    if program is None:
        issues.add(side_pointer, "required field is missing")
        return None
    if not isinstance(program, Mapping):
        issues.add(side_pointer, "must be a JSON object")
        return None
    if "source_paths" in program:
        issues.add(
            pointer_join(side_pointer, "source_paths"),
            "source paths belong to individual pairs, not project_information",
        )
    _check_keys(program, GLOBAL_PROGRAM_KEYS | {"source_paths"}, side_pointer, issues)

    repository_url = _repository_url(program, side_pointer, issues)
    documentation_url = _documentation_url(program, side_pointer, issues)
    if repository_url is None:
        return None
    return GlobalProgramConfig(repository_url=repository_url, documentation_url=documentation_url)


def _local_program(
    entry: Mapping[str, Any], language: Language, pointer: str, issues: IssueCollector
) -> Optional[LocalProgramConfig]:
    key = language.metadata_key
    side_pointer = pointer_join(pointer, key)
    data = entry.get(key)
    if data is None:
        return None
    if not isinstance(data, Mapping):
        issues.add(side_pointer, "must be a JSON object")
        return None
    if "repository_url" in data:
        issues.add(
            pointer_join(side_pointer, "repository_url"),
            "repository_url is set by project_information and cannot be overridden",
        )
    _check_keys(data, LOCAL_PROGRAM_KEYS | {"repository_url"}, side_pointer, issues)

    documentation_url = _documentation_url(data, side_pointer, issues)
    paths = _source_paths(data, side_pointer, issues, required=False)
    return LocalProgramConfig(source_paths=paths or (), documentation_url=documentation_url)


# ----------------------------------------------------------------------
# Field validators


def _check_keys(
    data: Mapping[str, Any], allowed: Iterable[str], pointer: str, issues: IssueCollector
) -> None:
    allowed_set = set(allowed)
    for key in data:
        if key not in allowed_set:
            issues.add(pointer_join(pointer, key), "unexpected field")


def _required_str(
    data: Mapping[str, Any], key: str, pointer: str, issues: IssueCollector
) -> Optional[str]:
    field_pointer = pointer_join(pointer, key)
    value = data.get(key)
    if value is None:
        issues.add(field_pointer, "required field is missing")
        return None
    if not isinstance(value, str) or not value.strip():
        issues.add(field_pointer, "must be a non-empty string")
        return None
    return value


def _optional_str(
    data: Mapping[str, Any], key: str, pointer: str, issues: IssueCollector
) -> Optional[str]:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        issues.add(pointer_join(pointer, key), "must be a string")
        return None
    return value


def _program_name(
    data: Mapping[str, Any], pointer: str, issues: IssueCollector
) -> Optional[str]:
    value = _required_str(data, "program_name", pointer, issues)
    if value is None:
        return None
    if not _PROGRAM_NAME_PATTERN.match(value):
        issues.add(
            pointer_join(pointer, "program_name"),
            f"'{value}' is not a safe directory name (letters, digits, '.', '_', '+', '-')",
        )
        return None
    return value


def _string_list(
    data: Mapping[str, Any], key: str, pointer: str, issues: IssueCollector, *, required: bool
) -> Tuple[str, ...]:
    field_pointer = pointer_join(pointer, key)
    value = data.get(key)
    if value is None:
        if required:
            issues.add(field_pointer, "required field is missing")
        return ()
    if not isinstance(value, list):
        issues.add(field_pointer, "must be an array of strings")
        return ()
    items: List[str] = []
    for index, item in enumerate(value):
        if not isinstance(item, str) or not item.strip():
            issues.add(pointer_join(field_pointer, index), "must be a non-empty string")
            continue
        items.append(item)
    return tuple(items)


def _relationship(
    data: Mapping[str, Any], pointer: str, issues: IssueCollector, *, required: bool
) -> Optional[FeatureRelationship]:
    field_pointer = pointer_join(pointer, "feature_relationship")
    value = data.get("feature_relationship")
    if value is None:
        if required:
            issues.add(field_pointer, "required field is missing")
        return None
    if not isinstance(value, str):
        issues.add(field_pointer, "must be a string")
        return None
    try:
        return FeatureRelationship.from_wire(value)
    except ValueError:
        expected = ", ".join(FEATURE_RELATIONSHIP_VALUES)
        issues.add(field_pointer, f"'{value}' is not one of: {expected}")
        return None


def _repository_url(
    data: Mapping[str, Any], pointer: str, issues: IssueCollector
) -> Optional[str]:
    value = _required_str(data, "repository_url", pointer, issues)
    if value is None:
        return None
    if not is_clonable_url(value):
        issues.add(pointer_join(pointer, "repository_url"), f"'{value}' is not a git-clonable URL")
        return None
    return value


def _documentation_url(
    data: Mapping[str, Any], pointer: str, issues: IssueCollector
) -> Optional[str]:
    value = _optional_str(data, "documentation_url", pointer, issues)
    if value is None:
        return None
    if not _DOCUMENTATION_URL_PATTERN.match(value):
        issues.add(pointer_join(pointer, "documentation_url"), f"'{value}' is not an http(s) URL")
        return None
    return value


def _source_paths(
    data: Mapping[str, Any], pointer: str, issues: IssueCollector, *, required: bool
) -> Optional[Tuple[str, ...]]:
    field_pointer = pointer_join(pointer, "source_paths")
    value = data.get("source_paths")
    if value is None:
        if required:
            issues.add(field_pointer, "required field is missing")
        return None
    if not isinstance(value, list):
        issues.add(field_pointer, "must be an array of relative paths")
        return None
    if not value:
        if required:
            issues.add(field_pointer, "must list at least one path")
        return ()

    paths: List[str] = []
    for index, item in enumerate(value):
        item_pointer = pointer_join(field_pointer, index)
        if not isinstance(item, str):
            issues.add(item_pointer, "must be a string")
            continue
        normalized = normalize_source_path(item)
        if normalized is None:
            issues.add(item_pointer, f"'{item}' must be a relative path inside the repository")
            continue
        paths.append(normalized)
    return tuple(paths)


__all__ = [
    "IssueCollector",
    "detect_form",
    "is_clonable_url",
    "normalize_source_path",
    "pointer_join",
    "validate_document",
    "validate_individual_pair",
    "validate_project_information",
    "validate_project_pair",
]
