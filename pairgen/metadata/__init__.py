"""Metadata loading and validation for program pairs."""

from .loader import (
    LoadResult,
    discover_metadata_files,
    load_metadata,
    load_pairs,
    merge_project_pair,
    read_metadata_file,
    resolve_document,
)
from .validator import detect_form, is_clonable_url, normalize_source_path

__all__ = [
    "LoadResult",
    "detect_form",
    "discover_metadata_files",
    "is_clonable_url",
    "load_metadata",
    "load_pairs",
    "merge_project_pair",
    "normalize_source_path",
    "read_metadata_file",
    "resolve_document",
]
