"""Source-form records read from project metadata files before merging."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple

from ..models import FeatureRelationship

INDIVIDUAL_PAIR_KEYS = frozenset(
    {
        "program_name",
        "program_description",
        "translation_tools",
        "feature_relationship",
        "c_program",
        "rust_program",
    }
)
INDIVIDUAL_PROGRAM_KEYS = frozenset({"documentation_url", "repository_url", "source_paths"})

PROJECT_INFORMATION_KEYS = INDIVIDUAL_PAIR_KEYS
GLOBAL_PROGRAM_KEYS = frozenset({"documentation_url", "repository_url"})

LOCAL_PAIR_KEYS = INDIVIDUAL_PAIR_KEYS
LOCAL_PROGRAM_KEYS = frozenset({"documentation_url", "source_paths"})

INDIVIDUAL_DOCUMENT_KEYS = frozenset({"pairs"})
PROJECT_DOCUMENT_KEYS = frozenset({"project_information", "pairs"})


@dataclass(frozen=True)
class GlobalProgramConfig:
    """Repository settings shared by every pair of a project."""

    repository_url: str
    documentation_url: Optional[str] = None


@dataclass(frozen=True)
class ProjectInformation:
    """The `project_information` block of a project metadata file."""

    project_name: str
    translation_tools: Tuple[str, ...]
    feature_relationship: FeatureRelationship
    c_program: GlobalProgramConfig
    rust_program: GlobalProgramConfig
    program_description: str = ""


@dataclass(frozen=True)
class LocalProgramConfig:
    """Per-pair side settings; only the paths are mandatory after merging."""

    source_paths: Tuple[str, ...] = ()
    documentation_url: Optional[str] = None


@dataclass(frozen=True)
class LocalPairConfig:
    """One entry of a project file's `pairs` array."""

    program_name: str
    program_description: str = ""
    translation_tools: Tuple[str, ...] = ()
    feature_relationship: Optional[FeatureRelationship] = None
    c_program: Optional[LocalProgramConfig] = None
    rust_program: Optional[LocalProgramConfig] = None
