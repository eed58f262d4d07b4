"""Core data models shared across pairgen components."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple


class Language(str, Enum):
    """Language side of a program pair."""

    C = "c"
    RUST = "rust"

    @property
    def directory_name(self) -> str:
        return f"{self.value}-program"

    @property
    def metadata_key(self) -> str:
        return f"{self.value}_program"

    @property
    def label(self) -> str:
        return "C" if self is Language.C else "Rust"


class FeatureRelationship(str, Enum):
    """Feature set of the Rust program relative to its C counterpart."""

    SUBSET = "subset"
    SUPERSET = "superset"
    EQUIVALENT = "equivalent"
    OVERLAPPING = "overlapping"

    @classmethod
    def from_wire(cls, value: str) -> "FeatureRelationship":
        """Map a metadata value such as ``rust_subset_of_c`` onto the enum."""
        try:
            return _WIRE_RELATIONSHIPS[value]
        except KeyError:
            raise ValueError(f"Unknown feature relationship: {value!r}") from None

    @property
    def wire_value(self) -> str:
        for wire, member in _WIRE_RELATIONSHIPS.items():
            if member is self:
                return wire
        raise AssertionError(self)  # pragma: no cover - table covers every member


_WIRE_RELATIONSHIPS: Dict[str, FeatureRelationship] = {
    "rust_subset_of_c": FeatureRelationship.SUBSET,
    "rust_superset_of_c": FeatureRelationship.SUPERSET,
    "rust_equivalent_to_c": FeatureRelationship.EQUIVALENT,
    "overlapping": FeatureRelationship.OVERLAPPING,
}

FEATURE_RELATIONSHIP_VALUES: Tuple[str, ...] = tuple(_WIRE_RELATIONSHIPS)


class MetadataForm(str, Enum):
    """Shape of a metadata document."""

    INDIVIDUAL = "individual"
    PROJECT = "project"


@dataclass(frozen=True)
class MetadataDocument:
    """A parsed metadata file together with the label it was loaded from."""

    source: str
    data: Any


@dataclass(frozen=True)
class ProgramSource:
    """One language side of a pair."""

    language: Language
    repository_url: str
    source_paths: Tuple[str, ...]
    documentation_url: Optional[str] = None


@dataclass(frozen=True)
class ResolvedPair:
    """One program pair after global/local metadata has been merged."""

    program_name: str
    c_side: ProgramSource
    rust_side: ProgramSource
    feature_relationship: FeatureRelationship
    translation_tools: Tuple[str, ...] = ()
    program_description: str = ""
    origin: str = ""

    def side(self, language: Language) -> ProgramSource:
        return self.c_side if language is Language.C else self.rust_side

    @property
    def sides(self) -> Tuple[ProgramSource, ProgramSource]:
        return (self.c_side, self.rust_side)


@dataclass(frozen=True)
class RepositoryCacheEntry:
    """Association between a repository URL and its local checkout."""

    repository_url: str
    local_path: Path
    cloned_at: datetime


class PairState(str, Enum):
    """Lifecycle of a single pair during a run."""

    PENDING = "pending"
    CLONING = "cloning"
    EXTRACTING = "extracting"
    DONE = "done"
    FAILED = "failed"


@dataclass
class PairResult:
    """Outcome of materializing one pair."""

    program_name: str
    state: PairState = PairState.PENDING
    reason: Optional[str] = None
    c_files: int = 0
    rust_files: int = 0

    @property
    def succeeded(self) -> bool:
        return self.state is PairState.DONE

    def fail(self, reason: str) -> None:
        self.state = PairState.FAILED
        self.reason = reason

    def to_dict(self) -> Dict[str, Any]:
        return {
            "program_name": self.program_name,
            "state": self.state.value,
            "reason": self.reason,
            "c_files": self.c_files,
            "rust_files": self.rust_files,
        }


@dataclass
class RunReport:
    """Per-pair outcomes of one run. Appending is safe from worker threads."""

    mode: str
    results: List[PairResult] = field(default_factory=list)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def add(self, result: PairResult) -> None:
        with self._lock:
            self.results.append(result)

    @property
    def succeeded(self) -> List[PairResult]:
        return [result for result in self.results if result.succeeded]

    @property
    def failed(self) -> List[PairResult]:
        return [result for result in self.results if not result.succeeded]

    @property
    def ok(self) -> bool:
        return not self.failed

    def result_for(self, program_name: str) -> Optional[PairResult]:
        for result in self.results:
            if result.program_name == program_name:
                return result
        return None

    def summary_lines(self) -> List[str]:
        lines: List[str] = []
        for result in self.results:
            if result.succeeded:
                lines.append(
                    f"ok      {result.program_name} "
                    f"(c: {result.c_files} files, rust: {result.rust_files} files)"
                )
            else:
                lines.append(f"FAILED  {result.program_name}: {result.reason}")
        lines.append(
            f"{len(self.succeeded)} succeeded, {len(self.failed)} failed, "
            f"{len(self.results)} total"
        )
        return lines

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode,
            "succeeded": len(self.succeeded),
            "failed": len(self.failed),
            "pairs": [result.to_dict() for result in self.results],
        }
