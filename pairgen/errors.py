"""Error types raised across pairgen components."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence

from .models import Language


class PairgenError(RuntimeError):
    """Base class for pairgen failures."""


# ----------------------------------------------------------------------
# Load-time errors


class LoadError(PairgenError):
    """A problem with the metadata itself, detected before any cloning."""

    def __init__(self, message: str, *, source: str, pointer: str = "") -> None:
        self.source = source
        self.pointer = pointer
        self.detail = message
        location = f"{source}#{pointer}" if pointer else source
        super().__init__(f"{location}: {message}")


class ValidationError(LoadError):
    """A metadata record does not conform to the expected shape."""


class MergeError(LoadError):
    """A project-form pair is missing local fields required by the merge."""


class DuplicateProgramName(LoadError):
    """Two resolved pairs claim the same output directory."""

    def __init__(
        self,
        program_name: str,
        *,
        source: str,
        pointer: str,
        first_origin: str,
        first_name: Optional[str] = None,
    ) -> None:
        self.program_name = program_name
        self.first_origin = first_origin
        self.first_name = first_name or program_name
        if self.first_name == program_name:
            message = f"duplicate program_name '{program_name}'"
        else:
            message = (
                f"program_name '{program_name}' collides with '{self.first_name}' "
                "on case-insensitive filesystems"
            )
        super().__init__(
            f"{message} (first declared at {first_origin})",
            source=source,
            pointer=pointer,
        )


class MetadataError(PairgenError):
    """Aggregate of every load-time error found in a metadata set."""

    def __init__(self, errors: Sequence[LoadError]) -> None:
        self.errors = list(errors)
        noun = "error" if len(self.errors) == 1 else "errors"
        super().__init__(f"{len(self.errors)} metadata {noun}")


# ----------------------------------------------------------------------
# Repository errors


class TransportError(PairgenError):
    """Raised by a transport when a clone attempt fails."""


class TransientCloneError(TransportError):
    """Clone failure that may succeed on retry (network hiccup, timeout)."""


class PermanentCloneError(TransportError):
    """Clone failure that will not succeed on retry (not found, auth)."""


class CloneFailed(PairgenError):
    """A repository could not be cloned into the cache."""

    def __init__(self, repository_url: str, reason: str, *, transient: bool = False) -> None:
        self.repository_url = repository_url
        self.reason = reason
        self.transient = transient
        super().__init__(f"Failed to clone repository '{repository_url}': {reason}")


# ----------------------------------------------------------------------
# Extraction errors


class ExtractionError(PairgenError):
    """A declared source path could not be materialized."""

    def __init__(self, message: str, *, program_name: str, language: Language, path: str) -> None:
        self.program_name = program_name
        self.language = language
        self.path = path
        super().__init__(message)


class MissingSourcePath(ExtractionError):
    """A declared file or directory does not exist in the checkout."""

    def __init__(self, *, program_name: str, language: Language, path: str) -> None:
        super().__init__(
            f"{language.label} source path '{path}' of '{program_name}' does not exist in the repository",
            program_name=program_name,
            language=language,
            path=path,
        )


class UnsafeSourcePath(ExtractionError):
    """A declared path resolves outside the checkout root."""

    def __init__(self, *, program_name: str, language: Language, path: str, target: Path) -> None:
        self.target = target
        super().__init__(
            f"{language.label} source path '{path}' of '{program_name}' escapes the repository ({target})",
            program_name=program_name,
            language=language,
            path=path,
        )


__all__ = [
    "CloneFailed",
    "DuplicateProgramName",
    "ExtractionError",
    "LoadError",
    "MergeError",
    "MetadataError",
    "MissingSourcePath",
    "PairgenError",
    "PermanentCloneError",
    "TransientCloneError",
    "TransportError",
    "UnsafeSourcePath",
    "ValidationError",
]
