"""Configuration loading for pairgen (.pairgen.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

CONFIG_FILENAME = ".pairgen.yml"

DEFAULT_METADATA_PATHS = ("metadata/project", "metadata/individual")
DEFAULT_OUTPUT_DIR = "programs"
DEFAULT_CACHE_DIR = "repository_cache"
DEFAULT_WORKERS = 4


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class CloneConfig:
    """How repositories are fetched into the cache."""

    depth: Optional[int] = 1
    retries: int = 3
    backoff: float = 2.0
    timeout: Optional[float] = 600.0


@dataclass
class DemoConfig:
    """Fixed subset processed by `pairgen demo`."""

    programs: List[str] = field(default_factory=list)
    limit: int = 3


@dataclass
class PairgenConfig:
    """Represents the settings defined in .pairgen.yml."""

    root: Path
    metadata_paths: List[Path] = field(default_factory=list)
    output_dir: Optional[Path] = None
    cache_dir: Optional[Path] = None
    workers: int = DEFAULT_WORKERS
    clone: CloneConfig = field(default_factory=CloneConfig)
    demo: DemoConfig = field(default_factory=DemoConfig)
    log_file: Optional[Path] = None

    def __post_init__(self) -> None:
        if not self.metadata_paths:
            self.metadata_paths = [self.root / path for path in DEFAULT_METADATA_PATHS]
        if self.output_dir is None:
            self.output_dir = self.root / DEFAULT_OUTPUT_DIR
        if self.cache_dir is None:
            self.cache_dir = self.root / DEFAULT_CACHE_DIR


def load_config(config_path: Path) -> PairgenConfig:
    """Load configuration from disk, falling back to defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return PairgenConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    metadata_paths = [_resolve_path(root, item) for item in _as_str_list(data.get("metadata"))]
    output_dir = _optional_path(root, data.get("output_dir"))
    cache_dir = _optional_path(root, data.get("cache_dir"))
    log_file = _optional_path(root, data.get("log_file"))

    workers = _as_int(data.get("workers"))
    if workers is None:
        workers = DEFAULT_WORKERS
    if workers < 1:
        raise ConfigError("workers must be a positive integer")

    clone = CloneConfig()
    clone_data = _as_dict(data.get("clone"))
    if clone_data:
        if "depth" in clone_data:
            depth = _as_int(clone_data.get("depth"))
            clone.depth = depth if depth and depth > 0 else None
        retries = _as_int(clone_data.get("retries"))
        if retries is not None:
            if retries < 0:
                raise ConfigError("clone.retries must not be negative")
            clone.retries = retries
        backoff = _as_float(clone_data.get("backoff"))
        if backoff is not None:
            clone.backoff = max(backoff, 0.0)
        if "timeout" in clone_data:
            timeout = _as_float(clone_data.get("timeout"))
            clone.timeout = timeout if timeout and timeout > 0 else None

    demo = DemoConfig()
    demo_data = _as_dict(data.get("demo"))
    if demo_data:
        demo.programs = _as_str_list(demo_data.get("programs"))
        limit = _as_int(demo_data.get("limit"))
        if limit is not None:
            if limit < 1:
                raise ConfigError("demo.limit must be a positive integer")
            demo.limit = limit

    return PairgenConfig(
        root=root,
        metadata_paths=metadata_paths,
        output_dir=output_dir,
        cache_dir=cache_dir,
        workers=workers,
        clone=clone,
        demo=demo,
        log_file=log_file,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"Failed to read {path}: {exc}") from exc
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _resolve_path(root: Path, value: str) -> Path:
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = root / path
    return path


def _optional_path(root: Path, value: Any) -> Optional[Path]:
    text = _as_str(value)
    if not text:
        return None
    return _resolve_path(root, text)


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return None
    return None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float, bool))]
    return []


__all__ = [
    "CONFIG_FILENAME",
    "CloneConfig",
    "ConfigError",
    "DemoConfig",
    "PairgenConfig",
    "load_config",
]
