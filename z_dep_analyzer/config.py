"""Analyzer configuration — environment defaults, overridable per run."""

from __future__ import annotations

import os
from dataclasses import dataclass

_TRUTHY = {"1", "true", "yes", "on"}


def _env_int(key: str, default: int) -> int:
    return int(os.environ.get(key, default))


def _env_float(key: str, default: float | None) -> float | None:
    value = os.environ.get(key)
    if value is None or value == "":
        return default
    return float(value)


def _env_bool(key: str, default: bool) -> bool:
    value = os.environ.get(key)
    if value is None:
        return default
    return value.strip().lower() in _TRUTHY


@dataclass(frozen=True)
class AnalyzerConfig:
    """Settings shared by the orchestrator and every package manager.

    Reads from environment variables in :meth:`from_env`:
        ZDA_MAX_WORKERS        — parallel resolutions (default: 4)
        ZDA_REQUIRE_LOCKFILE   — fail when a lockfile is missing (default: false)
        ZDA_RESOLUTION_TIMEOUT — seconds per definition file (default: none)
        ZDA_MAX_TREE_DEPTH     — dependency tree depth limit (default: 256)
    """

    max_workers: int = 4
    require_lockfile: bool = False
    resolution_timeout: float | None = None
    max_tree_depth: int = 256

    def __post_init__(self) -> None:
        if self.max_workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.max_tree_depth < 1:
            raise ValueError(f"max_tree_depth must be at least 1, got {self.max_tree_depth}")

    @classmethod
    def from_env(cls) -> AnalyzerConfig:
        return cls(
            max_workers=_env_int("ZDA_MAX_WORKERS", 4),
            require_lockfile=_env_bool("ZDA_REQUIRE_LOCKFILE", False),
            resolution_timeout=_env_float("ZDA_RESOLUTION_TIMEOUT", None),
            max_tree_depth=_env_int("ZDA_MAX_TREE_DEPTH", 256),
        )
