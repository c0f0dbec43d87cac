"""Z-Dep-Analyzer: dependency graph resolution through native package managers."""

__version__ = "0.1.0"

from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.exceptions import (
    AnalyzerError,
    CyclicGraphDetected,
    DirtyWorkingTree,
    LicenseClassificationConflict,
    LockfileMissing,
    ManagerNotFoundError,
    ResolutionError,
    StorageError,
    ToolInvocationFailed,
    ToolOutputError,
    UnsupportedTopology,
)
from z_dep_analyzer.managers.registry import ManagerRegistry, create_default_registry
from z_dep_analyzer.models.package import AnalyzerRun, ProjectAnalyzerResult
from z_dep_analyzer.orchestrator import AnalyzerOrchestrator

__all__ = [
    "AnalyzerConfig",
    "AnalyzerError",
    "AnalyzerOrchestrator",
    "AnalyzerRun",
    "CyclicGraphDetected",
    "DirtyWorkingTree",
    "LicenseClassificationConflict",
    "LockfileMissing",
    "ManagerNotFoundError",
    "ManagerRegistry",
    "ProjectAnalyzerResult",
    "ResolutionError",
    "StorageError",
    "ToolInvocationFailed",
    "ToolOutputError",
    "UnsupportedTopology",
    "create_default_registry",
]
