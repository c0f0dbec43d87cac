"""Canonical, ecosystem-agnostic dependency model."""

from z_dep_analyzer.models.identifier import (
    Hash,
    HashAlgorithm,
    Identifier,
    PackageLinkage,
    RemoteArtifact,
    VcsInfo,
    VcsType,
)
from z_dep_analyzer.models.package import (
    AnalyzerRun,
    Package,
    PackageReference,
    Project,
    ProjectAnalyzerResult,
    Scope,
)

__all__ = [
    "AnalyzerRun",
    "Hash",
    "HashAlgorithm",
    "Identifier",
    "Package",
    "PackageLinkage",
    "PackageReference",
    "Project",
    "ProjectAnalyzerResult",
    "RemoteArtifact",
    "Scope",
    "VcsInfo",
    "VcsType",
]
