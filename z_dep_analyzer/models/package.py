"""Canonical dependency graph model: packages, references, scopes, projects."""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

from z_dep_analyzer.exceptions import ResolutionError
from z_dep_analyzer.licenses.declared import EMPTY_PROCESSED_LICENSE, ProcessedDeclaredLicense
from z_dep_analyzer.models.identifier import (
    Identifier,
    PackageLinkage,
    RemoteArtifact,
    VcsInfo,
)


@dataclass(frozen=True)
class PackageReference:
    """A node in a scope's dependency tree.

    The same package can be referenced from several scopes or paths with
    different linkage, hence the separation from :class:`Package`.
    """

    id: Identifier
    linkage: PackageLinkage = PackageLinkage.DYNAMIC
    dependencies: frozenset[PackageReference] = frozenset()

    def walk(self) -> Iterator[PackageReference]:
        """Yield this reference and every reference below it, depth first."""
        yield self
        for dep in sorted(self.dependencies, key=lambda d: d.id):
            yield from dep.walk()


@dataclass(frozen=True)
class Scope:
    """A named dependency root, e.g. "dependencies" or "dev-dependencies"."""

    name: str
    dependencies: frozenset[PackageReference] = frozenset()

    def walk(self) -> Iterator[PackageReference]:
        for dep in sorted(self.dependencies, key=lambda d: d.id):
            yield from dep.walk()


@dataclass(frozen=True)
class Package:
    """One resolved, installable unit."""

    id: Identifier
    authors: frozenset[str] = frozenset()
    declared_licenses: frozenset[str] = frozenset()
    declared_licenses_processed: ProcessedDeclaredLicense = EMPTY_PROCESSED_LICENSE
    description: str = ""
    homepage_url: str = ""
    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    binary_artifact: RemoteArtifact = RemoteArtifact.EMPTY
    source_artifact: RemoteArtifact = RemoteArtifact.EMPTY

    def to_reference(
        self,
        linkage: PackageLinkage = PackageLinkage.DYNAMIC,
        dependencies: Iterable[PackageReference] = (),
    ) -> PackageReference:
        return PackageReference(self.id, linkage, frozenset(dependencies))


@dataclass(frozen=True)
class Project:
    """The manager-local root of resolution; one per definition file."""

    id: Identifier
    definition_file_path: str
    authors: frozenset[str] = frozenset()
    declared_licenses: frozenset[str] = frozenset()
    declared_licenses_processed: ProcessedDeclaredLicense = EMPTY_PROCESSED_LICENSE
    vcs: VcsInfo = VcsInfo.EMPTY
    vcs_processed: VcsInfo = VcsInfo.EMPTY
    homepage_url: str = ""
    scopes: frozenset[Scope] = frozenset()

    def scope(self, name: str) -> Scope | None:
        return next((s for s in self.scopes if s.name == name), None)

    def walk(self) -> Iterator[tuple[Scope, PackageReference]]:
        for scope in sorted(self.scopes, key=lambda s: s.name):
            for ref in scope.walk():
                yield scope, ref

    def distinct_references(self) -> Iterator[tuple[Scope, PackageReference]]:
        """Like :meth:`walk` but visits shared subtrees only once per scope."""
        for scope in sorted(self.scopes, key=lambda s: s.name):
            seen: set[PackageReference] = set()
            stack = list(scope.dependencies)
            while stack:
                ref = stack.pop()
                if ref in seen:
                    continue
                seen.add(ref)
                yield scope, ref
                stack.extend(ref.dependencies)


@dataclass(frozen=True)
class ProjectAnalyzerResult:
    """A resolver's complete output for one definition file."""

    project: Project
    packages: frozenset[Package] = frozenset()

    def validate(self) -> ProjectAnalyzerResult:
        """Check graph invariants and return self.

        * package ids are unique within ``packages``;
        * every referenced id has a package, or is a project-local reference
          whose id is *not* among the packages.
        """
        package_ids: set[Identifier] = set()
        for pkg in self.packages:
            if pkg.id in package_ids:
                raise ResolutionError(
                    f"Duplicate package '{pkg.id.to_coordinates()}' with differing metadata",
                    self.project.definition_file_path,
                )
            package_ids.add(pkg.id)

        for scope, ref in self.project.distinct_references():
            if ref.linkage.is_project_linkage:
                if ref.id in package_ids:
                    raise ResolutionError(
                        f"Project dependency '{ref.id.to_coordinates()}' in scope "
                        f"'{scope.name}' must not be listed as a package",
                        self.project.definition_file_path,
                    )
            elif ref.id not in package_ids:
                raise ResolutionError(
                    f"Dependency '{ref.id.to_coordinates()}' in scope '{scope.name}' "
                    "has no corresponding package",
                    self.project.definition_file_path,
                )
        return self


@dataclass
class AnalyzerRun:
    """Repository-wide merge of all per-definition-file results."""

    analysis_root: Path
    results: list[ProjectAnalyzerResult] = field(default_factory=list)
    issues: dict[str, str] = field(default_factory=dict)  # definition file -> error message

    @property
    def projects(self) -> list[Project]:
        return sorted((r.project for r in self.results), key=lambda p: p.id)

    @property
    def packages(self) -> list[Package]:
        """All non-project packages, deduplicated by identifier (first result wins)."""
        by_id: dict[Identifier, Package] = {}
        for result in self.results:
            for pkg in result.packages:
                by_id.setdefault(pkg.id, pkg)
        project_ids = {p.id for p in self.projects}
        return sorted((p for i, p in by_id.items() if i not in project_ids), key=lambda p: p.id)

    def package(self, identifier: Identifier) -> Package | None:
        return next((p for p in self.packages if p.id == identifier), None)
