"""Cargo resolver — one `cargo metadata` graph query joined with Cargo.lock checksums."""

from __future__ import annotations

import re
import sys
from dataclasses import replace
from pathlib import Path
from urllib.parse import unquote

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from z_dep_analyzer.artifacts import SourceDescriptor, resolve_source_artifact
from z_dep_analyzer.exceptions import (
    LockfileMissing,
    ResolutionError,
    ToolOutputError,
    UnsupportedTopology,
)
from z_dep_analyzer.licenses.declared import process, split_declared
from z_dep_analyzer.licenses.spdx import NOASSERTION, SpdxOperator
from z_dep_analyzer.managers.base import PackageManager
from z_dep_analyzer.models.identifier import Identifier, PackageLinkage, RemoteArtifact
from z_dep_analyzer.models.package import (
    Package,
    PackageReference,
    Project,
    ProjectAnalyzerResult,
    Scope,
)
from z_dep_analyzer.progress import ResolutionProgress
from z_dep_analyzer.vcs import parse_author_string, parse_vcs_url, process_project_vcs

log = structlog.get_logger(__name__)

DEFAULT_KIND_NAME = "normal"
DEV_KIND_NAME = "dev"
BUILD_KIND_NAME = "build"

SCOPE_NAMES = {
    DEFAULT_KIND_NAME: "dependencies",
    DEV_KIND_NAME: "dev-dependencies",
    BUILD_KIND_NAME: "build-dependencies",
}

METADATA_ARGS = ("metadata", "--format-version=1")

# Package ids of path dependencies:
#   legacy:  "member 0.1.0 (path+file:///work/member)"
#   current: "path+file:///work/member#member@0.1.0" or "path+file:///work/member#0.1.0"
_LEGACY_PATH_ID_RE = re.compile(r"^.*\(path\+file://(.*)\)$")
_PATH_ID_RE = re.compile(r"^path\+file://([^#]*)(?:#.*)?$")


# ── cargo metadata --format-version=1 ────────────────────────────────────


class CargoDepKind(BaseModel):
    kind: str | None = None  # None means a normal dependency
    target: str | None = None


class CargoDep(BaseModel):
    name: str = ""
    pkg: str
    dep_kinds: list[CargoDepKind] = Field(default_factory=list)

    @property
    def kinds(self) -> set[str]:
        # Cargo before 1.41 reports no dep_kinds; every edge is normal then.
        if not self.dep_kinds:
            return {DEFAULT_KIND_NAME}
        return {k.kind or DEFAULT_KIND_NAME for k in self.dep_kinds}

    @property
    def is_normal(self) -> bool:
        return DEFAULT_KIND_NAME in self.kinds


class CargoNode(BaseModel):
    id: str
    deps: list[CargoDep] = Field(default_factory=list)


class CargoResolve(BaseModel):
    nodes: list[CargoNode]
    root: str | None = None


class CargoPackage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    version: str
    id: str
    license: str | None = None
    license_file: str | None = None
    description: str | None = None
    source: str | None = None
    authors: list[str] = Field(default_factory=list)
    repository: str | None = None
    homepage: str | None = None
    manifest_path: str = ""


class CargoMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    packages: list[CargoPackage]
    workspace_members: list[str] = Field(default_factory=list)
    resolve: CargoResolve | None = None
    workspace_root: str
    version: int = 1


# ── Cargo.lock ───────────────────────────────────────────────────────────


class CargoLockPackage(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str
    version: str
    source: str | None = None
    checksum: str | None = None


class CargoLockfile(BaseModel):
    model_config = ConfigDict(extra="ignore")

    version: int | None = None
    packages: list[CargoLockPackage] = Field(default_factory=list, alias="package")
    metadata: dict[str, str] = Field(default_factory=dict)


def parse_declared_licenses(pkg: CargoPackage) -> set[str]:
    """Split the legacy "/" separator and mark a license file as NOASSERTION.

    Cargo allows non-SPDX licenses only through ``license-file``; the file
    proves a license exists without telling which one.
    """
    declared = split_declared(pkg.license or "", "/")
    if (pkg.license_file or "").strip():
        declared.add(NOASSERTION)
    return declared


def parse_package(pkg: CargoPackage, hashes: dict[str, str]) -> Package:
    declared = parse_declared_licenses(pkg)
    descriptor = SourceDescriptor(pkg.name, pkg.version, pkg.source)
    vcs = parse_vcs_url(pkg.repository or "")

    return Package(
        # Cargo has no package namespaces.
        id=Identifier(type="Crate", namespace="", name=pkg.name, version=pkg.version),
        authors=frozenset(a for a in map(parse_author_string, pkg.authors) if a),
        declared_licenses=frozenset(declared),
        # "/" was never explicit about the operator; community consensus reads it as OR.
        declared_licenses_processed=process(declared, operator=SpdxOperator.OR),
        description=pkg.description or "",
        homepage_url=pkg.homepage or "",
        vcs=vcs,
        vcs_processed=vcs,
        binary_artifact=RemoteArtifact.EMPTY,
        source_artifact=resolve_source_artifact(descriptor, hashes) or RemoteArtifact.EMPTY,
    )


def read_hashes(lockfile: Path) -> dict[str, str]:
    """Map ``"<name> <version> (<source>)"`` to the checksum recorded in *lockfile*."""
    try:
        data = tomllib.loads(lockfile.read_text(encoding="utf-8"))
        contents = CargoLockfile.model_validate(data)
    except (tomllib.TOMLDecodeError, ValidationError, UnicodeDecodeError) as exc:
        raise ResolutionError(f"Cannot parse lockfile '{lockfile}': {exc}", lockfile) from exc

    # Formats 2 and later (format 2 carries no "version" key) store checksums per package.
    hashes = {
        SourceDescriptor(p.name, p.version, p.source).checksum_key: p.checksum
        for p in contents.packages
        if p.checksum
    }

    # Format 1: [metadata] "checksum <name> <version> (<source>)" = "<sha256>"
    for key, value in contents.metadata.items():
        unquoted = key.strip().strip('"')
        if unquoted.startswith("checksum "):
            hashes[unquoted[len("checksum ") :]] = value
    return hashes


class Cargo(PackageManager):
    """The Cargo package manager for Rust."""

    DEFINITION_FILE_GLOBS = ("Cargo.toml",)

    @property
    def manager_name(self) -> str:
        return "Cargo"

    @property
    def definition_file_globs(self) -> set[str]:
        return set(self.DEFINITION_FILE_GLOBS)

    def transform_version(self, output: str) -> str:
        # e.g. "cargo 1.35.0 (6f3e9c367 2019-04-04)"
        return output.strip().removeprefix("cargo ").split(" ", 1)[0]

    def resolve_dependencies(self, definition_file: Path) -> ProjectAnalyzerResult:
        working_dir = definition_file.parent
        progress = self.progress = ResolutionProgress(
            self.relative_definition_path(definition_file)
        )

        try:
            progress.start_phase("metadata")
            metadata = self._read_metadata(working_dir)

            progress.start_phase("lockfile")
            lockfile = self._resolve_lockfile(metadata, definition_file)
            hashes = read_hashes(lockfile) if lockfile is not None else {}

            progress.start_phase("graph")
            result = self._build_result(definition_file, metadata, hashes)
            progress.finish(detail=f"packages={len(result.packages)}")
        except Exception as exc:
            progress.fail(str(exc))
            raise

        log.info(
            "cargo.resolved",
            definition_file=progress.definition_file,
            packages=len(result.packages),
            scopes=sorted(s.name for s in result.project.scopes),
        )
        return result

    def _read_metadata(self, working_dir: Path) -> CargoMetadata:
        raw = self.run_json(working_dir, *METADATA_ARGS)
        try:
            return CargoMetadata.model_validate(raw)
        except ValidationError as exc:
            raise ToolOutputError(
                [self.command(working_dir), *METADATA_ARGS], str(exc)
            ) from exc

    def _resolve_lockfile(self, metadata: CargoMetadata, definition_file: Path) -> Path | None:
        """Cargo.lock lives next to the Cargo.toml defining the workspace."""
        lockfile = Path(metadata.workspace_root) / "Cargo.lock"
        if lockfile.is_file():
            return lockfile
        if self.config.require_lockfile:
            raise LockfileMissing(lockfile, definition_file)
        log.debug("cargo.lockfile_missing", lockfile=str(lockfile))
        return None

    def is_project_dependency(self, package_id: str) -> bool:
        """Path dependencies inside the analysis root are projects, not packages."""
        match = _LEGACY_PATH_ID_RE.match(package_id) or _PATH_ID_RE.match(package_id)
        if match is None:
            return False
        return self.is_under_analysis_root(unquote(match.group(1)))

    def _build_result(
        self,
        definition_file: Path,
        metadata: CargoMetadata,
        hashes: dict[str, str],
    ) -> ProjectAnalyzerResult:
        if metadata.resolve is None:
            raise ToolOutputError(
                [self.command(), *METADATA_ARGS], "no dependency resolution graph"
            )
        project_id = metadata.resolve.root
        if project_id is None:
            raise UnsupportedTopology(definition_file, "Virtual workspaces are not supported.")

        nodes = {node.id: node for node in metadata.resolve.nodes}
        packages = {pkg.id: parse_package(pkg, hashes) for pkg in metadata.packages}

        def lookup_node(node_id: str) -> CargoNode:
            if node_id not in nodes or node_id not in packages:
                raise ResolutionError(
                    f"'cargo metadata' references unknown package '{node_id}'", definition_file
                )
            return nodes[node_id]

        # Decided up front for every node so that tree building sees final linkage.
        linkage = {
            pkg_id: PackageLinkage.PROJECT_STATIC
            if self.is_project_dependency(pkg_id)
            else PackageLinkage.STATIC
            for pkg_id in packages
        }

        project_node = lookup_node(project_id)
        dep_ids_by_kind: dict[str, list[str]] = {}
        for dep in project_node.deps:
            lookup_node(dep.pkg)
            for kind in sorted(dep.kinds):
                dep_ids_by_kind.setdefault(kind, []).append(dep.pkg)

        references: dict[str, PackageReference] = {}

        def to_reference(node_id: str, path: list[str]) -> PackageReference:
            self.guard_path(definition_file, path, node_id)
            cached = references.get(node_id)
            if cached is not None:
                return cached

            node = lookup_node(node_id)
            child_path = [*path, node_id]
            # Only normal dependencies are transitive; dev and build dependencies
            # of a dependency are not needed to build the project.
            children = frozenset(
                to_reference(dep.pkg, child_path) for dep in node.deps if dep.is_normal
            )
            ref = packages[node_id].to_reference(linkage=linkage[node_id], dependencies=children)
            references[node_id] = ref
            return ref

        # A dev or build dependency may depend back on the project itself; the
        # project then appears once as a PROJECT_STATIC node.
        scopes = frozenset(
            Scope(SCOPE_NAMES[kind], frozenset(to_reference(d, []) for d in dep_ids))
            for kind, dep_ids in dep_ids_by_kind.items()
            if kind in SCOPE_NAMES
        )

        project_pkg = packages[project_id]
        working_dir = definition_file.parent
        project = Project(
            id=replace(project_pkg.id, type=self.manager_name),
            definition_file_path=self.relative_definition_path(definition_file),
            authors=project_pkg.authors,
            declared_licenses=project_pkg.declared_licenses,
            declared_licenses_processed=project_pkg.declared_licenses_processed,
            vcs=project_pkg.vcs,
            vcs_processed=process_project_vcs(
                working_dir, project_pkg.vcs, project_pkg.homepage_url, self.runner
            ),
            homepage_url=project_pkg.homepage_url,
            scopes=scopes,
        )

        non_project_packages = frozenset(
            pkg for pkg_id, pkg in packages.items() if not linkage[pkg_id].is_project_linkage
        )
        return ProjectAnalyzerResult(project, non_project_packages).validate()
