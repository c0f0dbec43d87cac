"""NPM resolver — install into node_modules, list the tree, read installed manifests."""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import structlog

from z_dep_analyzer.artifacts import NPM_REGISTRY, SourceDescriptor, resolve_source_artifact
from z_dep_analyzer.exceptions import ResolutionError, ToolOutputError
from z_dep_analyzer.licenses.declared import process
from z_dep_analyzer.licenses.spdx import SpdxOperator
from z_dep_analyzer.managers.base import PackageManager
from z_dep_analyzer.models.identifier import (
    Hash,
    Identifier,
    PackageLinkage,
    RemoteArtifact,
)
from z_dep_analyzer.models.package import (
    Package,
    PackageReference,
    Project,
    ProjectAnalyzerResult,
    Scope,
)
from z_dep_analyzer.progress import ResolutionProgress
from z_dep_analyzer.scratch import exclusive_scratch_dir
from z_dep_analyzer.vcs import parse_author_string, parse_vcs_url, process_project_vcs

log = structlog.get_logger(__name__)

PRODUCTION_SCOPE = "production"
DEVELOPMENT_SCOPE = "development"

SCOPE_NAMES = {
    PRODUCTION_SCOPE: "dependencies",
    DEVELOPMENT_SCOPE: "devDependencies",
}

LIST_ARGS = {
    PRODUCTION_SCOPE: ("list", "--json", "--only=prod"),
    DEVELOPMENT_SCOPE: ("list", "--json", "--only=dev"),
}


@dataclass
class NpmDependency:
    """One node of an `npm list` tree enriched from its installed package.json."""

    name: str
    version: str
    scope: str
    scm: str | None = None
    manifest: dict[str, Any] = field(default_factory=dict, repr=False)
    dependencies: list[NpmDependency] = field(default_factory=list)


def split_name(name: str) -> tuple[str, str]:
    """Split ``@scope/name`` into namespace and name."""
    if name.startswith("@") and "/" in name:
        namespace, _, bare = name.partition("/")
        return namespace, bare
    return "", name


def parse_repository(manifest: Mapping[str, Any]) -> str | None:
    """Repository URL of a manifest.

    ``yarn install`` sometimes writes a non-conforming shortcut string instead
    of the ``{"type": ..., "url": ...}`` object.
    """
    repository = manifest.get("repository")
    if isinstance(repository, Mapping):
        url = repository.get("url")
        return url if isinstance(url, str) else None
    if isinstance(repository, str):
        return repository
    return None


def parse_declared_licenses(manifest: Mapping[str, Any]) -> set[str]:
    """Read ``license`` (string or legacy object) and the legacy ``licenses`` array."""
    declared: set[str] = set()
    entries: list[Any] = [manifest.get("license")]
    licenses = manifest.get("licenses")
    if isinstance(licenses, list):
        entries.extend(licenses)

    for entry in entries:
        if isinstance(entry, Mapping):
            entry = entry.get("type")
        if isinstance(entry, str) and entry.strip():
            declared.add(entry.strip())
    return declared


def parse_authors(manifest: Mapping[str, Any]) -> frozenset[str]:
    author = manifest.get("author")
    if isinstance(author, Mapping):
        author = author.get("name")
    if isinstance(author, str):
        name = parse_author_string(author)
        if name:
            return frozenset({name})
    return frozenset()


def _read_manifest(path: Path) -> dict[str, Any]:
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise ResolutionError(f"Cannot read package manifest '{path}': {exc}", path) from exc
    if not isinstance(data, dict):
        raise ResolutionError(f"Package manifest '{path}' is not a JSON object", path)
    return data


class Npm(PackageManager):
    """The Node package manager, installing with yarn when a yarn.lock is present."""

    DEFINITION_FILE_GLOBS = ("package.json",)

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        if os.name == "nt":
            self.npm, self.yarn = "npm.cmd", "yarn.cmd"
        else:
            self.npm, self.yarn = "npm", "yarn"

    @property
    def manager_name(self) -> str:
        return "NPM"

    @property
    def definition_file_globs(self) -> set[str]:
        return set(self.DEFINITION_FILE_GLOBS)

    def command(self, working_dir: Path | None = None) -> str:
        if working_dir is not None and (working_dir / "yarn.lock").is_file():
            return self.yarn
        return self.npm

    def resolve_dependencies(self, definition_file: Path) -> ProjectAnalyzerResult:
        working_dir = definition_file.parent
        modules_dir = working_dir / "node_modules"
        progress = self.progress = ResolutionProgress(
            self.relative_definition_path(definition_file)
        )

        try:
            # Installing is the easiest way to get the manifests of all transitive
            # dependencies; npm and yarn cache downloads globally.
            with exclusive_scratch_dir(modules_dir, definition_file):
                trees = self._install_and_list(working_dir, modules_dir, progress)
                progress.start_phase("cleanup")
            result = self._build_result(definition_file, trees)
            progress.finish(detail=f"packages={len(result.packages)}")
        except Exception as exc:
            progress.fail(str(exc))
            raise

        log.info(
            "npm.resolved",
            definition_file=progress.definition_file,
            packages=len(result.packages),
        )
        return result

    def _install_and_list(
        self,
        working_dir: Path,
        modules_dir: Path,
        progress: ResolutionProgress,
    ) -> dict[str, list[NpmDependency]]:
        manager_command = self.command(working_dir)
        progress.start_phase("installing")
        log.debug("npm.install", command=manager_command, working_dir=str(working_dir))
        self.run(working_dir, "install", command=manager_command)

        # The tool conflates scopes unless asked for each one separately.
        trees: dict[str, list[NpmDependency]] = {}
        for scope, args in LIST_ARGS.items():
            progress.start_phase(f"listing:{scope}")
            listing = self._list(working_dir, args)
            trees[scope] = self.parse_node_modules(
                modules_dir, listing.get("dependencies") or {}, scope, path=[], chain=[]
            )
        return trees

    def _list(self, working_dir: Path, args: tuple[str, ...]) -> dict[str, Any]:
        # npm list exits non-zero on peer dependency problems but still prints the tree.
        listing = self.run_json(working_dir, *args, command=self.npm, allow_failure=True)
        if not isinstance(listing, dict):
            raise ToolOutputError([self.npm, *args], "expected a JSON object")
        return listing

    def _locate_manifest(self, modules_dir: Path, path: list[str], name: str) -> Path | None:
        """Find the installed package.json of *name* below the packages in *path*.

        Nested installs win over hoisted ones, mirroring Node's module lookup.
        """
        for depth in range(len(path), -1, -1):
            base = modules_dir
            for ancestor in path[:depth]:
                base = base / ancestor / "node_modules"
            candidate = base / name / "package.json"
            if candidate.is_file():
                return candidate
        return None

    def parse_node_modules(
        self,
        modules_dir: Path,
        listing: Mapping[str, Any],
        scope: str,
        path: list[str],
        chain: list[str],
    ) -> list[NpmDependency]:
        """Flatten a nested ``{name: {version, dependencies}}`` listing recursively.

        *path* holds the package names above this level and locates nested
        installs; *chain* holds their ``name@version`` keys for cycle detection,
        so a nested copy of a different version is not mistaken for a cycle.
        """
        result: list[NpmDependency] = []
        for name, entry in sorted(listing.items()):
            if isinstance(entry, Mapping) and (entry.get("missing") or entry.get("peerMissing")):
                log.debug("npm.dependency_missing", dependency=name, scope=scope)
                continue
            if not isinstance(entry, Mapping) or not isinstance(entry.get("version"), str):
                raise ToolOutputError(
                    [self.npm, *LIST_ARGS[scope]], f"dependency '{name}' has no version"
                )
            key = f"{name}@{entry['version']}"
            self.guard_path(modules_dir.parent / "package.json", chain, key)

            manifest_file = self._locate_manifest(modules_dir, path, name)
            manifest = _read_manifest(manifest_file) if manifest_file is not None else {}

            nested = entry.get("dependencies") or {}
            result.append(
                NpmDependency(
                    name=name,
                    version=entry["version"],
                    scope=scope,
                    scm=parse_repository(manifest),
                    manifest=manifest,
                    dependencies=self.parse_node_modules(
                        modules_dir, nested, scope, [*path, name], [*chain, key]
                    ),
                )
            )
        return result

    # ── canonical model ──────────────────────────────────────────────────

    def _to_package(self, dep: NpmDependency) -> Package:
        namespace, name = split_name(dep.name)
        manifest = dep.manifest
        declared = parse_declared_licenses(manifest)
        vcs = parse_vcs_url(dep.scm or "")

        resolved = manifest.get("_resolved")
        integrity = manifest.get("_integrity")
        if isinstance(resolved, str) and resolved.startswith("http"):
            source_artifact = RemoteArtifact(
                resolved, Hash.create(integrity if isinstance(integrity, str) else "")
            )
        else:
            descriptor = SourceDescriptor(dep.name, dep.version, NPM_REGISTRY)
            source_artifact = resolve_source_artifact(descriptor, {}) or RemoteArtifact.EMPTY

        homepage = manifest.get("homepage")
        description = manifest.get("description")
        return Package(
            id=Identifier(type="NPM", namespace=namespace, name=name, version=dep.version),
            authors=parse_authors(manifest),
            declared_licenses=frozenset(declared),
            declared_licenses_processed=process(declared, operator=SpdxOperator.AND),
            description=description if isinstance(description, str) else "",
            homepage_url=homepage if isinstance(homepage, str) else "",
            vcs=vcs,
            vcs_processed=vcs,
            binary_artifact=RemoteArtifact.EMPTY,
            source_artifact=source_artifact,
        )

    def _to_reference(
        self, dep: NpmDependency, packages: dict[Identifier, Package]
    ) -> PackageReference:
        package = self._to_package(dep)
        # Deduplicate by identifier: the first occurrence defines the package.
        package = packages.setdefault(package.id, package)
        return package.to_reference(
            linkage=PackageLinkage.DYNAMIC,
            dependencies=(self._to_reference(d, packages) for d in dep.dependencies),
        )

    def _build_result(
        self,
        definition_file: Path,
        trees: dict[str, list[NpmDependency]],
    ) -> ProjectAnalyzerResult:
        manifest = _read_manifest(definition_file)
        packages: dict[Identifier, Package] = {}

        scopes = frozenset(
            Scope(
                SCOPE_NAMES[scope],
                frozenset(self._to_reference(dep, packages) for dep in deps),
            )
            for scope, deps in trees.items()
        )

        namespace, name = split_name(str(manifest.get("name") or definition_file.parent.name))
        declared = parse_declared_licenses(manifest)
        vcs = parse_vcs_url(parse_repository(manifest) or "")
        homepage = manifest.get("homepage")
        homepage_url = homepage if isinstance(homepage, str) else ""

        project = Project(
            id=Identifier(
                type=self.manager_name,
                namespace=namespace,
                name=name,
                version=str(manifest.get("version") or ""),
            ),
            definition_file_path=self.relative_definition_path(definition_file),
            authors=parse_authors(manifest),
            declared_licenses=frozenset(declared),
            declared_licenses_processed=process(declared, operator=SpdxOperator.AND),
            vcs=vcs,
            vcs_processed=process_project_vcs(
                definition_file.parent, vcs, homepage_url, self.runner
            ),
            homepage_url=homepage_url,
            scopes=scopes,
        )
        return ProjectAnalyzerResult(project, frozenset(packages.values())).validate()
