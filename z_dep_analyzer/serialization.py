"""Deterministic JSON-ready dicts for analyzer results."""

from __future__ import annotations

from typing import Any

from z_dep_analyzer.licenses.declared import ProcessedDeclaredLicense
from z_dep_analyzer.models.identifier import RemoteArtifact, VcsInfo
from z_dep_analyzer.models.package import (
    AnalyzerRun,
    Package,
    PackageReference,
    Project,
    ProjectAnalyzerResult,
    Scope,
)
from z_dep_analyzer.policy.rules import RuleViolation


def _vcs(vcs: VcsInfo) -> dict[str, str]:
    return {"type": vcs.type.value, "url": vcs.url, "revision": vcs.revision, "path": vcs.path}


def _artifact(artifact: RemoteArtifact) -> dict[str, Any]:
    return {
        "url": artifact.url,
        "hash": {"value": artifact.hash.value, "algorithm": artifact.hash.algorithm.value},
    }


def _processed(processed: ProcessedDeclaredLicense) -> dict[str, Any]:
    data: dict[str, Any] = {
        "spdx_expression": str(processed.spdx_expression)
        if processed.spdx_expression is not None
        else None,
    }
    if processed.mapped:
        data["mapped"] = dict(sorted(processed.mapped.items()))
    if processed.unmapped:
        data["unmapped"] = sorted(processed.unmapped)
    return data


def reference_to_dict(ref: PackageReference) -> dict[str, Any]:
    data: dict[str, Any] = {"id": ref.id.to_coordinates(), "linkage": ref.linkage.value}
    if ref.dependencies:
        data["dependencies"] = [
            reference_to_dict(d) for d in sorted(ref.dependencies, key=lambda d: d.id)
        ]
    return data


def scope_to_dict(scope: Scope) -> dict[str, Any]:
    return {
        "name": scope.name,
        "dependencies": [
            reference_to_dict(d) for d in sorted(scope.dependencies, key=lambda d: d.id)
        ],
    }


def project_to_dict(project: Project) -> dict[str, Any]:
    return {
        "id": project.id.to_coordinates(),
        "definition_file_path": project.definition_file_path,
        "authors": sorted(project.authors),
        "declared_licenses": sorted(project.declared_licenses),
        "declared_licenses_processed": _processed(project.declared_licenses_processed),
        "vcs": _vcs(project.vcs),
        "vcs_processed": _vcs(project.vcs_processed),
        "homepage_url": project.homepage_url,
        "scopes": [scope_to_dict(s) for s in sorted(project.scopes, key=lambda s: s.name)],
    }


def package_to_dict(pkg: Package) -> dict[str, Any]:
    return {
        "id": pkg.id.to_coordinates(),
        "authors": sorted(pkg.authors),
        "declared_licenses": sorted(pkg.declared_licenses),
        "declared_licenses_processed": _processed(pkg.declared_licenses_processed),
        "description": pkg.description,
        "homepage_url": pkg.homepage_url,
        "binary_artifact": _artifact(pkg.binary_artifact),
        "source_artifact": _artifact(pkg.source_artifact),
        "vcs": _vcs(pkg.vcs),
        "vcs_processed": _vcs(pkg.vcs_processed),
    }


def project_result_to_dict(result: ProjectAnalyzerResult) -> dict[str, Any]:
    return {
        "project": project_to_dict(result.project),
        "packages": [package_to_dict(p) for p in sorted(result.packages, key=lambda p: p.id)],
    }


def violation_to_dict(violation: RuleViolation) -> dict[str, Any]:
    return {
        "rule": violation.rule,
        "severity": violation.severity.value,
        "package": violation.package.to_coordinates(),
        "license": violation.license,
        "message": violation.message,
        "how_to_fix": violation.how_to_fix,
    }


def analyzer_run_to_dict(
    run: AnalyzerRun,
    violations: list[RuleViolation] | None = None,
) -> dict[str, Any]:
    """Render a whole run; *violations* are included when policy was evaluated."""
    data: dict[str, Any] = {
        "analysis_root": run.analysis_root.as_posix(),
        "projects": [project_to_dict(p) for p in run.projects],
        "packages": [package_to_dict(p) for p in run.packages],
        "issues": dict(sorted(run.issues.items())),
    }
    if violations is not None:
        data["rule_violations"] = [violation_to_dict(v) for v in violations]
    return data
