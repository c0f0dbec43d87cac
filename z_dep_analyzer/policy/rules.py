"""Example license policy rules evaluated over a finished :class:`AnalyzerRun`."""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from enum import Enum

import structlog

from z_dep_analyzer.licenses.declared import ProcessedDeclaredLicense
from z_dep_analyzer.models.identifier import Identifier, PackageLinkage
from z_dep_analyzer.models.package import (
    AnalyzerRun,
    Package,
    PackageReference,
    Project,
    Scope,
)
from z_dep_analyzer.policy.classifications import (
    COPYLEFT,
    COPYLEFT_LIMITED,
    LicenseClassifications,
)

log = structlog.get_logger(__name__)

HOW_TO_FIX_DEFAULT = (
    "A text written in MarkDown to help users resolve policy violations\n"
    "which may link to additional resources."
)


class Severity(str, Enum):
    ERROR = "ERROR"
    WARNING = "WARNING"
    HINT = "HINT"


@dataclass(frozen=True, order=True)
class RuleViolation:
    rule: str
    severity: Severity
    package: Identifier
    license: str
    message: str
    how_to_fix: str = HOW_TO_FIX_DEFAULT


def _licenses(processed: ProcessedDeclaredLicense) -> list[str]:
    if processed.spdx_expression is None:
        return []
    return sorted(processed.spdx_expression.licenses())


def _unhandled_license(
    subject: Package | Project, classifications: LicenseClassifications
) -> Iterator[RuleViolation]:
    for lic in _licenses(subject.declared_licenses_processed):
        if not classifications.is_handled(lic):
            yield RuleViolation(
                "UNHANDLED_LICENSE",
                Severity.ERROR,
                subject.id,
                lic,
                f"The license {lic} is currently not covered by policy rules. "
                f"The license was declared in package {subject.id.to_coordinates()}",
            )


def _unmapped_declared_license(subject: Package | Project) -> Iterator[RuleViolation]:
    for raw in sorted(subject.declared_licenses_processed.unmapped):
        yield RuleViolation(
            "UNMAPPED_DECLARED_LICENSE",
            Severity.WARNING,
            subject.id,
            raw,
            f"The declared license '{raw}' could not be mapped to a valid license or parsed as "
            f"an SPDX expression. The license was found in package {subject.id.to_coordinates()}.",
        )


def _scope_references(scope: Scope) -> Iterator[PackageReference]:
    """Every distinct reference below *scope*, each identifier once."""
    seen: set[Identifier] = set()
    stack = sorted(scope.dependencies, key=lambda r: r.id, reverse=True)
    while stack:
        ref = stack.pop()
        if ref.id in seen:
            continue
        seen.add(ref.id)
        yield ref
        stack.extend(sorted(ref.dependencies, key=lambda r: r.id, reverse=True))


def _dependency_rules(
    project: Project,
    packages: Mapping[Identifier, Package],
    classifications: LicenseClassifications,
) -> Iterator[RuleViolation]:
    copyleft = classifications.licenses_for(COPYLEFT)
    copyleft_limited = classifications.licenses_for(COPYLEFT_LIMITED)
    coordinates = project.id.to_coordinates()

    for scope in sorted(project.scopes, key=lambda s: s.name):
        direct = {ref.id: ref for ref in scope.dependencies}
        for ref in _scope_references(scope):
            pkg = packages.get(ref.id)
            if pkg is None:
                continue  # project-local reference
            for lic in _licenses(pkg.declared_licenses_processed):
                if lic in copyleft:
                    yield RuleViolation(
                        "COPYLEFT_IN_DEPENDENCY",
                        Severity.ERROR,
                        pkg.id,
                        lic,
                        f"The project {coordinates} has a dependency licensed under the "
                        f"ScanCode copyleft categorized license {lic}.",
                    )
                direct_ref = direct.get(ref.id)
                if (
                    lic in copyleft_limited
                    and direct_ref is not None
                    and direct_ref.linkage is PackageLinkage.STATIC
                ):
                    yield RuleViolation(
                        "COPYLEFT_LIMITED_STATIC_LINK_IN_DIRECT_DEPENDENCY",
                        Severity.WARNING,
                        pkg.id,
                        lic,
                        f"The project {coordinates} has a statically linked direct dependency "
                        f"licensed under the ScanCode copyleft-limited categorized license {lic}.",
                    )


def evaluate(run: AnalyzerRun, classifications: LicenseClassifications) -> list[RuleViolation]:
    """Evaluate all rules; *run* is only read. Violations are deduplicated and sorted."""
    violations: set[RuleViolation] = set()
    packages = {pkg.id: pkg for pkg in run.packages}
    projects = run.projects

    subjects: list[Package | Project] = [*projects, *packages.values()]
    for subject in subjects:
        violations.update(_unhandled_license(subject, classifications))
        violations.update(_unmapped_declared_license(subject))

    for project in projects:
        violations.update(_dependency_rules(project, packages, classifications))

    result = sorted(violations)
    log.info(
        "policy.evaluated",
        violations=len(result),
        errors=sum(1 for v in result if v.severity is Severity.ERROR),
    )
    return result
