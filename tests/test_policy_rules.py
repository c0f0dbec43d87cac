"""Tests for policy rule evaluation over an AnalyzerRun."""

from __future__ import annotations

import pytest

from z_dep_analyzer.licenses.declared import process
from z_dep_analyzer.models.identifier import Identifier, PackageLinkage
from z_dep_analyzer.models.package import (
    AnalyzerRun,
    Package,
    PackageReference,
    Project,
    ProjectAnalyzerResult,
    Scope,
)
from z_dep_analyzer.policy import Severity, build_license_classifications, evaluate

STATIC = PackageLinkage.STATIC
DYNAMIC = PackageLinkage.DYNAMIC


def package(name, *licenses):
    return Package(
        Identifier("Crate", "", name, "1.0.0"),
        declared_licenses=frozenset(licenses),
        declared_licenses_processed=process(licenses),
    )


@pytest.fixture
def classifications():
    return build_license_classifications(
        {
            "permissive": ["MIT", "Apache-2.0"],
            "copyleft": ["GPL-3.0-only"],
            "copyleft-limited": ["LGPL-2.1-only", "MPL-2.0"],
        }
    )


@pytest.fixture
def run(analysis_root):
    gpl = package("gpl-lib", "GPL-3.0-only")
    lgpl_child = package("lgpl-child", "LGPL-2.1-only")
    lgpl_direct = package("lgpl-direct", "LGPL-2.1-only")
    mpl_dynamic = package("mpl-dynamic", "MPL-2.0")
    mit = package("mit-lib", "MIT")
    custom = package("custom", "My Custom License")
    local = Identifier("Crate", "", "local", "0.1.0")

    scope = Scope(
        "dependencies",
        frozenset(
            {
                gpl.to_reference(STATIC, [lgpl_child.to_reference(STATIC)]),
                lgpl_direct.to_reference(STATIC),
                mpl_dynamic.to_reference(DYNAMIC),
                mit.to_reference(STATIC),
                custom.to_reference(STATIC),
                PackageReference(local, PackageLinkage.PROJECT_STATIC),
            }
        ),
    )
    project = Project(
        id=Identifier("Cargo", "", "app", "0.1.0"),
        definition_file_path="Cargo.toml",
        declared_licenses=frozenset({"MIT"}),
        declared_licenses_processed=process(["MIT"]),
        scopes=frozenset({scope}),
    )
    packages = frozenset({gpl, lgpl_child, lgpl_direct, mpl_dynamic, mit, custom})
    return AnalyzerRun(analysis_root, [ProjectAnalyzerResult(project, packages).validate()])


def by_rule(violations, rule):
    return [(v.package.name, v.license) for v in violations if v.rule == rule]


class TestEvaluate:
    def test_copyleft_in_dependency(self, run, classifications):
        violations = evaluate(run, classifications)
        assert by_rule(violations, "COPYLEFT_IN_DEPENDENCY") == [("gpl-lib", "GPL-3.0-only")]

    def test_copyleft_limited_static_direct_only(self, run, classifications):
        violations = evaluate(run, classifications)
        # lgpl-child is transitive and mpl-dynamic is dynamically linked.
        assert by_rule(violations, "COPYLEFT_LIMITED_STATIC_LINK_IN_DIRECT_DEPENDENCY") == [
            ("lgpl-direct", "LGPL-2.1-only")
        ]

    def test_unhandled_and_unmapped(self, run, classifications):
        violations = evaluate(run, classifications)
        assert by_rule(violations, "UNHANDLED_LICENSE") == [
            ("custom", "LicenseRef-declared-My-Custom-License")
        ]
        assert by_rule(violations, "UNMAPPED_DECLARED_LICENSE") == [
            ("custom", "My Custom License")
        ]

    def test_severities(self, run, classifications):
        severities = {v.rule: v.severity for v in evaluate(run, classifications)}
        assert severities == {
            "COPYLEFT_IN_DEPENDENCY": Severity.ERROR,
            "COPYLEFT_LIMITED_STATIC_LINK_IN_DIRECT_DEPENDENCY": Severity.WARNING,
            "UNHANDLED_LICENSE": Severity.ERROR,
            "UNMAPPED_DECLARED_LICENSE": Severity.WARNING,
        }

    def test_message_names_package(self, run, classifications):
        (violation,) = [
            v for v in evaluate(run, classifications) if v.rule == "UNHANDLED_LICENSE"
        ]
        assert violation.message == (
            "The license LicenseRef-declared-My-Custom-License is currently not covered by "
            "policy rules. The license was declared in package Crate::custom:1.0.0"
        )

    def test_sorted_and_deterministic(self, run, classifications):
        first = evaluate(run, classifications)
        assert first == sorted(first)
        assert first == evaluate(run, classifications)

    def test_run_not_modified(self, run, classifications):
        before = (list(run.results), dict(run.issues))
        evaluate(run, classifications)
        assert (list(run.results), dict(run.issues)) == before

    def test_unclassified_project_license(self, analysis_root, classifications):
        project = Project(
            id=Identifier("NPM", "", "web", "1.0.0"),
            definition_file_path="package.json",
            declared_licenses_processed=process(["ISC"]),
        )
        run = AnalyzerRun(analysis_root, [ProjectAnalyzerResult(project)])
        (violation,) = evaluate(run, classifications)
        assert violation.rule == "UNHANDLED_LICENSE"
        assert violation.package == project.id
        assert violation.license == "ISC"

    def test_empty_run(self, analysis_root, classifications):
        assert evaluate(AnalyzerRun(analysis_root), classifications) == []

    def test_shared_dependency_reported_per_project(self, analysis_root, classifications):
        gpl = package("gpl-lib", "GPL-3.0-only")
        results = []
        for name in ("a", "b"):
            project = Project(
                id=Identifier("Cargo", "", name, "0.1.0"),
                definition_file_path=f"{name}/Cargo.toml",
                declared_licenses_processed=process(["MIT"]),
                scopes=frozenset({Scope("dependencies", frozenset({gpl.to_reference(STATIC)}))}),
            )
            results.append(ProjectAnalyzerResult(project, frozenset({gpl})))
        run = AnalyzerRun(analysis_root, results)

        # The message names the project, so each project yields its own violation.
        copyleft = [v for v in evaluate(run, classifications) if v.rule == "COPYLEFT_IN_DEPENDENCY"]
        assert [v.message.split()[2] for v in copyleft] == ["Cargo::a:0.1.0", "Cargo::b:0.1.0"]
