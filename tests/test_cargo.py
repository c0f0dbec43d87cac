"""Tests for the Cargo resolver — cargo itself is replaced by canned metadata."""

from __future__ import annotations

import json

import pytest

from z_dep_analyzer.artifacts import CRATES_IO_REGISTRY
from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.exceptions import (
    CyclicGraphDetected,
    LockfileMissing,
    ResolutionError,
    ToolInvocationFailed,
    ToolOutputError,
    UnsupportedTopology,
)
from z_dep_analyzer.managers.cargo import Cargo, read_hashes
from z_dep_analyzer.models.identifier import Hash, HashAlgorithm, Identifier, PackageLinkage

SERDE_SUM = "a" * 64
TEMPFILE_SUM = "b" * 64
GIT_COMMIT = "0123456789abcdef0123456789abcdef01234567"
GIT_SOURCE = f"git+https://github.com/org/gitdep?rev=main#{GIT_COMMIT}"


def crate(name, version, *, source=CRATES_IO_REGISTRY, path=None, **extra):
    if path is not None:
        pkg_id = f"path+file://{path}#{name}@{version}"
        source = None
    elif source == CRATES_IO_REGISTRY:
        pkg_id = f"registry+https://github.com/rust-lang/crates.io-index#{name}@{version}"
    else:
        pkg_id = f"{source.split('#')[0]}#{name}@{version}"
    return {"name": name, "version": version, "id": pkg_id, "source": source, **extra}


def edge(pkg, *kinds):
    return {
        "name": pkg["name"],
        "pkg": pkg["id"],
        "dep_kinds": [{"kind": k, "target": None} for k in kinds] or [{"kind": None}],
    }


def metadata(workspace, packages, nodes, root):
    return {
        "packages": packages,
        "workspace_members": [root["id"]] if root else [],
        "resolve": {
            "nodes": [{"id": pid, "deps": deps} for pid, deps in nodes.items()],
            "root": root["id"] if root else None,
        },
        "workspace_root": str(workspace),
        "version": 1,
    }


@pytest.fixture
def workspace(analysis_root):
    (analysis_root / "Cargo.toml").write_text('[package]\nname = "app"\n')
    return analysis_root


@pytest.fixture
def graph(workspace, tmp_path):
    """A workspace with a path member, an external path crate, registry, git, dev and build deps."""
    outside = tmp_path.resolve() / "outside" / "ext"
    app = crate("app", "0.1.0", path=workspace, license="MIT", authors=["Ann <ann@example.com>"])
    member = crate("member", "0.2.0", path=workspace / "member")
    ext = crate("ext", "1.0.0", path=outside)
    serde = crate("serde", "1.0.0", license="MIT/Apache-2.0")
    gitdep = crate("gitdep", "0.3.0", source=GIT_SOURCE, license_file="LICENSE")
    tempfile = crate("tempfile", "3.0.0", license="MIT OR Apache-2.0")
    fastrand = crate("fastrand", "2.0.0")
    devonly = crate("devonly", "1.0.0")
    cc = crate("cc", "1.0.0")

    nodes = {
        app["id"]: [
            edge(member),
            edge(ext),
            edge(serde),
            edge(gitdep),
            edge(tempfile, "dev"),
            edge(cc, "build"),
        ],
        member["id"]: [edge(serde)],
        ext["id"]: [],
        serde["id"]: [],
        gitdep["id"]: [],
        tempfile["id"]: [edge(fastrand), edge(devonly, "dev")],
        fastrand["id"]: [],
        devonly["id"]: [],
        cc["id"]: [],
    }
    packages = [app, member, ext, serde, gitdep, tempfile, fastrand, devonly, cc]
    return metadata(workspace, packages, nodes, app)


def add_metadata(runner, data):
    runner.add("cargo", "metadata", "--format-version=1", stdout=json.dumps(data))


def write_v3_lockfile(workspace):
    (workspace / "Cargo.lock").write_text(
        "version = 3\n\n"
        "[[package]]\n"
        'name = "serde"\n'
        'version = "1.0.0"\n'
        f'source = "{CRATES_IO_REGISTRY}"\n'
        f'checksum = "{SERDE_SUM}"\n\n'
        "[[package]]\n"
        'name = "tempfile"\n'
        'version = "3.0.0"\n'
        f'source = "{CRATES_IO_REGISTRY}"\n'
        f'checksum = "{TEMPFILE_SUM}"\n\n'
        "[[package]]\n"
        'name = "app"\n'
        'version = "0.1.0"\n'
    )


def crate_id(name, version):
    return Identifier("Crate", "", name, version)


def resolve(workspace, runner, config=None):
    manager = Cargo(workspace, config=config, runner=runner)
    return manager.resolve_dependencies(workspace / "Cargo.toml")


class TestCargoResolution:
    def test_project(self, workspace, graph, runner):
        add_metadata(runner, graph)
        result = resolve(workspace, runner)

        project = result.project
        assert project.id == Identifier("Cargo", "", "app", "0.1.0")
        assert project.definition_file_path == "Cargo.toml"
        assert project.authors == frozenset({"Ann"})
        assert str(project.declared_licenses_processed.spdx_expression) == "MIT"

    def test_scopes_emitted_for_present_kinds(self, workspace, graph, runner):
        add_metadata(runner, graph)
        scopes = {s.name for s in resolve(workspace, runner).project.scopes}
        assert scopes == {"dependencies", "dev-dependencies", "build-dependencies"}

    def test_no_dev_scope_without_dev_edges(self, workspace, graph, runner):
        root_id = graph["resolve"]["root"]
        for node in graph["resolve"]["nodes"]:
            if node["id"] == root_id:
                node["deps"] = [d for d in node["deps"] if d["dep_kinds"][0]["kind"] is None]
        add_metadata(runner, graph)
        scopes = {s.name for s in resolve(workspace, runner).project.scopes}
        assert scopes == {"dependencies"}

    def test_linkage(self, workspace, graph, runner):
        add_metadata(runner, graph)
        deps = resolve(workspace, runner).project.scope("dependencies").dependencies
        linkage = {ref.id.name: ref.linkage for ref in deps}
        assert linkage == {
            "member": PackageLinkage.PROJECT_STATIC,
            "ext": PackageLinkage.STATIC,
            "serde": PackageLinkage.STATIC,
            "gitdep": PackageLinkage.STATIC,
        }

    def test_project_local_path_dependencies_are_not_packages(self, workspace, graph, runner):
        add_metadata(runner, graph)
        result = resolve(workspace, runner)
        names = {p.id.name for p in result.packages}
        assert "app" not in names
        assert "member" not in names
        assert "ext" in names

    def test_member_dependencies_are_walked(self, workspace, graph, runner):
        add_metadata(runner, graph)
        deps = resolve(workspace, runner).project.scope("dependencies").dependencies
        member = next(ref for ref in deps if ref.id.name == "member")
        assert {ref.id for ref in member.dependencies} == {crate_id("serde", "1.0.0")}

    def test_dev_scope_expands_normal_edges_only(self, workspace, graph, runner):
        add_metadata(runner, graph)
        dev = resolve(workspace, runner).project.scope("dev-dependencies")
        reachable = {ref.id.name for ref in dev.walk()}
        assert reachable == {"tempfile", "fastrand"}

    def test_dev_dependency_depending_on_project(self, workspace, runner):
        app = crate("app", "0.1.0", path=workspace)
        helper = crate("helper", "0.1.0", path=workspace / "helper")
        serde = crate("serde", "1.0.0")
        nodes = {
            app["id"]: [edge(serde), edge(helper, "dev")],
            helper["id"]: [edge(app)],
            serde["id"]: [],
        }
        add_metadata(runner, metadata(workspace, [app, helper, serde], nodes, app))

        result = resolve(workspace, runner)

        (helper_ref,) = result.project.scope("dev-dependencies").dependencies
        assert helper_ref.linkage is PackageLinkage.PROJECT_STATIC
        (app_ref,) = helper_ref.dependencies
        assert app_ref.id == crate_id("app", "0.1.0")
        assert app_ref.linkage is PackageLinkage.PROJECT_STATIC
        assert {ref.id for ref in app_ref.dependencies} == {crate_id("serde", "1.0.0")}
        assert {p.id.name for p in result.packages} == {"serde"}

    def test_build_scope(self, workspace, graph, runner):
        add_metadata(runner, graph)
        build = resolve(workspace, runner).project.scope("build-dependencies")
        assert {ref.id for ref in build.dependencies} == {crate_id("cc", "1.0.0")}

    def test_every_reference_has_a_package(self, workspace, graph, runner):
        add_metadata(runner, graph)
        result = resolve(workspace, runner)
        package_ids = {p.id for p in result.packages}
        for _, ref in result.project.walk():
            assert ref.id in package_ids or ref.linkage.is_project_linkage

    def test_package_ids_unique(self, workspace, graph, runner):
        add_metadata(runner, graph)
        result = resolve(workspace, runner)
        ids = [p.id for p in result.packages]
        assert len(ids) == len(set(ids))

    def test_declared_licenses(self, workspace, graph, runner):
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}

        serde = packages["serde"]
        assert serde.declared_licenses == frozenset({"MIT", "Apache-2.0"})
        assert str(serde.declared_licenses_processed.spdx_expression) == "Apache-2.0 OR MIT"

        gitdep = packages["gitdep"]
        assert gitdep.declared_licenses == frozenset({"NOASSERTION"})


class TestCargoArtifacts:
    def test_v3_lockfile_checksums(self, workspace, graph, runner):
        write_v3_lockfile(workspace)
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}

        serde = packages["serde"].source_artifact
        assert serde.url == "https://crates.io/api/v1/crates/serde/1.0.0/download"
        assert serde.hash == Hash(SERDE_SUM, HashAlgorithm.SHA256)
        assert packages["fastrand"].source_artifact.hash is Hash.NONE

    def test_v1_lockfile_metadata_checksums(self, workspace, graph, runner):
        (workspace / "Cargo.lock").write_text(
            "[[package]]\n"
            'name = "serde"\n'
            'version = "1.0.0"\n'
            f'source = "{CRATES_IO_REGISTRY}"\n\n'
            "[metadata]\n"
            f'"checksum serde 1.0.0 ({CRATES_IO_REGISTRY})" = "{SERDE_SUM}"\n'
        )
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}
        assert packages["serde"].source_artifact.hash.value == SERDE_SUM

    def test_git_source(self, workspace, graph, runner):
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}
        artifact = packages["gitdep"].source_artifact
        assert artifact.url == "https://github.com/org/gitdep"
        assert artifact.hash == Hash(GIT_COMMIT, HashAlgorithm.SHA1)

    def test_path_crate_has_no_artifact(self, workspace, graph, runner):
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}
        assert packages["ext"].source_artifact.is_empty

    def test_missing_lockfile_tolerated(self, workspace, graph, runner):
        add_metadata(runner, graph)
        packages = {p.id.name: p for p in resolve(workspace, runner).packages}
        assert packages["serde"].source_artifact.hash is Hash.NONE

    def test_missing_lockfile_required(self, workspace, graph, runner):
        add_metadata(runner, graph)
        with pytest.raises(LockfileMissing):
            resolve(workspace, runner, AnalyzerConfig(require_lockfile=True))

    def test_read_hashes_v3(self, workspace):
        write_v3_lockfile(workspace)
        hashes = read_hashes(workspace / "Cargo.lock")
        assert hashes == {
            f"serde 1.0.0 ({CRATES_IO_REGISTRY})": SERDE_SUM,
            f"tempfile 3.0.0 ({CRATES_IO_REGISTRY})": TEMPFILE_SUM,
        }

    def test_read_hashes_v2_without_version_key(self, workspace):
        (workspace / "Cargo.lock").write_text(
            "[[package]]\n"
            'name = "serde"\n'
            'version = "1.0.0"\n'
            f'source = "{CRATES_IO_REGISTRY}"\n'
            f'checksum = "{SERDE_SUM}"\n\n'
            "[[package]]\n"
            'name = "app"\n'
            'version = "0.1.0"\n'
        )
        hashes = read_hashes(workspace / "Cargo.lock")
        assert hashes == {f"serde 1.0.0 ({CRATES_IO_REGISTRY})": SERDE_SUM}

    def test_read_hashes_invalid_toml(self, workspace):
        (workspace / "Cargo.lock").write_text("this is = = not toml")
        with pytest.raises(ResolutionError):
            read_hashes(workspace / "Cargo.lock")


class TestCargoFailures:
    def test_virtual_workspace(self, workspace, runner):
        member = crate("member", "0.1.0", path=workspace / "member")
        data = metadata(workspace, [member], {member["id"]: []}, None)
        add_metadata(runner, data)
        with pytest.raises(UnsupportedTopology, match="Virtual workspaces are not supported"):
            resolve(workspace, runner)

    def test_tool_failure(self, workspace, runner):
        runner.add(
            "cargo", "metadata", "--format-version=1",
            exit_code=101, stderr="error: failed to parse manifest",
        )
        with pytest.raises(ToolInvocationFailed) as exc_info:
            resolve(workspace, runner)
        assert exc_info.value.exit_code == 101
        assert "failed to parse manifest" in str(exc_info.value)

    def test_progress_records_failed_phase(self, workspace, runner):
        runner.add("cargo", "metadata", "--format-version=1", exit_code=101, stderr="broken")
        manager = Cargo(workspace, runner=runner)

        with pytest.raises(ToolInvocationFailed):
            manager.resolve_dependencies(workspace / "Cargo.toml")

        summary = manager.progress.get_summary()
        assert summary["state"] == "failed"
        assert [(p["phase"], p["status"]) for p in summary["phases"]] == [("metadata", "failed")]

    def test_tool_missing(self, workspace, runner):
        with pytest.raises(ToolInvocationFailed):
            resolve(workspace, runner)

    def test_malformed_output(self, workspace, runner):
        runner.add("cargo", "metadata", "--format-version=1", stdout="warning: not json")
        with pytest.raises(ToolOutputError):
            resolve(workspace, runner)

    def test_schema_violation(self, workspace, runner):
        runner.add("cargo", "metadata", "--format-version=1", stdout='{"packages": []}')
        with pytest.raises(ToolOutputError):
            resolve(workspace, runner)

    def test_unknown_node(self, workspace, runner):
        app = crate("app", "0.1.0", path=workspace)
        ghost = crate("ghost", "1.0.0")
        data = metadata(workspace, [app], {app["id"]: [edge(ghost)]}, app)
        add_metadata(runner, data)
        with pytest.raises(ResolutionError, match="unknown package"):
            resolve(workspace, runner)

    def test_cycle(self, workspace, runner):
        app = crate("app", "0.1.0", path=workspace)
        a = crate("a", "1.0.0")
        b = crate("b", "1.0.0")
        nodes = {app["id"]: [edge(a)], a["id"]: [edge(b)], b["id"]: [edge(a)]}
        add_metadata(runner, metadata(workspace, [app, a, b], nodes, app))
        with pytest.raises(CyclicGraphDetected) as exc_info:
            resolve(workspace, runner)
        assert exc_info.value.cycle == [a["id"], b["id"], a["id"]]

    def test_depth_limit(self, workspace, runner):
        app = crate("app", "0.1.0", path=workspace)
        chain = [crate(f"c{i}", "1.0.0") for i in range(4)]
        nodes = {app["id"]: [edge(chain[0])]}
        for parent, child in zip(chain, chain[1:]):
            nodes[parent["id"]] = [edge(child)]
        nodes[chain[-1]["id"]] = []
        add_metadata(runner, metadata(workspace, [app, *chain], nodes, app))

        with pytest.raises(UnsupportedTopology, match="deeper than 2"):
            resolve(workspace, runner, AnalyzerConfig(max_tree_depth=2))


class TestLegacyPackageIds:
    def test_legacy_path_id_format(self, workspace, runner):
        app = {
            "name": "app", "version": "0.1.0", "source": None,
            "id": f"app 0.1.0 (path+file://{workspace})",
        }
        lib = {
            "name": "lib", "version": "0.1.0", "source": None,
            "id": f"lib 0.1.0 (path+file://{workspace}/lib)",
        }
        serde = {
            "name": "serde", "version": "1.0.0", "source": CRATES_IO_REGISTRY,
            "id": f"serde 1.0.0 ({CRATES_IO_REGISTRY})",
        }
        # Cargo before 1.41 reports no dep_kinds.
        nodes = {
            app["id"]: [{"name": "lib", "pkg": lib["id"]}, {"name": "serde", "pkg": serde["id"]}],
            lib["id"]: [],
            serde["id"]: [],
        }
        add_metadata(runner, metadata(workspace, [app, lib, serde], nodes, app))

        result = resolve(workspace, runner)
        assert {p.id.name for p in result.packages} == {"serde"}
        deps = result.project.scope("dependencies").dependencies
        assert {r.id.name: r.linkage for r in deps} == {
            "lib": PackageLinkage.PROJECT_STATIC,
            "serde": PackageLinkage.STATIC,
        }
