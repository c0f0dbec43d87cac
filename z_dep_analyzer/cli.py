"""CLI entry point: z-deps.

Subcommands:
    z-deps analyze /path/to/repo -o result.json   # Resolve all projects below a root
    z-deps managers                               # List supported package managers
    z-deps classify licenses.yml                  # Validate a license classification file
"""

from __future__ import annotations

import dataclasses
import json
import sys
from pathlib import Path

import click

from z_dep_analyzer.config import AnalyzerConfig
from z_dep_analyzer.core.logging import setup_logging
from z_dep_analyzer.exceptions import AnalyzerError

EXIT_ERROR = 1
EXIT_ISSUES = 2


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Verbose logging")
@click.option("--log-json", is_flag=True, help="Emit log records as JSON lines on stderr")
def main(verbose: bool, log_json: bool) -> None:
    """Z-Dep-Analyzer: resolve dependency graphs with native package managers."""
    setup_logging("DEBUG" if verbose else None, "json" if log_json else None)


@main.command("analyze")
@click.argument(
    "root", type=click.Path(exists=True, file_okay=False, path_type=Path)
)
@click.option(
    "-j", "--max-workers", type=click.IntRange(min=1), default=None,
    help="Parallel resolutions (default: ZDA_MAX_WORKERS or 4)",
)
@click.option(
    "--require-lockfile", is_flag=True,
    help="Fail resolutions whose lockfile is missing",
)
@click.option(
    "-o", "--output", type=click.Path(dir_okay=False, path_type=Path), default=None,
    help="Write the JSON result to a file instead of stdout",
)
@click.option("--compress", is_flag=True, help="XZ-compress the output file")
@click.option(
    "--licenses", "licenses_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None, help="License classification YAML; enables policy evaluation",
)
@click.option(
    "--fail-on-issues", is_flag=True,
    help="Exit with status 2 if any definition file could not be resolved",
)
def analyze(
    root: Path,
    max_workers: int | None,
    require_lockfile: bool,
    output: Path | None,
    compress: bool,
    licenses_file: Path | None,
    fail_on_issues: bool,
) -> None:
    """Discover definition files below ROOT and resolve their dependencies."""
    from z_dep_analyzer.orchestrator import AnalyzerOrchestrator
    from z_dep_analyzer.policy import evaluate, load_license_classifications
    from z_dep_analyzer.serialization import analyzer_run_to_dict

    if compress and output is None:
        raise click.UsageError("--compress requires --output")

    try:
        config = AnalyzerConfig.from_env()
        overrides: dict[str, object] = {}
        if max_workers is not None:
            overrides["max_workers"] = max_workers
        if require_lockfile:
            overrides["require_lockfile"] = True
        config = dataclasses.replace(config, **overrides)

        # Load classifications up front so a broken file fails before resolving.
        classifications = (
            load_license_classifications(licenses_file) if licenses_file else None
        )

        orchestrator = AnalyzerOrchestrator(root, config=config)
        run = orchestrator.analyze_sync()
        violations = (
            evaluate(run, classifications) if classifications is not None else None
        )

        payload = json.dumps(analyzer_run_to_dict(run, violations), indent=2) + "\n"
        if output is None:
            click.echo(payload, nl=False)
        else:
            _write_output(output, payload, compress)
    except (AnalyzerError, ValueError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    click.echo(
        f"Resolved {len(run.results)} project(s), {len(run.packages)} package(s), "
        f"{len(run.issues)} issue(s).",
        err=True,
    )
    for definition_file, message in sorted(run.issues.items()):
        click.echo(f"  {definition_file}: {message.splitlines()[0]}", err=True)

    if run.issues and fail_on_issues:
        sys.exit(EXIT_ISSUES)


def _write_output(output: Path, payload: str, compress: bool) -> None:
    from z_dep_analyzer.storage import LocalFileStorage, XZCompressedLocalFileStorage

    storage_cls = XZCompressedLocalFileStorage if compress else LocalFileStorage
    storage = storage_cls(output.parent)
    with storage.write(output.name) as stream:
        stream.write(payload.encode("utf-8"))
    suffix = ".xz" if compress else ""
    click.echo(f"Result written to {output}{suffix}", err=True)


@main.command("managers")
def managers() -> None:
    """List registered package managers and their tools."""
    from z_dep_analyzer.managers.registry import create_default_registry

    registry = create_default_registry()
    for desc in sorted(registry.list_all(), key=lambda d: d.name):
        manager = registry.create(desc.name, Path.cwd())
        tool = manager.locate_tool()
        version = manager.tool_version() if tool else None
        click.echo(
            f"{desc.name:<8} {', '.join(sorted(desc.definition_file_globs)):<16} "
            f"{tool or 'not found'}{f' ({version})' if version else ''}"
        )


@main.command("classify")
@click.argument("file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def classify(file: Path) -> None:
    """Validate a license classification YAML file."""
    from z_dep_analyzer.policy import load_license_classifications

    try:
        classifications = load_license_classifications(file)
    except AnalyzerError as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(EXIT_ERROR)

    for category, licenses in sorted(classifications.categories.items()):
        click.echo(f"{category}: {len(licenses)} license(s)")
    click.echo(f"{len(classifications.handled)} license(s) handled, no overlaps.")


if __name__ == "__main__":
    main()
