"""Convert SCANOSS scan results into a :class:`ScanSummary`.

SCANOSS answers with a JSON object mapping each scanned source path to a list
of match details. A detail with ``id == "file"`` is a full-file match and
carries license and copyright findings; ``id == "snippet"`` is a partial match
against code from another repository. ``id == "none"`` means no match.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

import structlog
from pydantic import BaseModel, ConfigDict, Field

from z_dep_analyzer.licenses.spdx import (
    NOASSERTION,
    SpdxExpressionError,
    SpdxOperator,
    combine,
    license_ref,
    parse,
)
from z_dep_analyzer.models.scan import (
    CopyrightFinding,
    LicenseFinding,
    ScanSummary,
    Snippet,
    SnippetFinding,
    TextLocation,
)

log = structlog.get_logger(__name__)

SCANOSS_REF_NAMESPACE = "scanoss"


class ScanOssNamed(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name: str


class ScanOssFileDetails(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    file: str | None = None
    file_url: str | None = None
    lines: str | None = None
    oss_lines: str | None = None
    matched: str | None = None
    url: str | None = None
    purl: list[str] | None = None
    licenses: list[ScanOssNamed] = Field(default_factory=list)
    copyrights: list[ScanOssNamed] = Field(default_factory=list)


def validated_license(name: str) -> str:
    """Keep valid SPDX text, wrap unknown ids in a reference, give up on garbage."""
    try:
        expression = parse(name)
    except SpdxExpressionError:
        return NOASSERTION
    if expression.is_valid():
        return name
    return license_ref(SCANOSS_REF_NAMESPACE, name)


def convert_lines(file: str, line_range: str) -> TextLocation:
    """Turn a range such as ``1-321`` (or a single line ``7``) into a location."""
    parts = line_range.split("-")
    if len(parts) == 2:
        return TextLocation(file, int(parts[0]), int(parts[1]))
    return TextLocation.single_line(file, int(parts[0]))


def _score(matched: str | None) -> float | None:
    if not matched:
        return None
    try:
        return float(matched.strip().removesuffix("%"))
    except ValueError:
        return None


def _require(details: ScanOssFileDetails, *names: str) -> list[Any]:
    values = [getattr(details, n) for n in names]
    missing = [n for n, v in zip(names, values) if v is None]
    if missing:
        raise ValueError(f"SCANOSS snippet match lacks {', '.join(missing)}")
    return values


def license_findings(details: ScanOssFileDetails) -> set[LicenseFinding]:
    if details.file is None:
        return set()
    location = TextLocation(details.file)  # SCANOSS reports no lines for file matches
    score = _score(details.matched)
    return {
        LicenseFinding(validated_license(lic.name), location, score)
        for lic in details.licenses
    }


def copyright_findings(details: ScanOssFileDetails) -> set[CopyrightFinding]:
    if details.file is None:
        return set()
    location = TextLocation(details.file)
    return {CopyrightFinding(c.name, location) for c in details.copyrights}


def snippets(details: ScanOssFileDetails) -> set[Snippet]:
    """One snippet per purl; a SCANOSS match may name several purls."""
    matched, file_url, oss_lines, url, purls = _require(
        details, "matched", "file_url", "oss_lines", "url", "purl"
    )

    expressions = []
    for lic in details.licenses:
        try:
            expressions.append(parse(validated_license(lic.name)))
        except SpdxExpressionError:
            expressions.append(parse(NOASSERTION))
    license_text = (
        str(combine(expressions, SpdxOperator.AND).normalized()) if expressions else NOASSERTION
    )

    score = float(matched.strip().removesuffix("%"))
    location = convert_lines(file_url, oss_lines)
    return {Snippet(score, location, url, purl, license_text) for purl in purls}


def generate_summary(
    start_time: datetime,
    end_time: datetime,
    results: Mapping[str, Iterable[Mapping[str, Any]]],
) -> ScanSummary:
    """Build a summary from raw SCANOSS JSON (*results* maps path to match details)."""
    summary = ScanSummary(start_time=start_time, end_time=end_time)

    for matches in results.values():
        for raw in matches:
            details = ScanOssFileDetails.model_validate(raw)

            if details.id == "file":
                summary.license_findings |= license_findings(details)
                summary.copyright_findings |= copyright_findings(details)

            elif details.id == "snippet":
                file, lines = _require(details, "file", "lines")
                source_location = convert_lines(file, lines)
                for snippet in snippets(details):
                    summary.snippet_findings.add(
                        SnippetFinding(source_location, frozenset({snippet}))
                    )

    log.debug(
        "scanoss.summary",
        files=len(results),
        licenses=len(summary.license_findings),
        copyrights=len(summary.copyright_findings),
        snippets=len(summary.snippet_findings),
    )
    return summary
