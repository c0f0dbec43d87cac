"""Boundary types exchanged with license / copyright scanners."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import ClassVar


@dataclass(frozen=True, order=True)
class TextLocation:
    path: str
    start_line: int = -1
    end_line: int = -1

    UNKNOWN_LINE: ClassVar[int] = -1

    @classmethod
    def single_line(cls, path: str, line: int) -> TextLocation:
        return cls(path, line, line)

    @property
    def has_lines(self) -> bool:
        return self.start_line != self.UNKNOWN_LINE


@dataclass(frozen=True)
class LicenseFinding:
    license: str
    location: TextLocation
    score: float | None = None


@dataclass(frozen=True)
class CopyrightFinding:
    statement: str
    location: TextLocation


@dataclass(frozen=True)
class Snippet:
    """A piece of third-party code the scanner matched a source location against."""

    score: float
    location: TextLocation
    provenance_url: str  # repository the snippet originates from; revision unknown
    purl: str
    license: str


@dataclass(frozen=True)
class SnippetFinding:
    source_location: TextLocation
    snippets: frozenset[Snippet]


@dataclass
class ScanSummary:
    start_time: datetime
    end_time: datetime
    license_findings: set[LicenseFinding] = field(default_factory=set)
    copyright_findings: set[CopyrightFinding] = field(default_factory=set)
    snippet_findings: set[SnippetFinding] = field(default_factory=set)
