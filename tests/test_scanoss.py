"""Tests for the SCANOSS result converter."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from z_dep_analyzer.licenses.spdx import NOASSERTION
from z_dep_analyzer.models.scan import (
    CopyrightFinding,
    LicenseFinding,
    Snippet,
    SnippetFinding,
    TextLocation,
)
from z_dep_analyzer.scanners.scanoss import convert_lines, generate_summary, validated_license

START = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
END = datetime(2024, 1, 1, 12, 5, tzinfo=timezone.utc)

FILE_MATCH = {
    "id": "file",
    "file": "vendor/argon2/ref.c",
    "matched": "100%",
    "lines": "all",
    "licenses": [{"name": "Apache-2.0"}, {"name": "CC0-1.0"}],
    "copyrights": [{"name": "Copyright 2015 Daniel Dinu, Dmitry Khovratovich"}],
}

SNIPPET_MATCH = {
    "id": "snippet",
    "file": "src/util/hash.c",
    "lines": "12-40",
    "oss_lines": "100-128",
    "matched": "35%",
    "file_url": "https://osskb.org/api/file_contents/abc123",
    "url": "https://github.com/example/hashlib",
    "purl": ["pkg:github/example/hashlib", "pkg:npm/hashlib"],
    "licenses": [{"name": "MIT"}, {"name": "GPL-2.0-only"}],
}


class TestValidatedLicense:
    def test_valid_expression_kept(self):
        assert validated_license("MIT OR Apache-2.0") == "MIT OR Apache-2.0"

    def test_unknown_id_becomes_reference(self):
        assert validated_license("Proprietary-Foo") == "LicenseRef-scanoss-Proprietary-Foo"

    def test_unparsable_becomes_noassertion(self):
        assert validated_license("see license file") == NOASSERTION


class TestConvertLines:
    def test_range(self):
        assert convert_lines("a.c", "1-321") == TextLocation("a.c", 1, 321)

    def test_single_line(self):
        assert convert_lines("a.c", "7") == TextLocation("a.c", 7, 7)

    def test_malformed(self):
        with pytest.raises(ValueError):
            convert_lines("a.c", "all")


class TestGenerateSummary:
    def test_file_match(self):
        summary = generate_summary(START, END, {"vendor/argon2/ref.c": [FILE_MATCH]})

        location = TextLocation("vendor/argon2/ref.c")
        assert not location.has_lines
        assert summary.license_findings == {
            LicenseFinding("Apache-2.0", location, 100.0),
            LicenseFinding("CC0-1.0", location, 100.0),
        }
        assert summary.copyright_findings == {
            CopyrightFinding("Copyright 2015 Daniel Dinu, Dmitry Khovratovich", location)
        }
        assert summary.snippet_findings == set()
        assert (summary.start_time, summary.end_time) == (START, END)

    def test_snippet_match(self):
        summary = generate_summary(START, END, {"src/util/hash.c": [SNIPPET_MATCH]})

        source = TextLocation("src/util/hash.c", 12, 40)
        remote = TextLocation("https://osskb.org/api/file_contents/abc123", 100, 128)
        expected = {
            SnippetFinding(
                source,
                frozenset(
                    {
                        Snippet(
                            35.0, remote, "https://github.com/example/hashlib", purl,
                            "GPL-2.0-only AND MIT",
                        )
                    }
                ),
            )
            for purl in ("pkg:github/example/hashlib", "pkg:npm/hashlib")
        }
        assert summary.snippet_findings == expected
        assert summary.license_findings == set()

    def test_snippet_without_licenses(self):
        match = {**SNIPPET_MATCH, "licenses": [], "purl": ["pkg:github/example/hashlib"]}
        summary = generate_summary(START, END, {"src/util/hash.c": [match]})

        (finding,) = summary.snippet_findings
        (snippet,) = finding.snippets
        assert snippet.license == NOASSERTION

    def test_no_match(self):
        summary = generate_summary(START, END, {"README.md": [{"id": "none"}]})
        assert summary.license_findings == set()
        assert summary.snippet_findings == set()

    def test_snippet_missing_fields(self):
        match = {key: value for key, value in SNIPPET_MATCH.items() if key != "purl"}
        with pytest.raises(ValueError, match="purl"):
            generate_summary(START, END, {"src/util/hash.c": [match]})
