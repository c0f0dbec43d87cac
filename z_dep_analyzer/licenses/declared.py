"""Declared license processing — raw ecosystem strings to one SPDX expression."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field

import structlog

from z_dep_analyzer.licenses.spdx import (
    SpdxExpression,
    SpdxExpressionError,
    SpdxLicenseId,
    SpdxOperator,
    combine,
    license_ref,
    parse,
)

log = structlog.get_logger(__name__)

DECLARED_REF_NAMESPACE = "declared"

# Keys are lower-cased; values are SPDX expressions.
LICENSE_SYNONYMS: dict[str, str] = {
    "apache 2": "Apache-2.0",
    "apache 2.0": "Apache-2.0",
    "apache license 2.0": "Apache-2.0",
    "apache license, version 2.0": "Apache-2.0",
    "apache license version 2.0": "Apache-2.0",
    "apache-2": "Apache-2.0",
    "apache2": "Apache-2.0",
    "asl 2.0": "Apache-2.0",
    "bsd": "BSD-3-Clause",
    "bsd license": "BSD-3-Clause",
    "bsd-style": "BSD-3-Clause",
    "new bsd license": "BSD-3-Clause",
    "simplified bsd license": "BSD-2-Clause",
    "boost software license 1.0": "BSL-1.0",
    "cc0": "CC0-1.0",
    "eclipse public license 2.0": "EPL-2.0",
    "gpl": "GPL-2.0-or-later",
    "gplv2": "GPL-2.0-only",
    "gpl-2.0+": "GPL-2.0-or-later",
    "gplv3": "GPL-3.0-only",
    "gpl-3.0+": "GPL-3.0-or-later",
    "isc license": "ISC",
    "lgpl": "LGPL-2.1-or-later",
    "lgplv2.1": "LGPL-2.1-only",
    "lgplv3": "LGPL-3.0-only",
    "mit license": "MIT",
    "mit/x11": "MIT",
    "the mit license": "MIT",
    "mozilla public license 2.0": "MPL-2.0",
    "mpl 2.0": "MPL-2.0",
    "public domain": "Unlicense",
    "the unlicense": "Unlicense",
    "zlib license": "Zlib",
}


@dataclass(frozen=True)
class ProcessedDeclaredLicense:
    """Result of :func:`process`.

    ``unmapped`` keeps the raw text of every license that could not be mapped;
    each of them is also present in ``spdx_expression`` as a placeholder
    reference so policy rules can flag it. ``mapped`` records synonym hits and
    is informational only, so it does not take part in equality.
    """

    spdx_expression: SpdxExpression | None
    unmapped: frozenset[str] = frozenset()
    operator: SpdxOperator = SpdxOperator.AND
    mapped: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def placeholders(self) -> dict[str, str]:
        return {license_ref(DECLARED_REF_NAMESPACE, raw): raw for raw in self.unmapped}

    def as_raw_strings(self) -> set[str]:
        """Decompose back into raw strings that reprocess to an equal result."""
        if self.spdx_expression is None:
            return set(self.unmapped)

        placeholders = self.placeholders
        raw: set[str] = set()
        for operand in self.spdx_expression.decompose(self.operator):
            text = str(operand)
            raw.add(placeholders.get(text, text))
        return raw | set(self.unmapped)


EMPTY_PROCESSED_LICENSE = ProcessedDeclaredLicense(spdx_expression=None)


def _map_single(raw: str) -> tuple[SpdxExpression | None, bool]:
    """Return ``(expression, via_synonym)``; expression is None when unmappable."""
    synonym = LICENSE_SYNONYMS.get(raw.lower())
    if synonym is not None:
        return parse(synonym).normalized(), True

    try:
        expr = parse(raw).normalized()
    except SpdxExpressionError:
        return None, False
    return (expr, False) if expr.is_valid() else (None, False)


def process(
    raw_licenses: Iterable[str],
    operator: SpdxOperator = SpdxOperator.AND,
) -> ProcessedDeclaredLicense:
    """Map *raw_licenses* to one expression joined with *operator*.

    The result does not depend on the order of *raw_licenses*, and processing
    ``result.as_raw_strings()`` with the same operator yields an equal result.
    """
    expressions: list[SpdxExpression] = []
    mapped: dict[str, str] = {}
    unmapped: set[str] = set()

    for raw in raw_licenses:
        text = raw.strip()
        if not text:
            continue

        expr, via_synonym = _map_single(text)
        if expr is None:
            unmapped.add(text)
            expressions.append(SpdxLicenseId(license_ref(DECLARED_REF_NAMESPACE, text)))
            continue

        if via_synonym:
            mapped[text] = str(expr)
        expressions.append(expr)

    if unmapped:
        log.debug("licenses.unmapped", unmapped=sorted(unmapped))

    return ProcessedDeclaredLicense(
        spdx_expression=combine(expressions, operator) if expressions else None,
        unmapped=frozenset(unmapped),
        operator=operator,
        mapped=mapped,
    )


def split_declared(value: str, separator: str) -> set[str]:
    """Split an ecosystem license field on *separator*, trimming and dropping blanks."""
    return {token.strip() for token in value.split(separator) if token.strip()}
