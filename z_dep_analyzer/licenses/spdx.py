"""Minimal SPDX license expression model and parser.

Grammar (``AND`` binds tighter than ``OR``)::

    expression := and-expr ("OR" and-expr)*
    and-expr   := atom ("AND" atom)*
    atom       := "(" expression ")" | license-id ["WITH" exception-id]
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

NOASSERTION = "NOASSERTION"
NONE = "NONE"
LICENSE_REF_PREFIX = "LicenseRef-"
DOCUMENT_REF_PREFIX = "DocumentRef-"

KNOWN_LICENSE_IDS = frozenset(
    {
        "0BSD", "AFL-3.0", "AGPL-1.0-only", "AGPL-1.0-or-later", "AGPL-3.0", "AGPL-3.0-only",
        "AGPL-3.0-or-later", "Apache-1.1", "Apache-2.0", "Artistic-1.0", "Artistic-2.0",
        "BSD-1-Clause", "BSD-2-Clause", "BSD-2-Clause-Patent", "BSD-3-Clause",
        "BSD-3-Clause-Clear", "BSD-4-Clause", "BSL-1.0", "BlueOak-1.0.0", "CC-BY-3.0",
        "CC-BY-4.0", "CC-BY-SA-3.0", "CC-BY-SA-4.0", "CC0-1.0", "CDDL-1.0", "CDDL-1.1",
        "CPL-1.0", "EPL-1.0", "EPL-2.0", "EUPL-1.1", "EUPL-1.2", "GPL-1.0-only",
        "GPL-1.0-or-later", "GPL-2.0", "GPL-2.0-only", "GPL-2.0-or-later", "GPL-3.0",
        "GPL-3.0-only", "GPL-3.0-or-later", "ISC", "LGPL-2.0-only", "LGPL-2.0-or-later",
        "LGPL-2.1", "LGPL-2.1-only", "LGPL-2.1-or-later", "LGPL-3.0", "LGPL-3.0-only",
        "LGPL-3.0-or-later", "MIT", "MIT-0", "MPL-1.1", "MPL-2.0",
        "MPL-2.0-no-copyleft-exception", "MS-PL", "MS-RL", "NCSA", "OFL-1.1", "OpenSSL",
        "PostgreSQL", "Python-2.0", "Ruby", "SSPL-1.0", "Unicode-3.0", "Unicode-DFS-2016",
        "Unlicense", "UPL-1.0", "WTFPL", "X11", "Zlib", "zlib-acknowledgement", "ZPL-2.1",
    }
)

KNOWN_EXCEPTION_IDS = frozenset(
    {
        "Autoconf-exception-3.0", "Bison-exception-2.2", "Classpath-exception-2.0",
        "GCC-exception-3.1", "LLVM-exception", "OpenJDK-assembly-exception-1.0",
        "Qt-LGPL-exception-1.1", "Swift-exception", "WxWindows-exception-3.1",
    }
)

_CANONICAL_IDS = {lic.lower(): lic for lic in KNOWN_LICENSE_IDS | {NOASSERTION, NONE}}
_CANONICAL_EXCEPTIONS = {exc.lower(): exc for exc in KNOWN_EXCEPTION_IDS}

_TOKEN_RE = re.compile(r"\(|\)|[^\s()]+")
_ID_RE = re.compile(r"^[A-Za-z0-9.\-+:]+$")
_REF_SANITIZE_RE = re.compile(r"[^A-Za-z0-9.]+")


class SpdxExpressionError(ValueError):
    """Raised when a string is not a syntactically valid SPDX expression."""


class SpdxOperator(str, Enum):
    AND = "AND"
    OR = "OR"


class SpdxExpression(ABC):
    """Base class of all expression nodes. Nodes are immutable and hashable."""

    @abstractmethod
    def licenses(self) -> set[str]:
        """License ids referenced anywhere in the expression."""

    @abstractmethod
    def is_valid(self) -> bool:
        """True if every id is a known SPDX id, a special value or a reference."""

    @abstractmethod
    def normalized(self) -> SpdxExpression:
        """Canonical-case ids, flattened and sorted compounds."""

    def decompose(self, operator: SpdxOperator) -> set[SpdxExpression]:
        """Top-level operands with respect to *operator*."""
        return {self}

    def __and__(self, other: SpdxExpression) -> SpdxExpression:
        return combine([self, other], SpdxOperator.AND)

    def __or__(self, other: SpdxExpression) -> SpdxExpression:
        return combine([self, other], SpdxOperator.OR)


def _is_valid_id(license_id: str) -> bool:
    if license_id.startswith((LICENSE_REF_PREFIX, DOCUMENT_REF_PREFIX)):
        return True
    return license_id.removesuffix("+") in KNOWN_LICENSE_IDS | {NOASSERTION, NONE}


@dataclass(frozen=True)
class SpdxLicenseId(SpdxExpression):
    id: str

    def licenses(self) -> set[str]:
        return {self.id}

    def is_valid(self) -> bool:
        return _is_valid_id(self.id)

    def normalized(self) -> SpdxLicenseId:
        base, plus = (self.id[:-1], "+") if self.id.endswith("+") else (self.id, "")
        return SpdxLicenseId(_CANONICAL_IDS.get(base.lower(), base) + plus)

    def __str__(self) -> str:
        return self.id


@dataclass(frozen=True)
class SpdxLicenseWithException(SpdxExpression):
    license: SpdxLicenseId
    exception: str

    def licenses(self) -> set[str]:
        return {self.license.id}

    def is_valid(self) -> bool:
        return self.license.is_valid() and (
            self.exception in KNOWN_EXCEPTION_IDS or self.exception.startswith(LICENSE_REF_PREFIX)
        )

    def normalized(self) -> SpdxLicenseWithException:
        return SpdxLicenseWithException(
            self.license.normalized(),
            _CANONICAL_EXCEPTIONS.get(self.exception.lower(), self.exception),
        )

    def __str__(self) -> str:
        return f"{self.license} WITH {self.exception}"


@dataclass(frozen=True)
class SpdxCompoundExpression(SpdxExpression):
    operator: SpdxOperator
    operands: tuple[SpdxExpression, ...]

    def licenses(self) -> set[str]:
        return set().union(*(op.licenses() for op in self.operands))

    def is_valid(self) -> bool:
        return all(op.is_valid() for op in self.operands)

    def normalized(self) -> SpdxExpression:
        return combine([op.normalized() for op in self.operands], self.operator)

    def decompose(self, operator: SpdxOperator) -> set[SpdxExpression]:
        if self.operator is operator:
            return set(self.operands)
        return {self}

    def __str__(self) -> str:
        parts = []
        for op in self.operands:
            needs_parens = (
                isinstance(op, SpdxCompoundExpression)
                and self.operator is SpdxOperator.AND
                and op.operator is SpdxOperator.OR
            )
            parts.append(f"({op})" if needs_parens else str(op))
        return f" {self.operator.value} ".join(parts)


def combine(expressions: Iterable[SpdxExpression], operator: SpdxOperator) -> SpdxExpression:
    """Join *expressions* with *operator* into one flat, deduplicated, sorted expression."""
    operands: set[SpdxExpression] = set()
    for expr in expressions:
        if isinstance(expr, SpdxCompoundExpression) and expr.operator is operator:
            operands.update(expr.operands)
        else:
            operands.add(expr)

    if not operands:
        raise ValueError("Cannot combine an empty set of expressions")
    if len(operands) == 1:
        return next(iter(operands))
    return SpdxCompoundExpression(operator, tuple(sorted(operands, key=str)))


def license_ref(namespace: str, raw: str) -> str:
    """Build a ``LicenseRef-<namespace>-<raw>`` placeholder for an unmappable license."""
    sanitized = _REF_SANITIZE_RE.sub("-", raw.strip()).strip("-") or "unknown"
    return f"{LICENSE_REF_PREFIX}{namespace}-{sanitized}"


def parse(text: str) -> SpdxExpression:
    """Parse *text* into an expression tree, raising :class:`SpdxExpressionError`."""
    tokens = _TOKEN_RE.findall(text)
    if not tokens:
        raise SpdxExpressionError("Empty license expression")

    parser = _Parser(tokens, text)
    expr = parser.parse_or()
    if parser.pos != len(tokens):
        raise SpdxExpressionError(f"Unexpected token '{tokens[parser.pos]}' in '{text}'")
    return expr


class _Parser:
    def __init__(self, tokens: list[str], text: str) -> None:
        self.tokens = tokens
        self.text = text
        self.pos = 0

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        token = self._peek()
        if token is None:
            raise SpdxExpressionError(f"Unexpected end of expression '{self.text}'")
        self.pos += 1
        return token

    def _is_keyword(self, token: str | None, keyword: str) -> bool:
        return token is not None and token.upper() == keyword

    def parse_or(self) -> SpdxExpression:
        operands = [self.parse_and()]
        while self._is_keyword(self._peek(), "OR"):
            self._next()
            operands.append(self.parse_and())
        return operands[0] if len(operands) == 1 else combine(operands, SpdxOperator.OR)

    def parse_and(self) -> SpdxExpression:
        operands = [self.parse_atom()]
        while self._is_keyword(self._peek(), "AND"):
            self._next()
            operands.append(self.parse_atom())
        return operands[0] if len(operands) == 1 else combine(operands, SpdxOperator.AND)

    def parse_atom(self) -> SpdxExpression:
        token = self._next()
        if token == "(":
            expr = self.parse_or()
            if self._next() != ")":
                raise SpdxExpressionError(f"Missing closing parenthesis in '{self.text}'")
            return expr
        if token == ")" or token.upper() in ("AND", "OR", "WITH") or not _ID_RE.match(token):
            raise SpdxExpressionError(f"Unexpected token '{token}' in '{self.text}'")

        license_id = SpdxLicenseId(token)
        if self._is_keyword(self._peek(), "WITH"):
            self._next()
            exception = self._next()
            if not _ID_RE.match(exception) or exception in ("(", ")"):
                raise SpdxExpressionError(f"Invalid exception '{exception}' in '{self.text}'")
            return SpdxLicenseWithException(license_id, exception)
        return license_id
