"""SPDX expressions and declared license processing."""

from z_dep_analyzer.licenses.declared import ProcessedDeclaredLicense, process
from z_dep_analyzer.licenses.spdx import SpdxExpression, SpdxOperator, parse

__all__ = ["ProcessedDeclaredLicense", "SpdxExpression", "SpdxOperator", "parse", "process"]
