"""License classifications and the policy rules evaluated against an analyzer run."""

from z_dep_analyzer.policy.classifications import (
    LicenseClassifications,
    build_license_classifications,
    load_license_classifications,
)
from z_dep_analyzer.policy.rules import RuleViolation, Severity, evaluate

__all__ = [
    "LicenseClassifications",
    "RuleViolation",
    "Severity",
    "build_license_classifications",
    "evaluate",
    "load_license_classifications",
]
