"""License classifications — named, pairwise disjoint sets of license ids.

A classification file is YAML mapping each category to its licenses::

    permissive: [MIT, Apache-2.0, BSD-3-Clause]
    copyleft: [GPL-2.0-only, GPL-3.0-only]
    copyleft-limited: [LGPL-2.1-only, MPL-2.0]
    public-domain: [CC0-1.0, Unlicense]
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
import yaml

from z_dep_analyzer.exceptions import AnalyzerError, LicenseClassificationConflict

log = structlog.get_logger(__name__)

PERMISSIVE = "permissive"
COPYLEFT = "copyleft"
COPYLEFT_LIMITED = "copyleft-limited"


@dataclass(frozen=True)
class LicenseClassifications:
    """Validated classification sets; only :func:`build_license_classifications` creates them."""

    categories: Mapping[str, frozenset[str]]

    def licenses_for(self, category: str) -> frozenset[str]:
        return self.categories.get(category, frozenset())

    def category_of(self, license_id: str) -> str | None:
        return next((c for c, ids in self.categories.items() if license_id in ids), None)

    @property
    def handled(self) -> frozenset[str]:
        """Every license covered by some category."""
        return frozenset().union(*self.categories.values())

    def is_handled(self, license_id: str) -> bool:
        # An exception id on its own, outside a WITH clause, is never a license.
        if "-exception" in license_id and " WITH " not in license_id:
            return False
        return license_id in self.handled


def build_license_classifications(
    mapping: Mapping[str, Iterable[str]],
) -> LicenseClassifications:
    """Validate that no license sits in two categories and freeze the sets."""
    categories = {name: frozenset(ids) for name, ids in mapping.items()}

    owners: dict[str, set[str]] = {}
    for name, ids in categories.items():
        for license_id in ids:
            owners.setdefault(license_id, set()).add(name)

    conflicts = {lic: names for lic, names in owners.items() if len(names) > 1}
    if conflicts:
        raise LicenseClassificationConflict(conflicts)

    log.debug(
        "classifications.built",
        categories={name: len(ids) for name, ids in sorted(categories.items())},
    )
    return LicenseClassifications(categories)


def load_license_classifications(path: Path) -> LicenseClassifications:
    """Read a classification YAML file."""
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise AnalyzerError(f"Cannot read license classifications '{path}': {exc}") from exc

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise AnalyzerError(f"License classifications '{path}' must be a mapping")

    mapping: dict[str, list[str]] = {}
    for category, ids in data.items():
        if ids is None:
            ids = []
        if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
            raise AnalyzerError(
                f"Category '{category}' in '{path}' must be a list of license ids"
            )
        mapping[str(category)] = ids
    return build_license_classifications(mapping)
