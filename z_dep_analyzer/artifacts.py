"""Source artifact provenance — descriptor to download URL plus integrity hash."""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass

from z_dep_analyzer.models.identifier import Hash, RemoteArtifact

CRATES_IO_REGISTRY = "registry+https://github.com/rust-lang/crates.io-index"
NPM_REGISTRY = "registry+https://registry.npmjs.org"


def _crates_io_url(name: str, version: str) -> str:
    return f"https://crates.io/api/v1/crates/{name}/{version}/download"


def _npm_registry_url(name: str, version: str) -> str:
    # Scoped packages keep the scope in the path but not in the tarball name.
    basename = name.rsplit("/", 1)[-1]
    return f"https://registry.npmjs.org/{name}/-/{basename}-{version}.tgz"


REGISTRY_URL_BUILDERS = {
    CRATES_IO_REGISTRY: _crates_io_url,
    NPM_REGISTRY: _npm_registry_url,
}

# Git sources pin a ref name (mutable) and the commit it resolved to (immutable).
# Only the commit is kept, e.g.
#   git+https://github.com/org/repo?tag=v1.0#0a1b2c3d  ->  https://github.com/org/repo @ 0a1b2c3d
GIT_SOURCE_RE = re.compile(r"git\+(https://.*)\?(?:rev|tag|branch)=.+#([0-9a-zA-Z]+)")


@dataclass(frozen=True)
class SourceDescriptor:
    """Where a resolved package comes from, as reported by the package manager."""

    name: str
    version: str
    source: str | None

    @property
    def checksum_key(self) -> str:
        """Composite identity used to correlate lockfile checksums."""
        return f"{self.name} {self.version} ({self.source})"


def resolve_source_artifact(
    descriptor: SourceDescriptor,
    known_hashes: Mapping[str, str],
) -> RemoteArtifact | None:
    """Map *descriptor* to a remote source artifact.

    Returns None for sources without a known download scheme (local paths,
    unknown registries); callers substitute ``RemoteArtifact.EMPTY``. A missing
    checksum is not an error and yields ``Hash.NONE``.
    """
    source = descriptor.source
    if not source:
        return None

    build_url = REGISTRY_URL_BUILDERS.get(source)
    if build_url is not None:
        url = build_url(descriptor.name, descriptor.version)
        return RemoteArtifact(url, Hash.create(known_hashes.get(descriptor.checksum_key, "")))

    match = GIT_SOURCE_RE.fullmatch(source)
    if match is None:
        return None
    url, commit = match.groups()
    return RemoteArtifact(url, Hash.create(commit))
