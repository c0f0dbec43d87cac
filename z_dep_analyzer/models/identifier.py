"""Value types shared by every ecosystem: identifiers, hashes, artifacts, VCS info."""

from __future__ import annotations

import base64
import binascii
from dataclasses import dataclass
from enum import Enum
from typing import ClassVar


@dataclass(frozen=True, order=True)
class Identifier:
    """Stable cross-ecosystem key of a package or project."""

    type: str  # ecosystem, e.g. "Crate", "NPM", "Cargo"
    namespace: str
    name: str
    version: str

    def to_coordinates(self) -> str:
        return f"{self.type}:{self.namespace}:{self.name}:{self.version}"

    def __str__(self) -> str:
        return self.to_coordinates()


class HashAlgorithm(Enum):
    NONE = ""
    UNKNOWN = "UNKNOWN"
    MD5 = "MD5"
    SHA1 = "SHA-1"
    SHA256 = "SHA-256"
    SHA384 = "SHA-384"
    SHA512 = "SHA-512"


# hex digest length -> algorithm
_ALGORITHM_BY_HEX_LENGTH = {
    32: HashAlgorithm.MD5,
    40: HashAlgorithm.SHA1,
    64: HashAlgorithm.SHA256,
    96: HashAlgorithm.SHA384,
    128: HashAlgorithm.SHA512,
}

# Subresource Integrity prefixes as written by npm, e.g. "sha512-<base64>"
_SRI_ALGORITHMS = {
    "sha1": HashAlgorithm.SHA1,
    "sha256": HashAlgorithm.SHA256,
    "sha384": HashAlgorithm.SHA384,
    "sha512": HashAlgorithm.SHA512,
}


@dataclass(frozen=True)
class Hash:
    value: str
    algorithm: HashAlgorithm

    NONE: ClassVar[Hash]

    @classmethod
    def create(cls, value: str) -> Hash:
        """Build a hash from a hex digest or an SRI string, inferring the algorithm."""
        value = value.strip()
        if not value:
            return cls.NONE

        prefix, sep, encoded = value.partition("-")
        if sep and prefix.lower() in _SRI_ALGORITHMS:
            try:
                digest = base64.b64decode(encoded, validate=True)
            except (binascii.Error, ValueError):
                return cls(value, HashAlgorithm.UNKNOWN)
            return cls(digest.hex(), _SRI_ALGORITHMS[prefix.lower()])

        algorithm = HashAlgorithm.UNKNOWN
        if all(c in "0123456789abcdefABCDEF" for c in value):
            algorithm = _ALGORITHM_BY_HEX_LENGTH.get(len(value), HashAlgorithm.UNKNOWN)
            value = value.lower()
        return cls(value, algorithm)


Hash.NONE = Hash("", HashAlgorithm.NONE)


@dataclass(frozen=True)
class RemoteArtifact:
    """Download location of a source or binary artifact plus its integrity hash."""

    url: str
    hash: Hash

    EMPTY: ClassVar[RemoteArtifact]

    @property
    def is_empty(self) -> bool:
        return self == RemoteArtifact.EMPTY


RemoteArtifact.EMPTY = RemoteArtifact("", Hash.NONE)


class VcsType(Enum):
    UNKNOWN = ""
    GIT = "Git"
    MERCURIAL = "Mercurial"
    SUBVERSION = "Subversion"


@dataclass(frozen=True)
class VcsInfo:
    type: VcsType
    url: str
    revision: str = ""
    path: str = ""

    EMPTY: ClassVar[VcsInfo]

    @property
    def is_empty(self) -> bool:
        return self == VcsInfo.EMPTY


VcsInfo.EMPTY = VcsInfo(VcsType.UNKNOWN, "")


class PackageLinkage(Enum):
    """How a dependency binds to its consumer."""

    DYNAMIC = "DYNAMIC"
    STATIC = "STATIC"
    PROJECT_DYNAMIC = "PROJECT_DYNAMIC"
    PROJECT_STATIC = "PROJECT_STATIC"

    @property
    def is_project_linkage(self) -> bool:
        return self in (PackageLinkage.PROJECT_DYNAMIC, PackageLinkage.PROJECT_STATIC)
