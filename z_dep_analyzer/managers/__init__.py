"""Package manager resolvers and their registry."""

from z_dep_analyzer.managers.base import PackageManager
from z_dep_analyzer.managers.registry import (
    ManagerDescriptor,
    ManagerRegistry,
    create_default_registry,
)

__all__ = [
    "ManagerDescriptor",
    "ManagerRegistry",
    "PackageManager",
    "create_default_registry",
]
