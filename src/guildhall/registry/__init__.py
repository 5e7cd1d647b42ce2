"""Project registry — ordered index of live projects plus the archive."""

from guildhall.registry.index import SENTINEL_ID, RegistryIndex
from guildhall.registry.project_registry import ProjectRecord, ProjectRegistry

__all__ = ["SENTINEL_ID", "RegistryIndex", "ProjectRecord", "ProjectRegistry"]
