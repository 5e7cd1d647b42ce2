"""Registry policy configuration."""

from guildhall.policy.resolver import PolicyResolver

__all__ = ["PolicyResolver"]
