"""Guildhall — role-gated project registry with reputation and ban control."""

__version__ = "0.1.0"
