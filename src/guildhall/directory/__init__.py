"""Contributor directory — registered members and their profiles."""

from guildhall.directory.contributors import ContributorDirectory, ContributorProfile

__all__ = ["ContributorDirectory", "ContributorProfile"]
