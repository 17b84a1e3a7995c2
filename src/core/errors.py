"""Dashbuilder backend exception hierarchy.

This module defines traceable domain errors with clear boundaries.
Each subsystem raises a specific error type for debuggability.
"""

from __future__ import annotations


class DashbuilderError(Exception):
    """Base exception for all dashbuilder backend failures."""


class DashbuilderConfigError(DashbuilderError):
    """Raised for invalid runtime configuration."""


class DashbuilderStoreError(DashbuilderError):
    """Raised for versioned store read, write and commit failures."""


class DashbuilderParseError(DashbuilderStoreError):
    """Raised when a data set definition document cannot be parsed."""


class DashbuilderValidationError(DashbuilderError):
    """Raised when a definition or its attachments violate a constraint."""


class DashbuilderDeployError(DashbuilderError):
    """Raised for deployment directory failures."""


class DashbuilderDependencyError(DashbuilderError):
    """Raised when an optional runtime dependency is missing."""
