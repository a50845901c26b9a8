"""Exception types shared by the validator core and its collaborators."""

from __future__ import annotations


class ArchGuardError(Exception):
    """Base class for errors that abort a validation run."""


class ConfigurationError(ArchGuardError, ValueError):
    """Raised when the rule set or component mapping is inconsistent.

    Examples: a rule references an unknown component, the rules file is
    malformed, or strict-mode ingestion finds a unit outside every component.
    """


class IngestionError(ArchGuardError, ValueError):
    """Raised when raw import data is malformed.

    Examples: an empty unit identifier or a missing source location.
    """
