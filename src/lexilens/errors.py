"""Exception hierarchy for LexiLens."""

from __future__ import annotations


class LexiLensError(Exception):
    """Base class for all LexiLens errors."""


class ConfigError(LexiLensError):
    """Raised when settings cannot be loaded, parsed or validated."""


class BackendError(LexiLensError):
    """Raised when a dictionary backend call fails."""


class UnknownOperationError(LexiLensError):
    """Raised when an operation name is not in the operation registry."""
