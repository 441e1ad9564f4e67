from __future__ import annotations


class ProctorError(Exception):
    """Base class for errors raised by the monitoring layer."""


class ProviderUnavailable(ProctorError):
    """A perception model could not be loaded."""


class ProviderError(ProctorError):
    """A single perception call failed."""


class InvalidCapture(ProctorError):
    """A reference capture did not see exactly one usable face."""


class ConfigurationError(ProctorError):
    """A settings payload was rejected."""
