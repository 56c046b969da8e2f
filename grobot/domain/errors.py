from __future__ import annotations


class GrobotError(Exception):
    """Base class for controller errors."""


class ConfigurationError(GrobotError, ValueError):
    """Invalid control configuration. Fatal at startup."""


class ProtocolViolation(GrobotError, RuntimeError):
    """A consumer saw a message the producer contract rules out."""


class BusClosed(GrobotError):
    """The producer side of the control bus has gone away."""
