"""
Exception types raised by the analysis core.

Only InvalidInputError and ConfigurationError ever reach the caller.
Accelerator errors are raised inside the execution layer and absorbed by
the CPU fallback in the normalizer.
"""


class GluSnFRError(Exception):
    """Base class for all package errors."""


class InvalidInputError(GluSnFRError, ValueError):
    """Trace matrix or identifiers cannot be analysed."""


class ConfigurationError(GluSnFRError, ValueError):
    """A configuration or timing value is out of range."""


class AcceleratorError(GluSnFRError, RuntimeError):
    """An accelerated computation could not be completed."""


class AcceleratorUnavailableError(AcceleratorError):
    """No usable device is attached to the context."""


class AcceleratorOutOfMemoryError(AcceleratorError):
    """The device ran out of memory for the requested chunk."""
