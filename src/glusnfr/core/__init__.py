"""Core infrastructure: configuration, logging and exceptions."""

# Config
from .config import (
    AnalysisConfig,
    StimulusTiming,
    PRESETS,
    MIN_FRAMES,
    get_preset,
    list_presets,
)

# Logging
from .logging_setup import RunLogger

# Errors
from .errors import (
    GluSnFRError,
    InvalidInputError,
    ConfigurationError,
    AcceleratorError,
    AcceleratorUnavailableError,
    AcceleratorOutOfMemoryError,
)

__all__ = [
    # Config
    'AnalysisConfig',
    'StimulusTiming',
    'PRESETS',
    'MIN_FRAMES',
    'get_preset',
    'list_presets',
    # Logging
    'RunLogger',
    # Errors
    'GluSnFRError',
    'InvalidInputError',
    'ConfigurationError',
    'AcceleratorError',
    'AcceleratorUnavailableError',
    'AcceleratorOutOfMemoryError',
]
