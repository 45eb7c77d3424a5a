"""
glusnfr - dF/F normalization and Schmitt-trigger ROI filtering for iGluSnFR
imaging experiments.

Modular structure:
- core/: Configuration, logging, exceptions
- execution/: Accelerator handle and execution-path selection
- normalization/: Fixed-window and rolling-median dF/F
- detection/: Noise thresholds and Schmitt-trigger detection
- pipeline/: ROI filtering of one recording or a batch
"""

from .core import AnalysisConfig, StimulusTiming, get_preset, list_presets
from .execution import AcceleratorContext, decide
from .normalization import BaselineNormalizer, compare_baselines
from .pipeline import FilterResult, FilterStatistics, filter_regions, filter_batch

__version__ = '0.1.0'

__all__ = [
    'AnalysisConfig',
    'StimulusTiming',
    'get_preset',
    'list_presets',
    'AcceleratorContext',
    'decide',
    'BaselineNormalizer',
    'compare_baselines',
    'FilterResult',
    'FilterStatistics',
    'filter_regions',
    'filter_batch',
]
