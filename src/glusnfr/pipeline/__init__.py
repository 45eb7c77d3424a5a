"""ROI filtering for single recordings and batches."""

from .filtering import FilterResult, filter_regions, validate_traces, find_empty_regions
from .statistics import FilterStatistics, summarize
from .batch import Dataset, filter_batch

__all__ = [
    'FilterResult',
    'filter_regions',
    'validate_traces',
    'find_empty_regions',
    'FilterStatistics',
    'summarize',
    'Dataset',
    'filter_batch',
]
