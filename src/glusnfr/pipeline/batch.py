"""
Filter several independent recordings with one accelerator context.

Acquiring a device is the expensive part of the accelerated path, so a batch
of recordings (e.g. every coverslip of an experiment day) shares a single
AcceleratorContext. The context carries no per-region state between
recordings.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Mapping, Optional, Sequence, Union

from tqdm import tqdm

from ..core.config import AnalysisConfig, StimulusTiming
from ..core.logging_setup import RunLogger
from ..execution.accelerator import AcceleratorContext
from ..normalization.normalizer import METHOD_FIXED
from .filtering import FilterResult, filter_regions

logger = logging.getLogger(__name__)


@dataclass
class Dataset:
    """One recording of a batch."""
    traces: object
    timing: StimulusTiming
    identifiers: Optional[Sequence] = None


def filter_batch(
    datasets: Mapping[str, Union[Dataset, tuple]],
    config: Optional[AnalysisConfig] = None,
    context: Optional[AcceleratorContext] = None,
    method: str = METHOD_FIXED,
    log_file: Optional[Path] = None,
) -> Dict[str, FilterResult]:
    """
    Run filter_regions on every dataset.

    Args:
        datasets: label -> Dataset, or label -> (traces, timing[, identifiers]).
        config: Shared analysis configuration.
        context: Shared accelerator handle; CPU only when None.
        method: Normalization method for every dataset.
        log_file: Optional file receiving the per-dataset log lines.

    Returns:
        label -> FilterResult, in the order of ``datasets``.
    """
    config = config or AnalysisConfig()
    context = context or AcceleratorContext.cpu_only()
    results = {}

    logger.info(f"Filtering {len(datasets)} datasets with config '{config.config_id}' on {context.name}")
    for label, item in tqdm(datasets.items(), total=len(datasets), desc="Filtering datasets", unit="dataset"):
        dataset = item if isinstance(item, Dataset) else Dataset(*item)
        with RunLogger(__name__, label, log_file=log_file) as run_logger:
            results[label] = filter_regions(
                dataset.traces,
                dataset.timing,
                config=config,
                identifiers=dataset.identifiers,
                context=context,
                method=method,
                logger=run_logger,
            )

    passed = sum(len(r.identifiers) for r in results.values())
    analysed = sum(r.statistics.analysed_rois for r in results.values())
    logger.info(f"Batch complete: {passed}/{analysed} ROIs passed across {len(results)} datasets")
    return results
