"""
Baseline normalization with automatic CPU / accelerator execution.

BaselineNormalizer asks the dispatcher for an execution plan, then runs the
fixed-window or rolling-median normalization on the CPU, on the device in
one transfer, or on the device in column chunks. Whatever path runs, the
output has the input's shape and column order.

Recovery from device failures:
- out of memory: halve the chunk size and restart the accelerated attempt
  from the first column, down to one region per chunk;
- anything else (or OOM at one region per chunk): recompute the whole input
  on the CPU and mark the result as not accelerated.
Partial device results are never combined with CPU results.
"""
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, List, Optional, Tuple

import numpy as np
from tqdm import tqdm

from ..core.config import AnalysisConfig
from ..core.errors import AcceleratorOutOfMemoryError, InvalidInputError
from ..execution.accelerator import AcceleratorContext
from ..execution.dispatcher import ExecutionPlan, LinearCostModel, decide, iter_chunks
from .fixed_baseline import compute_fixed_baseline
from .rolling_median import DeviceRollingWindow, compute_rolling_median_baseline

logger = logging.getLogger(__name__)

METHOD_FIXED = 'fixed'
METHOD_ROLLING = 'rolling_median'


@dataclass
class NormalizationResult:
    """dF/F matrix plus a record of how it was computed."""
    dff: np.ndarray
    method: str
    accelerated: bool
    plan: ExecutionPlan
    baseline: Optional[np.ndarray] = None
    outlier_counts: List[int] = field(default_factory=list)
    chunks: int = 1
    fallback_reason: Optional[str] = None


@dataclass
class _Partial:
    dff: np.ndarray
    baseline: Optional[np.ndarray] = None
    outlier_counts: List[int] = field(default_factory=list)


def _merge_outlier_counts(parts: List[_Partial]) -> List[int]:
    """Sum per-pass outlier counts across chunks that may have stopped early."""
    n_passes = max((len(p.outlier_counts) for p in parts), default=0)
    totals = [0] * n_passes
    for part in parts:
        for i, count in enumerate(part.outlier_counts):
            totals[i] += count
    return totals


def _merge(parts: List[_Partial]) -> _Partial:
    if len(parts) == 1:
        return parts[0]
    dff = np.concatenate([p.dff for p in parts], axis=-1)
    baseline = None
    if parts[0].baseline is not None:
        baseline = np.concatenate([p.baseline for p in parts], axis=-1)
    return _Partial(dff=dff, baseline=baseline, outlier_counts=_merge_outlier_counts(parts))


class BaselineNormalizer:
    """
    Convert frames x regions intensity traces into dF/F.

    Args:
        config: Analysis configuration (defaults when None).
        context: Accelerator handle; CPU only when None.
        cost_model: Throughput model passed to the dispatcher.
    """

    def __init__(self, config: Optional[AnalysisConfig] = None,
                 context: Optional[AcceleratorContext] = None,
                 cost_model: Optional[LinearCostModel] = None):
        self.config = config or AnalysisConfig()
        self.context = context or AcceleratorContext.cpu_only()
        self.cost_model = cost_model
        self.dtype = np.float32 if self.config.use_single_precision else np.float64

    def plan(self, traces: np.ndarray, intermediate_factor: int = 1) -> ExecutionPlan:
        n_frames, _ = traces.shape
        return decide(
            traces.size,
            self.context.available,
            self.context.memory_bytes,
            self.config,
            frames_per_region=n_frames,
            intermediate_factor=intermediate_factor,
            cost_model=self.cost_model,
        )

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def normalize(self, traces, baseline_window: Tuple[int, int]) -> NormalizationResult:
        """Fixed-window dF/F: F0 is the mean over ``baseline_window``."""
        traces = self._as_matrix(traces)
        start, stop = baseline_window
        if not 0 <= start < stop <= traces.shape[0]:
            raise InvalidInputError(
                f"Baseline window {baseline_window} is outside the trace ({traces.shape[0]} frames)"
            )
        min_f0 = self.config.min_f0

        def run_cpu(data):
            return _Partial(dff=compute_fixed_baseline(data, baseline_window, min_f0, xp=np, dtype=self.dtype))

        def run_device(chunk):
            xp = self.context.xp
            device_data = self.context.to_device(chunk, dtype=self.dtype)
            dff = compute_fixed_baseline(device_data, baseline_window, min_f0, xp=xp, dtype=self.dtype)
            return _Partial(dff=self.context.to_host(dff))

        return self._run(METHOD_FIXED, traces, self.plan(traces), run_cpu, run_device)

    def normalize_rolling(self, traces) -> NormalizationResult:
        """Rolling-median dF/F with iterative outlier replacement."""
        traces = self._as_matrix(traces)
        cfg = self.config
        window = cfg.rolling_window_frames

        def run(data, roller=None):
            result = compute_rolling_median_baseline(
                data, window, cfg.outlier_sigma, cfg.max_iterations, roller=roller,
            )
            return _Partial(
                dff=result.dff.astype(self.dtype),
                baseline=result.baseline.astype(self.dtype),
                outlier_counts=result.outlier_counts,
            )

        def run_device(chunk):
            return run(chunk, roller=DeviceRollingWindow(window, self.context, dtype=self.dtype))

        plan = self.plan(traces, intermediate_factor=window)
        return self._run(METHOD_ROLLING, traces, plan, run, run_device)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    @staticmethod
    def _as_matrix(traces) -> np.ndarray:
        data = np.asarray(traces)
        if data.ndim != 2:
            raise InvalidInputError(f"Expected a 2-D frames x regions matrix, got shape {data.shape}")
        return data

    def _run(self, method: str, traces: np.ndarray, plan: ExecutionPlan,
             run_cpu: Callable, run_device: Callable) -> NormalizationResult:
        if not plan.use_accelerated:
            logger.info(f"{method} normalization on CPU: {plan.reason}")
            return self._cpu_result(method, traces, plan, run_cpu)

        logger.info(f"{method} normalization on {self.context.name}: {plan.reason}")
        n_regions = traces.shape[1]
        chunk_size = plan.chunk_size

        while True:
            slices = list(iter_chunks(n_regions, chunk_size))
            try:
                parts = []
                for cols in tqdm(slices, desc=f'{method} chunks', leave=False, disable=len(slices) == 1):
                    with self.context.device_errors():
                        parts.append(run_device(traces[:, cols]))
                break
            except AcceleratorOutOfMemoryError as e:
                current = chunk_size or n_regions
                if current <= 1:
                    reason = f'device out of memory at one region per chunk ({e})'
                    logger.warning(f"{method} normalization falling back to CPU: {reason}")
                    return self._cpu_result(method, traces, plan, run_cpu, fallback_reason=reason)
                chunk_size = max(current // 2, 1)
                logger.warning(f"Device out of memory, retrying {method} normalization "
                               f"with {chunk_size} regions per chunk")
            except Exception as e:
                reason = f'{type(e).__name__}: {e}'
                logger.warning(f"{method} normalization falling back to CPU: {reason}")
                return self._cpu_result(method, traces, plan, run_cpu, fallback_reason=reason)

        if chunk_size != plan.chunk_size:
            plan = replace(plan, chunk_size=chunk_size,
                           reason=f'{plan.reason}; re-chunked at {chunk_size} regions after out of memory')

        merged = _merge(parts)
        return NormalizationResult(
            dff=merged.dff,
            method=method,
            accelerated=True,
            plan=plan,
            baseline=merged.baseline,
            outlier_counts=merged.outlier_counts,
            chunks=len(parts),
        )

    def _cpu_result(self, method, traces, plan, run_cpu, fallback_reason=None) -> NormalizationResult:
        partial = run_cpu(traces)
        return NormalizationResult(
            dff=partial.dff,
            method=method,
            accelerated=False,
            plan=plan,
            baseline=partial.baseline,
            outlier_counts=partial.outlier_counts,
            chunks=1,
            fallback_reason=fallback_reason,
        )
