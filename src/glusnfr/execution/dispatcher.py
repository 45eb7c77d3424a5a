"""
CPU / accelerator execution-path selection.

decide() answers two questions for a frames x regions workload: is it worth
moving to the device, and does it fit in one transfer or does it need to be
split into column chunks. The answer is deterministic for a given input so the
same data always takes the same path.
"""
import logging
from dataclasses import dataclass
from typing import Iterator, Optional

from ..core.config import AnalysisConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LinearCostModel:
    """
    Throughput model used to project accelerated and CPU run time.

    Defaults assume a 12 GB/s host-device link with a round trip (data in,
    result out), 1e-8 s per element on the device and 1e-7 s per element on
    the CPU. Calibrated numbers for a given machine can be passed in instead.
    """
    transfer_bytes_per_second: float = 12e9
    accelerated_seconds_per_element: float = 1e-8
    cpu_seconds_per_element: float = 1e-7

    def accelerated_seconds(self, data_size: int, bytes_per_element: int) -> float:
        transfer = 2 * data_size * bytes_per_element / self.transfer_bytes_per_second
        return transfer + data_size * self.accelerated_seconds_per_element

    def cpu_seconds(self, data_size: int) -> float:
        return data_size * self.cpu_seconds_per_element


@dataclass(frozen=True)
class ExecutionPlan:
    """Outcome of decide(); chunk_size counts regions per chunk."""
    use_accelerated: bool
    chunk_size: Optional[int] = None
    estimated_bytes: int = 0
    budget_bytes: int = 0
    reason: str = ''

    @property
    def is_chunked(self) -> bool:
        return self.use_accelerated and self.chunk_size is not None


def decide(
    data_size: int,
    device_available: bool,
    device_memory_bytes: int,
    config: AnalysisConfig,
    frames_per_region: int = 1,
    intermediate_factor: int = 1,
    cost_model: Optional[LinearCostModel] = None,
) -> ExecutionPlan:
    """
    Choose the execution path for a workload of data_size elements.

    Args:
        data_size: Total number of elements (frames x regions).
        device_available: Whether an accelerator is attached.
        device_memory_bytes: Free device memory.
        config: Analysis configuration with the dispatch thresholds.
        frames_per_region: Rows per column, used to size chunks.
        intermediate_factor: Extra multiplier on the memory estimate for
            algorithms that materialize per-element windows.
        cost_model: Throughput model; LinearCostModel() when None.

    Returns:
        ExecutionPlan
    """
    cost_model = cost_model or LinearCostModel()
    bytes_per_element = config.bytes_per_element

    if not device_available:
        return ExecutionPlan(False, reason='no accelerator available')

    if data_size < config.min_accelerated_size:
        return ExecutionPlan(
            False,
            reason=f'data size {data_size} below minimum {config.min_accelerated_size}',
        )

    accelerated_time = cost_model.accelerated_seconds(data_size, bytes_per_element)
    cpu_time = cost_model.cpu_seconds(data_size)
    beneficial = (accelerated_time < cpu_time * (1 - config.min_speedup)
                  or data_size > config.large_dataset_override)
    if not beneficial:
        return ExecutionPlan(
            False,
            reason=f'projected speedup too small ({accelerated_time:.3g}s vs {cpu_time:.3g}s on CPU)',
        )

    per_element = bytes_per_element * config.memory_safety_factor * intermediate_factor
    estimated = int(data_size * per_element)
    budget = int(device_memory_bytes * config.memory_fraction)

    if estimated <= budget:
        return ExecutionPlan(True, None, estimated, budget, reason='fits device memory')

    chunk_size = int(budget // (max(frames_per_region, 1) * per_element))
    if chunk_size < 1:
        return ExecutionPlan(
            False, None, estimated, budget,
            reason='a single region does not fit device memory',
        )

    return ExecutionPlan(
        True, chunk_size, estimated, budget,
        reason=f'chunked at {chunk_size} regions per transfer',
    )


def iter_chunks(n_regions: int, chunk_size: Optional[int]) -> Iterator[slice]:
    """Yield column slices covering range(n_regions) in order."""
    if chunk_size is None or chunk_size >= n_regions:
        yield slice(0, n_regions)
        return
    for start in range(0, n_regions, chunk_size):
        yield slice(start, min(start + chunk_size, n_regions))
