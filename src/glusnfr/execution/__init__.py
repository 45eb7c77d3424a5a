"""Accelerator handle and CPU / accelerator execution-path selection."""

from .accelerator import AcceleratorContext
from .dispatcher import LinearCostModel, ExecutionPlan, decide, iter_chunks

__all__ = [
    'AcceleratorContext',
    'LinearCostModel',
    'ExecutionPlan',
    'decide',
    'iter_chunks',
]
