"""
Explicit accelerator handle.

An AcceleratorContext wraps an array module (cupy on a CUDA device) together
with the memory budget reported when it was acquired. It is created once by
the caller, passed to whatever needs it and released at the end; nothing in
the package reaches for a device on its own.

Tests and CPU-only machines can build a context around numpy to exercise the
accelerated code paths without a device.
"""
import logging
from contextlib import contextmanager
from typing import Optional, Tuple

import numpy as np

from ..core.errors import AcceleratorOutOfMemoryError, AcceleratorUnavailableError

logger = logging.getLogger(__name__)


class AcceleratorContext:
    """
    Device handle with an explicit acquire/release lifecycle.

    Args:
        xp: Array module used on the device (cupy, or numpy for simulation).
            None means no device.
        memory_bytes: Free device memory at acquisition time.
        name: Human readable device name for logs.
        device_id: CUDA device ordinal, if any.
    """

    def __init__(self, xp=None, memory_bytes: int = 0, name: str = 'none',
                 device_id: Optional[int] = None):
        self.xp = xp
        self.memory_bytes = int(memory_bytes) if xp is not None else 0
        self.name = name
        self.device_id = device_id

    def __repr__(self):
        return (f"AcceleratorContext(name={self.name!r}, available={self.available}, "
                f"memory_bytes={self.memory_bytes})")

    @property
    def available(self) -> bool:
        return self.xp is not None

    @classmethod
    def cpu_only(cls) -> 'AcceleratorContext':
        """Context without a device; every computation runs on the CPU."""
        return cls()

    @classmethod
    def acquire(cls, device_id: int = 0) -> 'AcceleratorContext':
        """
        Acquire a CUDA device through cupy.

        Returns a CPU-only context when cupy is not installed or no device can
        be opened, so callers never have to special-case machines without a GPU.
        """
        try:
            import cupy as cp
        except ImportError:
            logger.info("cupy is not installed; running on CPU")
            return cls.cpu_only()

        try:
            if cp.cuda.runtime.getDeviceCount() < 1:
                logger.info("No CUDA device found; running on CPU")
                return cls.cpu_only()
            device = cp.cuda.Device(device_id)
            device.use()
            free_bytes, total_bytes = device.mem_info
            props = cp.cuda.runtime.getDeviceProperties(device_id)
        except (cp.cuda.runtime.CUDARuntimeError, cp.cuda.driver.CUDADriverError) as e:
            logger.warning(f"Could not open CUDA device {device_id}: {e}; running on CPU")
            return cls.cpu_only()

        name = props.get('name', b'cuda')
        if isinstance(name, bytes):
            name = name.decode(errors='replace')

        logger.info(f"Acquired {name} (device {device_id}): "
                    f"{free_bytes / 1e9:.2f} GB free of {total_bytes / 1e9:.2f} GB")
        return cls(xp=cp, memory_bytes=free_bytes, name=name, device_id=device_id)

    def release(self):
        """Free cached device memory and detach the array module."""
        if self.xp is None:
            return
        pool_getter = getattr(self.xp, 'get_default_memory_pool', None)
        if pool_getter is not None:
            pool_getter().free_all_blocks()
        logger.debug(f"Released accelerator {self.name}")
        self.xp = None
        self.memory_bytes = 0

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    # ------------------------------------------------------------------
    # Transfers
    # ------------------------------------------------------------------

    def to_device(self, array, dtype=np.float32):
        if self.xp is None:
            raise AcceleratorUnavailableError("No accelerator attached to this context")
        return self.xp.asarray(array, dtype=dtype)

    def to_host(self, array) -> np.ndarray:
        if self.xp is None:
            raise AcceleratorUnavailableError("No accelerator attached to this context")
        as_numpy = getattr(self.xp, 'asnumpy', None)
        if as_numpy is not None:
            return as_numpy(array)
        return np.asarray(array)

    @property
    def out_of_memory_errors(self) -> Tuple[type, ...]:
        errors = [MemoryError]
        cuda = getattr(self.xp, 'cuda', None)
        memory = getattr(cuda, 'memory', None)
        oom = getattr(memory, 'OutOfMemoryError', None)
        if oom is not None:
            errors.append(oom)
        return tuple(errors)

    @contextmanager
    def device_errors(self):
        """Translate backend out-of-memory errors into AcceleratorOutOfMemoryError."""
        try:
            yield
        except self.out_of_memory_errors as e:
            raise AcceleratorOutOfMemoryError(str(e) or 'device out of memory') from e
