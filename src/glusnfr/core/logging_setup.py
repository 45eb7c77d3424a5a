"""
Per-dataset logging for batch runs.

Modules log through ``logging.getLogger(__name__)``; RunLogger adds the
dataset label to every message and can mirror one dataset's messages into a
log file for the duration of its run.
"""
import logging
from pathlib import Path
from typing import List, Optional

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class RunLogger:
    """
    Logger that prefixes every message with the dataset label.

    Usage:
        logger = RunLogger('glusnfr.pipeline.batch', label='coverslip_3')
        logger.info("12 ROIs passed")  # Outputs: [coverslip_3] 12 ROIs passed

    Without a log file the messages go through the module logger hierarchy,
    so whatever handlers the caller configured stay in charge. With a log file
    the messages go to ``<module_name>.<label>`` and its file handler, which
    is detached again by ``close()``.
    """

    def __init__(self, module_name: str, label: str, log_file: Optional[Path] = None,
                 level: int = logging.INFO):
        self.label = label
        self.prefix = f"[{label}]"
        self._handlers: List[logging.Handler] = []
        if log_file:
            self._logger = logging.getLogger(f"{module_name}.{label}")
            self._logger.setLevel(level)
            log_file = Path(log_file)
            log_file.parent.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(log_file, encoding='utf-8')
            fh.setLevel(level)
            fh.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
            self._logger.addHandler(fh)
            self._handlers.append(fh)
        else:
            self._logger = logging.getLogger(module_name)

    def close(self):
        """Detach and close the handlers this logger added."""
        for handler in self._handlers:
            self._logger.removeHandler(handler)
            handler.close()
        self._handlers.clear()

    def __enter__(self) -> 'RunLogger':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    def _format(self, msg: str) -> str:
        return f"{self.prefix} {msg}"

    def info(self, msg: str):
        self._logger.info(self._format(msg))

    def warning(self, msg: str):
        self._logger.warning(self._format(msg))

    def error(self, msg: str):
        self._logger.error(self._format(msg))

    def debug(self, msg: str):
        self._logger.debug(self._format(msg))
