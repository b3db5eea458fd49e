"""Scheduled jobs.

Each job is a coroutine taking the process StoreContext and a TimerInfo.
"""

from .controls import CatalogFormatError, import_controls, import_controls_job, read_control_catalog
from .timer import TimerInfo

__all__ = [
    "CatalogFormatError",
    "TimerInfo",
    "import_controls",
    "import_controls_job",
    "read_control_catalog",
]
