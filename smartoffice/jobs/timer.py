"""Schedule information handed to every scheduled job."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class TimerInfo:
    """When a run was scheduled, and whether it started late."""

    scheduled_time: datetime
    is_past_due: bool = False
