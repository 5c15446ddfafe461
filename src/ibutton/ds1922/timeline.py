"""Chronological reconstruction of logged samples, including rollover."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np
import pandas as pd

from ..errors import StateError
from .registers import StatusRegister
from .samples import log_capacity


@dataclass(frozen=True)
class MissionTimeline:
    """
    Maps the physical order of the circular log onto wall-clock time.

    When more samples were logged than the memory holds, the oldest surviving
    sample sits at `logged % capacity` and the first timestamp moves forward
    by one interval per overwritten sample.
    """

    mission_start: datetime
    interval_s: int
    logged: int
    capacity: int

    @classmethod
    def from_register(cls, register: StatusRegister) -> "MissionTimeline":
        start = register.mission_timestamp
        if start is None:
            raise StateError("Mission timestamp is not set")
        if register.sample_rate == 0:
            raise StateError("Sample rate is not set")
        return cls(
            mission_start=start,
            interval_s=register.sample_interval,
            logged=register.sample_count,
            capacity=log_capacity(register.high_resolution),
        )

    @property
    def rolled_over(self) -> bool:
        return self.logged > self.capacity

    @property
    def oldest_index(self) -> int:
        return self.logged % self.capacity if self.rolled_over else 0

    @property
    def stored_count(self) -> int:
        return min(self.logged, self.capacity)

    @property
    def first_timestamp(self) -> datetime:
        overwritten = self.logged - self.capacity if self.rolled_over else 0
        return self.mission_start + timedelta(seconds=self.interval_s * overwritten)

    def timestamps(self, count: int) -> pd.DatetimeIndex:
        return pd.date_range(
            start=self.first_timestamp,
            periods=count,
            freq=pd.Timedelta(seconds=self.interval_s),
            name="timestamp",
        )

    def arrange(self, values) -> pd.DataFrame:
        """Order *values* (physical storage order) chronologically with timestamps."""
        values = np.asarray(values, dtype=float)
        if self.rolled_over:
            if len(values) != self.capacity:
                raise ValueError(
                    f"Rolled-over log needs all {self.capacity} stored samples, got {len(values)}"
                )
            values = np.roll(values, -self.oldest_index)
        return pd.DataFrame({"temperature": values}, index=self.timestamps(len(values)))
