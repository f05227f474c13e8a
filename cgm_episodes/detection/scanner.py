"""Find core intervals: sustained runs of readings beyond the entry threshold."""
from __future__ import annotations

import logging
import math

from ..models import CoreInterval, DetectionConfig, RecoveryFallback, Series
from .timing import elapsed_minutes, is_large_gap, meets_duration


def accepts_core(accumulated_minutes: float, qualifying_count: int, config: DetectionConfig) -> bool:
    """Duration gate plus the 75% reading-density gate."""

    if not meets_duration(accumulated_minutes, config.min_core_duration_minutes, config):
        return False
    return qualifying_count >= config.min_required_readings


def scan_core_intervals(series: Series, config: DetectionConfig) -> list[CoreInterval]:
    """Return accepted core intervals in time order.

    Missing values neither extend nor break a run. A large gap resets an open
    run without evaluating it, unless the recovery fallback finalizes episodes
    at the core end, in which case the run is evaluated before the gap. A run
    still open at the end of the series is always evaluated.
    """

    intervals: list[CoreInterval] = []
    in_core = False
    core_start = -1
    last_qualifying = -1
    accumulated = 0.0
    qualifying_count = 0

    def close() -> None:
        if accepts_core(accumulated, qualifying_count, config):
            intervals.append(
                CoreInterval(
                    start_index=core_start,
                    end_index=last_qualifying,
                    accumulated_duration_minutes=accumulated,
                    qualifying_reading_count=qualifying_count,
                )
            )

    for index in range(len(series)):
        if in_core and is_large_gap(series, config, index):
            if config.recovery_fallback is RecoveryFallback.FINALIZE_AT_CORE_END:
                close()
            else:
                logging.debug(
                    f"Subject {series.subject_id}: core starting at {core_start} dropped by data gap before {index}"
                )
            in_core = False

        value = float(series.values[index])
        if math.isnan(value):
            continue

        if config.qualifies(value):
            if not in_core:
                in_core = True
                core_start = index
                last_qualifying = index
                accumulated = 0.0
                qualifying_count = 1
            else:
                accumulated += elapsed_minutes(series, last_qualifying, index)
                last_qualifying = index
                qualifying_count += 1
        elif in_core:
            close()
            in_core = False

    if in_core:
        close()

    return intervals
