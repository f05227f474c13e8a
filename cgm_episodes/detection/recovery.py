"""Close core intervals into episodes by confirming a sustained recovery."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional, Sequence

import numpy as np

from ..models import CoreInterval, DetectionConfig, Episode, RecoveryFallback, Series
from .scanner import scan_core_intervals
from .timing import elapsed_minutes, is_large_gap, meets_duration


@dataclass(frozen=True)
class RecoveryOutcome:
    """Result of a forward recovery search.

    ``recovery_index`` is the first reading of the earliest sustained recovery,
    ``confirmed_index`` the reading at which it became sustained and
    ``gap_index`` the reading that follows a large gap, if the search stopped
    there.
    """

    recovery_index: Optional[int] = None
    confirmed_index: Optional[int] = None
    gap_index: Optional[int] = None

    @property
    def confirmed(self) -> bool:
        return self.recovery_index is not None


def find_recovery(
    series: Series,
    config: DetectionConfig,
    after_index: int,
    *,
    limit: Optional[int] = None,
) -> RecoveryOutcome:
    """Scan readings after ``after_index`` (and before ``limit``) for a sustained recovery.

    A candidate that falls back before it is sustained is dropped and the scan
    moves on to later candidates. A large gap ends the search.
    """

    stop = len(series) if limit is None else min(limit, len(series))
    candidate: Optional[int] = None
    for index in range(after_index + 1, stop):
        if is_large_gap(series, config, index):
            return RecoveryOutcome(gap_index=index)

        value = float(series.values[index])
        if math.isnan(value):
            continue
        if not config.recovered(value):
            candidate = None
            continue
        if candidate is None:
            candidate = index
        span = elapsed_minutes(series, candidate, index)
        if meets_duration(span, config.min_recovery_duration_minutes, config):
            return RecoveryOutcome(recovery_index=candidate, confirmed_index=index)
    return RecoveryOutcome()


def _last_reading_before(series: Series, start: int, boundary: int) -> int:
    for index in range(boundary - 1, start - 1, -1):
        if not series.is_missing(index):
            return index
    return start


def secondary_duration_minutes(series: Series, config: DetectionConfig, start: int, end: int) -> Optional[float]:
    """Minutes spent beyond ``config.secondary_threshold`` between ``start`` and ``end``."""

    if config.secondary_threshold is None:
        return None
    total = 0.0
    for index in range(start, end + 1):
        if not config.beyond_secondary(float(series.values[index])):
            continue
        if index < end or index + 1 < len(series):
            total += elapsed_minutes(series, index, index + 1)
        elif index > start:
            total += elapsed_minutes(series, index - 1, index)
    return total


def build_episode(series: Series, config: DetectionConfig, start: int, end: int) -> Episode:
    """Measure an episode spanning ``start``..``end`` (inclusive)."""

    window = series.values[start : end + 1]
    present = window[~np.isnan(window)]
    average = float(present.mean()) if present.size else 0.0
    return Episode(
        subject_id=series.subject_id,
        start_index=start,
        end_index=end,
        start_time=float(series.timestamps[start]),
        end_time=float(series.timestamps[end]),
        start_value=float(series.values[start]),
        end_value=float(series.values[end]),
        duration_minutes=elapsed_minutes(series, start, end) + config.nominal_sampling_minutes,
        average_value=average,
        secondary_duration_minutes=secondary_duration_minutes(series, config, start, end),
    )


def _absorbed(series: Series, config: DetectionConfig, previous: Episode, core: CoreInterval) -> bool:
    """True when ``core`` continues ``previous`` rather than starting a new episode."""

    if core.start_index <= previous.end_index:
        return True
    between = find_recovery(series, config, previous.end_index, limit=core.start_index)
    return not between.confirmed and between.gap_index is None


def resolve_episodes(
    series: Series,
    config: DetectionConfig,
    cores: Sequence[CoreInterval],
) -> list[Episode]:
    """Turn accepted core intervals into non-overlapping, time-ordered episodes."""

    episodes: list[Episode] = []
    for position, core in enumerate(cores):
        if episodes and _absorbed(series, config, episodes[-1], core):
            continue

        outcome = find_recovery(series, config, core.end_index)
        if outcome.confirmed:
            end = _last_reading_before(series, core.start_index, outcome.recovery_index)
            episodes.append(build_episode(series, config, core.start_index, end))
        elif config.recovery_fallback is RecoveryFallback.FINALIZE_AT_CORE_END:
            # Later cores before the gap (or end of data) are absorbed into this episode.
            end = core.end_index
            for later in cores[position + 1 :]:
                if outcome.gap_index is not None and later.start_index >= outcome.gap_index:
                    break
                end = max(end, later.end_index)
            episodes.append(build_episode(series, config, core.start_index, end))
        else:
            reason = "data gap" if outcome.gap_index is not None else "end of data"
            logging.debug(
                f"Subject {series.subject_id}: core {core.start_index}-{core.end_index} discarded, "
                f"no confirmed recovery before {reason}"
            )
    return episodes


def detect_episodes(series: Series, config: DetectionConfig) -> list[Episode]:
    """Run the core scan and recovery resolution for one configuration."""

    if len(series) == 0:
        return []
    return resolve_episodes(series, config, scan_core_intervals(series, config))
