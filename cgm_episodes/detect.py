"""Single-configuration helpers and the all-presets summary shortcut."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional

import pandas as pd

from .detection import detect_episodes
from .engine import EpisodeEngine
from .grouping import ReadingMinutes, group_readings
from .models import (
    DetectionConfig,
    Direction,
    EpisodeKey,
    EpisodeType,
    ExclusiveMode,
    Severity,
    SubjectResult,
)
from .statistics import collect_statistics, summarize_statistics
from .tables import episodes_frame, totals_frame

LEVEL_2_HYPO_THRESHOLD = 54.0
LEVEL_2_HYPER_THRESHOLD = 250.0
EXTENDED_CORE_MINUTES = 120.0


@dataclass(frozen=True)
class EventTables:
    detailed: pd.DataFrame
    total: pd.DataFrame


def _severity(episode_type: EpisodeType, entry_threshold: float, min_core_minutes: float) -> Severity:
    """Label a custom configuration with the closest standard severity."""

    if min_core_minutes >= EXTENDED_CORE_MINUTES:
        return Severity.EXTENDED
    if episode_type is EpisodeType.HYPO:
        deep = entry_threshold <= LEVEL_2_HYPO_THRESHOLD
    else:
        deep = entry_threshold >= LEVEL_2_HYPER_THRESHOLD
    return Severity.LEVEL_2 if deep else Severity.LEVEL_1


def detect_events(
    data: Any,
    key: EpisodeKey,
    config: DetectionConfig,
    reading_minutes: ReadingMinutes = None,
) -> EventTables:
    """Detect episodes for one configuration and return detailed and total tables."""

    results = []
    for series in group_readings(data, reading_minutes).values():
        episodes = detect_episodes(series, config.with_sampling(series.nominal_sampling_minutes))
        summary = summarize_statistics(series.subject_id, key, collect_statistics(series, episodes))
        results.append(SubjectResult(series=series, episodes={key: episodes}, summaries={key: summary}))
    return EventTables(detailed=episodes_frame(results), total=totals_frame(results, key))


def detect_hypoglycemic_events(
    data: Any,
    reading_minutes: ReadingMinutes = None,
    *,
    entry_threshold: float = 70.0,
    min_core_minutes: float = 120.0,
    min_recovery_minutes: float = 15.0,
    secondary_threshold: Optional[float] = 54.0,
) -> EventTables:
    """Readings below ``entry_threshold``; recovery at or above the same value."""

    config = DetectionConfig(
        entry_threshold=entry_threshold,
        recovery_threshold=entry_threshold,
        direction=Direction.BELOW,
        min_core_duration_minutes=min_core_minutes,
        min_recovery_duration_minutes=min_recovery_minutes,
        secondary_threshold=secondary_threshold,
    )
    key = (EpisodeType.HYPO, _severity(EpisodeType.HYPO, entry_threshold, min_core_minutes))
    return detect_events(data, key, config, reading_minutes)


def detect_hyperglycemic_events(
    data: Any,
    reading_minutes: ReadingMinutes = None,
    *,
    entry_threshold: float = 250.0,
    recovery_threshold: float = 180.0,
    min_core_minutes: float = 120.0,
    min_recovery_minutes: float = 15.0,
) -> EventTables:
    """Readings above ``entry_threshold``; recovery at or below ``recovery_threshold``."""

    config = DetectionConfig(
        entry_threshold=entry_threshold,
        recovery_threshold=recovery_threshold,
        direction=Direction.ABOVE,
        min_core_duration_minutes=min_core_minutes,
        min_recovery_duration_minutes=min_recovery_minutes,
    )
    key = (EpisodeType.HYPER, _severity(EpisodeType.HYPER, entry_threshold, min_core_minutes))
    return detect_events(data, key, config, reading_minutes)


def detect_all_events(
    data: Any,
    reading_minutes: ReadingMinutes = None,
    *,
    exclusive_mode: ExclusiveMode,
) -> pd.DataFrame:
    """Summary table with one row per subject for each of the eight episode keys."""

    engine = EpisodeEngine(exclusive_mode=exclusive_mode)
    return engine.run(data, reading_minutes).summary
