"""Per-subject episode statistics."""
from __future__ import annotations

import math
from typing import Sequence

from .models import Episode, EpisodeKey, EpisodeSummary, Series, SubjectStatistics


def round_half_up(value: float, digits: int) -> float:
    """Round half away from zero; non-finite and zero inputs become ``0.0``."""

    if not math.isfinite(value) or value == 0:
        return 0.0
    scale = 10.0**digits
    rounded = math.floor(abs(value) * scale + 0.5) / scale
    if rounded == 0:
        return 0.0
    return math.copysign(rounded, value)


def collect_statistics(series: Series, episodes: Sequence[Episode]) -> SubjectStatistics:
    stats = SubjectStatistics(total_observation_days=series.observation_days())
    for episode in episodes:
        stats.add_episode(episode)
    return stats


def episodes_per_day(count: int, total_days: float) -> float:
    if count <= 0 or total_days <= 0:
        return 0.0
    return round_half_up(count / total_days, 2)


def summarize_statistics(subject_id: str, key: EpisodeKey, stats: SubjectStatistics) -> EpisodeSummary:
    """Reduce accumulated statistics to the rounded summary row.

    Averages are 0.0 when the subject has no episodes for the key, and the
    episode rate is 0.0 when the observation span is empty.
    """

    count = stats.episode_count
    avg_duration = sum(stats.episode_durations) / count if count else 0.0
    avg_value = sum(stats.episode_values) / count if count else 0.0
    episode_type, severity = key
    return EpisodeSummary(
        subject_id=subject_id,
        episode_type=episode_type,
        severity=severity,
        total_episodes=count,
        episodes_per_day=episodes_per_day(count, stats.total_observation_days),
        avg_duration=round_half_up(avg_duration, 1),
        avg_value=round_half_up(avg_value, 1),
    )
