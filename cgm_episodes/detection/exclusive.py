"""Derive severity-exclusive bands (e.g. level-1-only) from nested detections."""
from __future__ import annotations

from typing import Sequence

from ..models import Episode, EpisodeKey, EpisodeSummary, SubjectStatistics
from ..statistics import episodes_per_day, round_half_up


def exclusive_episodes(broad: Sequence[Episode], narrow: Sequence[Episode]) -> list[Episode]:
    """Keep each broad episode that shares no instant with any narrow episode."""

    kept: list[Episode] = []
    for episode in broad:
        if any(episode.overlaps(other) for other in narrow):
            continue
        kept.append(episode)
    return kept


def subtracted_summary(
    subject_id: str,
    key: EpisodeKey,
    broad: SubjectStatistics,
    narrow: SubjectStatistics,
) -> EpisodeSummary:
    """Summarise the exclusive band as broad minus narrow, clamped at zero.

    Averages are the count-weighted difference of the two sets, so they are
    only meaningful when the narrow episodes sit inside broad ones.
    """

    count = max(0, broad.episode_count - narrow.episode_count)
    avg_duration = 0.0
    avg_value = 0.0
    if count:
        duration_total = sum(broad.episode_durations) - sum(narrow.episode_durations)
        value_total = sum(broad.episode_values) - sum(narrow.episode_values)
        avg_duration = max(0.0, duration_total / count)
        avg_value = max(0.0, value_total / count)

    episode_type, severity = key
    return EpisodeSummary(
        subject_id=subject_id,
        episode_type=episode_type,
        severity=severity,
        total_episodes=count,
        episodes_per_day=episodes_per_day(count, broad.total_observation_days),
        avg_duration=round_half_up(avg_duration, 1),
        avg_value=round_half_up(avg_value, 1),
    )
