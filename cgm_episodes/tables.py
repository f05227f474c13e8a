"""Assemble episode and summary tables from per-subject results."""
from __future__ import annotations

import logging
import re
from datetime import timedelta, timezone, tzinfo
from functools import lru_cache
from typing import Iterable, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import pandas as pd

from .models import EPISODE_KEYS, Episode, EpisodeKey, EpisodeSummary, Series, SubjectResult

EPISODE_COLUMNS = [
    "id",
    "type",
    "level",
    "start_time",
    "end_time",
    "start_value",
    "end_value",
    "start_row",
    "end_row",
    "duration_minutes",
    "average_value",
    "secondary_duration_minutes",
]

SUMMARY_COLUMNS = [
    "id",
    "type",
    "level",
    "total_episodes",
    "episodes_per_day",
    "avg_duration",
    "avg_value",
]

TOTAL_COLUMNS = ["id", "total_episodes", "episodes_per_day", "avg_duration", "avg_value"]

_UTC_LABELS = {"UTC", "GMT", "Z"}
_OFFSET_LABEL = re.compile(r"^(?:UTC|GMT)?([+-])(\d{1,2})(?::?(\d{2}))?$")


@lru_cache(maxsize=None)
def resolve_timezone(label: Optional[str]) -> tzinfo:
    """Map an IANA name or ``UTC+HH:MM`` label to a tzinfo, defaulting to UTC."""

    if not label or label.strip().upper() in _UTC_LABELS:
        return timezone.utc
    cleaned = label.strip()
    match = _OFFSET_LABEL.match(cleaned.upper())
    if match:
        sign, hours, minutes = match.groups()
        offset = timedelta(hours=int(hours), minutes=int(minutes or 0))
        if offset < timedelta(hours=24):
            return timezone(-offset if sign == "-" else offset)
    else:
        try:
            return ZoneInfo(cleaned)
        except (ZoneInfoNotFoundError, ValueError):
            pass
    logging.warning(f"Unknown timezone label {label!r}; formatting times in UTC")
    return timezone.utc


def to_local_time(seconds: float, zone: tzinfo) -> pd.Timestamp:
    return pd.Timestamp(seconds, unit="s", tz="UTC").tz_convert(zone)


def _ordered_keys(keys: Iterable[EpisodeKey]) -> list[EpisodeKey]:
    keys = list(keys)
    ordered = [key for key in EPISODE_KEYS if key in keys]
    ordered.extend(key for key in keys if key not in ordered)
    return ordered


def episode_record(series: Series, key: EpisodeKey, episode: Episode) -> dict:
    zone = resolve_timezone(series.local_timezone)
    episode_type, severity = key
    return {
        "id": episode.subject_id,
        "type": episode_type.value,
        "level": severity.value,
        "start_time": to_local_time(episode.start_time, zone),
        "end_time": to_local_time(episode.end_time, zone),
        "start_value": episode.start_value,
        "end_value": episode.end_value,
        "start_row": int(series.rows[series.resolve(episode.start)]),
        "end_row": int(series.rows[series.resolve(episode.end)]),
        "duration_minutes": episode.duration_minutes,
        "average_value": episode.average_value,
        "secondary_duration_minutes": episode.secondary_duration_minutes,
    }


def summary_record(summary: EpisodeSummary) -> dict:
    return {
        "id": summary.subject_id,
        "type": summary.episode_type.value,
        "level": summary.severity.value,
        "total_episodes": summary.total_episodes,
        "episodes_per_day": summary.episodes_per_day,
        "avg_duration": summary.avg_duration,
        "avg_value": summary.avg_value,
    }


def episodes_frame(results: Iterable[SubjectResult]) -> pd.DataFrame:
    """One row per episode: subject order, then key order, then start time."""

    records: list[dict] = []
    for result in results:
        for key in _ordered_keys(result.episodes):
            for episode in sorted(result.episodes[key], key=lambda item: item.start_time):
                records.append(episode_record(result.series, key, episode))
    return pd.DataFrame(records, columns=EPISODE_COLUMNS)


def summary_frame(results: Iterable[SubjectResult]) -> pd.DataFrame:
    records = [
        summary_record(result.summaries[key])
        for result in results
        for key in _ordered_keys(result.summaries)
    ]
    return pd.DataFrame(records, columns=SUMMARY_COLUMNS)


def totals_frame(results: Iterable[SubjectResult], key: EpisodeKey) -> pd.DataFrame:
    """Per-subject totals for a single episode key."""

    records = []
    for result in results:
        record = summary_record(result.summaries[key])
        records.append({column: record[column] for column in TOTAL_COLUMNS})
    return pd.DataFrame(records, columns=TOTAL_COLUMNS)
