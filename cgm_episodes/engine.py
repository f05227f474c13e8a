"""Run every episode preset across every subject of a reading table."""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional

import pandas as pd

from .detection import detect_episodes, exclusive_episodes, subtracted_summary
from .grouping import ReadingMinutes, group_readings
from .models import (
    Episode,
    EpisodeKey,
    EpisodeSummary,
    ExclusiveMode,
    Series,
    SubjectResult,
    SubjectStatistics,
    key_label,
)
from .presets import EXCLUSIVE_SOURCES, PresetRegistry, default_registry
from .statistics import collect_statistics, summarize_statistics
from .tables import episodes_frame, summary_frame


@dataclass(frozen=True)
class EpisodeReport:
    """Output of one engine run."""

    episodes: pd.DataFrame
    summary: pd.DataFrame
    subjects: list[SubjectResult]


class EpisodeEngine:
    """Detects episodes for each subject with every registered preset.

    Subjects are independent, so ``workers > 1`` spreads them over a thread
    pool; results are always reported in the order subjects first appear in
    the input.
    """

    def __init__(
        self,
        registry: Optional[PresetRegistry] = None,
        *,
        exclusive_mode: ExclusiveMode,
        workers: int = 1,
        nominal_sampling_minutes: float = 5.0,
    ) -> None:
        self.registry = registry or default_registry(nominal_sampling_minutes=nominal_sampling_minutes)
        self.exclusive_mode = ExclusiveMode(exclusive_mode)
        self.workers = max(1, int(workers))

    def run_subject(self, series: Series) -> SubjectResult:
        episodes: Dict[EpisodeKey, list[Episode]] = {}
        summaries: Dict[EpisodeKey, EpisodeSummary] = {}
        statistics: Dict[EpisodeKey, SubjectStatistics] = {}

        for key, config in self.registry.items():
            detected = detect_episodes(series, config.with_sampling(series.nominal_sampling_minutes))
            episodes[key] = detected
            statistics[key] = collect_statistics(series, detected)
            summaries[key] = summarize_statistics(series.subject_id, key, statistics[key])

        for key, (broad, narrow) in EXCLUSIVE_SOURCES.items():
            if broad not in episodes or narrow not in episodes:
                continue
            if self.exclusive_mode is ExclusiveMode.OVERLAP:
                kept = exclusive_episodes(episodes[broad], episodes[narrow])
                episodes[key] = kept
                summaries[key] = summarize_statistics(series.subject_id, key, collect_statistics(series, kept))
            else:
                summaries[key] = subtracted_summary(series.subject_id, key, statistics[broad], statistics[narrow])

        return SubjectResult(series=series, episodes=episodes, summaries=summaries)

    def run_series(self, series_list: Iterable[Series]) -> list[SubjectResult]:
        series_list = list(series_list)
        total = len(series_list)
        if self.workers == 1 or total <= 1:
            results = []
            for index, series in enumerate(series_list, start=1):
                result = self.run_subject(series)
                logging.info(f"[{index}/{total}] Processed subject {series.subject_id} -> {_episode_count(result)}")
                results.append(result)
            return results

        by_subject: Dict[str, SubjectResult] = {}
        processed = 0
        with ThreadPoolExecutor(max_workers=self.workers) as executor:
            future_map = {executor.submit(self.run_subject, series): series.subject_id for series in series_list}
            for future in as_completed(future_map):
                result = future.result()
                by_subject[future_map[future]] = result
                processed += 1
                logging.info(
                    f"[{processed}/{total}] Processed subject {result.subject_id} -> {_episode_count(result)}"
                )
        return [by_subject[series.subject_id] for series in series_list]

    def run(self, data: Any, reading_minutes: ReadingMinutes = None) -> EpisodeReport:
        series_by_subject = group_readings(data, reading_minutes)
        logging.info(
            f"Detecting episodes for {len(series_by_subject)} subject(s) with {len(self.registry)} preset(s), "
            f"exclusive mode {self.exclusive_mode.value}"
        )
        results = self.run_series(series_by_subject.values())
        return EpisodeReport(
            episodes=episodes_frame(results),
            summary=summary_frame(results),
            subjects=results,
        )


def _episode_count(result: SubjectResult) -> str:
    counts = ", ".join(f"{key_label(key)}={len(items)}" for key, items in result.episodes.items())
    return counts or "no presets"
