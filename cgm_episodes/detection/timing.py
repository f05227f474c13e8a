"""Timing rules shared by the core scanner and the recovery resolver.

Durations are measured between reading timestamps. Each reading stands for one
sampling interval, so duration checks add one ``nominal_sampling_minutes`` to
the measured span and accept anything within ``jitter_tolerance_minutes`` of the
requirement. A step between consecutive readings longer than
``max_gap_minutes + jitter_tolerance_minutes`` is a large gap; missing readings
still take part in gap detection because their timestamps are real.
"""
from __future__ import annotations

from ..models import DetectionConfig, Series


def elapsed_minutes(series: Series, start: int, end: int) -> float:
    """Minutes between two readings of the same series."""

    return series.elapsed_minutes(start, end)


def is_large_gap(series: Series, config: DetectionConfig, index: int) -> bool:
    """True when the step from ``index - 1`` to ``index`` exceeds the gap limit."""

    if index <= 0 or index >= len(series):
        return False
    return elapsed_minutes(series, index - 1, index) > config.gap_limit_minutes


def meets_duration(span_minutes: float, required_minutes: float, config: DetectionConfig) -> bool:
    """Apply sampling compensation and jitter tolerance to a measured span."""

    compensated = span_minutes + config.nominal_sampling_minutes
    return compensated >= required_minutes - config.jitter_tolerance_minutes
