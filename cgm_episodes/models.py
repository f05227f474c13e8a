"""Core data models for CGM episode detection."""
from __future__ import annotations

import math
import numbers
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterator, Optional, Sequence

import numpy as np

from .exceptions import ConfigurationError

SECONDS_PER_DAY = 86400.0


class Direction(str, Enum):
    """Side of the entry threshold on which a reading counts as an excursion."""

    ABOVE = "above"
    BELOW = "below"


class EpisodeType(str, Enum):
    HYPO = "hypo"
    HYPER = "hyper"


class Severity(str, Enum):
    LEVEL_1 = "lv1"
    LEVEL_2 = "lv2"
    EXTENDED = "extended"
    LEVEL_1_EXCLUSIVE = "lv1_excl"


class ExclusiveMode(str, Enum):
    """How the level-1-only band is derived from level-1 and level-2 results."""

    OVERLAP = "overlap"
    SUBTRACT = "subtract"


class RecoveryFallback(str, Enum):
    """What happens to an accepted core interval whose recovery is never confirmed."""

    DISCARD = "discard"
    FINALIZE_AT_CORE_END = "finalize_at_core_end"


EpisodeKey = tuple[EpisodeType, Severity]

EPISODE_KEYS: tuple[EpisodeKey, ...] = (
    (EpisodeType.HYPO, Severity.LEVEL_1),
    (EpisodeType.HYPO, Severity.LEVEL_2),
    (EpisodeType.HYPO, Severity.EXTENDED),
    (EpisodeType.HYPO, Severity.LEVEL_1_EXCLUSIVE),
    (EpisodeType.HYPER, Severity.LEVEL_1),
    (EpisodeType.HYPER, Severity.LEVEL_2),
    (EpisodeType.HYPER, Severity.EXTENDED),
    (EpisodeType.HYPER, Severity.LEVEL_1_EXCLUSIVE),
)


def key_label(key: EpisodeKey) -> str:
    """Return the ``<type>_<level>`` label used in configuration files."""

    episode_type, severity = key
    return f"{episode_type.value}_{severity.value}"


@dataclass(frozen=True)
class Reading:
    """Single CGM reading; ``value`` is None for a sensor dropout."""

    subject_id: str
    timestamp: float
    value: Optional[float] = None


@dataclass(frozen=True)
class Position:
    """Series-scoped handle for a reading position."""

    subject_id: str
    index: int


@dataclass(frozen=True, eq=False)
class Series:
    """Time-ordered readings of one subject.

    ``timestamps`` are seconds since the epoch, ``values`` carry NaN for missing
    readings and ``rows`` holds the 0-based row of each reading in the table the
    series was built from.
    """

    subject_id: str
    timestamps: np.ndarray
    values: np.ndarray
    rows: np.ndarray
    nominal_sampling_minutes: Optional[float] = None
    local_timezone: Optional[str] = None

    def __post_init__(self) -> None:
        timestamps = np.array(self.timestamps, dtype=float)
        values = np.array(self.values, dtype=float)
        rows = np.array(self.rows, dtype=np.int64)
        if not (len(timestamps) == len(values) == len(rows)):
            raise ValueError("timestamps, values and rows must have equal length")
        for array in (timestamps, values, rows):
            array.flags.writeable = False
        object.__setattr__(self, "timestamps", timestamps)
        object.__setattr__(self, "values", values)
        object.__setattr__(self, "rows", rows)

    @classmethod
    def from_readings(
        cls,
        subject_id: str,
        readings: Sequence[Reading],
        *,
        nominal_sampling_minutes: Optional[float] = None,
        local_timezone: Optional[str] = None,
    ) -> "Series":
        ordered = sorted(enumerate(readings), key=lambda item: item[1].timestamp)
        return cls(
            subject_id=subject_id,
            timestamps=[reading.timestamp for _, reading in ordered],
            values=[np.nan if reading.value is None else reading.value for _, reading in ordered],
            rows=[row for row, _ in ordered],
            nominal_sampling_minutes=nominal_sampling_minutes,
            local_timezone=local_timezone,
        )

    def __len__(self) -> int:
        return len(self.timestamps)

    def readings(self) -> Iterator[Reading]:
        for timestamp, value in zip(self.timestamps, self.values):
            yield Reading(
                subject_id=self.subject_id,
                timestamp=float(timestamp),
                value=None if math.isnan(value) else float(value),
            )

    def position(self, index: int) -> Position:
        if not 0 <= index < len(self):
            raise IndexError(f"position {index} outside series of length {len(self)}")
        return Position(self.subject_id, index)

    def resolve(self, position: Position) -> int:
        """Return the integer index behind ``position``, refusing foreign handles."""

        if position.subject_id != self.subject_id:
            raise ValueError(
                f"Position belongs to subject {position.subject_id!r}, not {self.subject_id!r}"
            )
        if not 0 <= position.index < len(self):
            raise IndexError(f"position {position.index} outside series of length {len(self)}")
        return position.index

    def is_missing(self, index: int) -> bool:
        return bool(np.isnan(self.values[index]))

    def elapsed_minutes(self, start: int, end: int) -> float:
        return float(self.timestamps[end] - self.timestamps[start]) / 60.0

    def observation_days(self) -> float:
        if len(self) < 2:
            return 0.0
        return float(self.timestamps[-1] - self.timestamps[0]) / SECONDS_PER_DAY


@dataclass(frozen=True)
class DetectionConfig:
    """Threshold-crossing parameters for one episode type and severity."""

    entry_threshold: float
    recovery_threshold: float
    direction: Direction
    min_core_duration_minutes: float = 15.0
    min_recovery_duration_minutes: float = 15.0
    nominal_sampling_minutes: float = 5.0
    jitter_tolerance_minutes: float = 0.1
    max_gap_minutes: Optional[float] = None
    secondary_threshold: Optional[float] = None
    recovery_fallback: RecoveryFallback = RecoveryFallback.DISCARD

    def __post_init__(self) -> None:
        object.__setattr__(self, "direction", Direction(self.direction))
        object.__setattr__(self, "recovery_fallback", RecoveryFallback(self.recovery_fallback))
        if self.max_gap_minutes is None:
            object.__setattr__(self, "max_gap_minutes", self.min_recovery_duration_minutes)

        checked = {
            "entry_threshold": self.entry_threshold,
            "recovery_threshold": self.recovery_threshold,
            "min_core_duration_minutes": self.min_core_duration_minutes,
            "min_recovery_duration_minutes": self.min_recovery_duration_minutes,
            "jitter_tolerance_minutes": self.jitter_tolerance_minutes,
            "max_gap_minutes": self.max_gap_minutes,
        }
        if self.secondary_threshold is not None:
            checked["secondary_threshold"] = self.secondary_threshold
        for name, value in checked.items():
            if not isinstance(value, numbers.Real) or not math.isfinite(value) or value < 0:
                raise ConfigurationError(f"{name} must be a finite, non-negative number (got {value!r})")
        sampling = self.nominal_sampling_minutes
        if not isinstance(sampling, numbers.Real) or not math.isfinite(sampling) or sampling <= 0:
            raise ConfigurationError(f"nominal_sampling_minutes must be positive (got {sampling!r})")

    @property
    def min_required_readings(self) -> int:
        """Minimum qualifying readings for a core interval (75% of the nominal count)."""

        effective = self.min_core_duration_minutes - self.jitter_tolerance_minutes
        return int(math.ceil((effective / self.nominal_sampling_minutes) / 4 * 3))

    @property
    def gap_limit_minutes(self) -> float:
        return float(self.max_gap_minutes) + self.jitter_tolerance_minutes

    def qualifies(self, value: float) -> bool:
        if math.isnan(value):
            return False
        if self.direction is Direction.BELOW:
            return value < self.entry_threshold
        return value > self.entry_threshold

    def recovered(self, value: float) -> bool:
        if math.isnan(value):
            return False
        if self.direction is Direction.BELOW:
            return value >= self.recovery_threshold
        return value <= self.recovery_threshold

    def beyond_secondary(self, value: float) -> bool:
        if self.secondary_threshold is None or math.isnan(value):
            return False
        if self.direction is Direction.BELOW:
            return value < self.secondary_threshold
        return value > self.secondary_threshold

    def with_sampling(self, minutes: Optional[float]) -> "DetectionConfig":
        """Return a copy using a subject-specific sampling interval."""

        if minutes is None or minutes == self.nominal_sampling_minutes:
            return self
        return replace(self, nominal_sampling_minutes=float(minutes))


@dataclass(frozen=True)
class CoreInterval:
    """Run of qualifying readings that passed the duration and density gates."""

    start_index: int
    end_index: int
    accumulated_duration_minutes: float
    qualifying_reading_count: int


@dataclass(frozen=True)
class Episode:
    """Confirmed excursion; indices are positions in the subject's Series."""

    subject_id: str
    start_index: int
    end_index: int
    start_time: float
    end_time: float
    start_value: float
    end_value: float
    duration_minutes: float
    average_value: float
    secondary_duration_minutes: Optional[float] = None

    @property
    def start(self) -> Position:
        return Position(self.subject_id, self.start_index)

    @property
    def end(self) -> Position:
        return Position(self.subject_id, self.end_index)

    def overlaps(self, other: "Episode") -> bool:
        """True when both episodes share at least one instant."""

        if other.subject_id != self.subject_id:
            return False
        return self.start_time <= other.end_time and other.start_time <= self.end_time


@dataclass
class SubjectStatistics:
    """Accumulates episode durations and values for one (subject, key) pair."""

    total_observation_days: float = 0.0
    episode_durations: list[float] = field(default_factory=list)
    episode_values: list[float] = field(default_factory=list)
    episode_count: int = 0

    def add_episode(self, episode: Episode) -> None:
        self.episode_durations.append(episode.duration_minutes)
        self.episode_values.append(episode.average_value)
        self.episode_count += 1


@dataclass(frozen=True)
class EpisodeSummary:
    """Rounded per-subject statistics for one episode type and severity."""

    subject_id: str
    episode_type: EpisodeType
    severity: Severity
    total_episodes: int
    episodes_per_day: float
    avg_duration: float
    avg_value: float


@dataclass(frozen=True)
class SubjectResult:
    """Episodes and summaries computed for one subject in a single run.

    ``episodes`` has no entry for keys that only exist as summary rows, such as
    exclusive bands derived by subtraction.
    """

    series: Series
    episodes: dict[EpisodeKey, list[Episode]]
    summaries: dict[EpisodeKey, EpisodeSummary]

    @property
    def subject_id(self) -> str:
        return self.series.subject_id
