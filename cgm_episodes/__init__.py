"""CGM glucose episode detection library."""

from .detect import EventTables, detect_all_events, detect_hyperglycemic_events, detect_hypoglycemic_events
from .engine import EpisodeEngine, EpisodeReport
from .exceptions import ConfigurationError
from .grouping import group_readings
from .models import (
    EPISODE_KEYS,
    DetectionConfig,
    Direction,
    Episode,
    EpisodeKey,
    EpisodeSummary,
    EpisodeType,
    ExclusiveMode,
    Position,
    Reading,
    RecoveryFallback,
    Series,
    Severity,
    SubjectResult,
)
from .presets import PresetRegistry, default_registry

__all__ = [
    "ConfigurationError",
    "DetectionConfig",
    "Direction",
    "EPISODE_KEYS",
    "Episode",
    "EpisodeEngine",
    "EpisodeKey",
    "EpisodeReport",
    "EpisodeSummary",
    "EpisodeType",
    "EventTables",
    "ExclusiveMode",
    "Position",
    "PresetRegistry",
    "Reading",
    "RecoveryFallback",
    "Series",
    "Severity",
    "SubjectResult",
    "default_registry",
    "detect_all_events",
    "detect_hyperglycemic_events",
    "detect_hypoglycemic_events",
    "group_readings",
]
