"""Threshold-crossing episode detection."""

from .exclusive import exclusive_episodes, subtracted_summary
from .recovery import RecoveryOutcome, build_episode, detect_episodes, find_recovery, resolve_episodes
from .scanner import accepts_core, scan_core_intervals
from .timing import elapsed_minutes, is_large_gap, meets_duration

__all__ = [
    "RecoveryOutcome",
    "accepts_core",
    "build_episode",
    "detect_episodes",
    "elapsed_minutes",
    "exclusive_episodes",
    "find_recovery",
    "is_large_gap",
    "meets_duration",
    "resolve_episodes",
    "scan_core_intervals",
    "subtracted_summary",
]
