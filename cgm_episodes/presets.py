"""Registry of per-(type, severity) detection presets."""
from __future__ import annotations

from collections.abc import Iterable, Mapping
import dataclasses
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError
from .models import (
    EPISODE_KEYS,
    DetectionConfig,
    Direction,
    EpisodeKey,
    EpisodeType,
    Severity,
    key_label,
)

# Exclusive bands are derived from a (broad, narrow) pair of detected keys.
EXCLUSIVE_SOURCES: Dict[EpisodeKey, tuple[EpisodeKey, EpisodeKey]] = {
    (EpisodeType.HYPO, Severity.LEVEL_1_EXCLUSIVE): (
        (EpisodeType.HYPO, Severity.LEVEL_1),
        (EpisodeType.HYPO, Severity.LEVEL_2),
    ),
    (EpisodeType.HYPER, Severity.LEVEL_1_EXCLUSIVE): (
        (EpisodeType.HYPER, Severity.LEVEL_1),
        (EpisodeType.HYPER, Severity.LEVEL_2),
    ),
}

DETECTED_KEYS: tuple[EpisodeKey, ...] = tuple(key for key in EPISODE_KEYS if key not in EXCLUSIVE_SOURCES)

_CONFIG_FIELDS = {item.name for item in dataclasses.fields(DetectionConfig)}


class PresetRegistry:
    """Keeps track of the detection configuration for each episode key."""

    def __init__(self) -> None:
        self._presets: Dict[EpisodeKey, DetectionConfig] = {}

    def register(self, key: EpisodeKey, config: DetectionConfig) -> DetectionConfig:
        if key in EXCLUSIVE_SOURCES:
            raise ConfigurationError(f"Preset '{key_label(key)}' is derived and cannot be registered")
        if key in self._presets:
            raise ValueError(f"Preset '{key_label(key)}' already registered")
        self._presets[key] = config
        return config

    def replace(self, key: EpisodeKey, **overrides: Any) -> DetectionConfig:
        """Swap in a copy of an existing preset with some fields changed."""

        current = self.get(key)
        unknown = sorted(set(overrides) - _CONFIG_FIELDS)
        if unknown:
            raise ConfigurationError(f"Unknown preset field(s) for '{key_label(key)}': {', '.join(unknown)}")
        if (
            "min_recovery_duration_minutes" in overrides
            and "max_gap_minutes" not in overrides
            and current.max_gap_minutes == current.min_recovery_duration_minutes
        ):
            # gap limit tracks the recovery duration unless it was set on its own
            overrides["max_gap_minutes"] = None
        updated = dataclasses.replace(current, **overrides)
        self._presets[key] = updated
        return updated

    def get(self, key: EpisodeKey) -> DetectionConfig:
        try:
            return self._presets[key]
        except KeyError:
            raise ConfigurationError(f"No preset registered for '{key_label(key)}'") from None

    def keys(self) -> list[EpisodeKey]:
        """Registered keys in canonical order, custom keys last."""

        ordered = [key for key in EPISODE_KEYS if key in self._presets]
        ordered.extend(key for key in self._presets if key not in ordered)
        return ordered

    def items(self) -> Iterable[tuple[EpisodeKey, DetectionConfig]]:
        return [(key, self._presets[key]) for key in self.keys()]

    def copy(self) -> "PresetRegistry":
        clone = PresetRegistry()
        clone._presets = dict(self._presets)
        return clone

    def clear(self) -> None:
        """Remove all registered presets."""

        self._presets.clear()

    def __contains__(self, key: object) -> bool:
        return key in self._presets

    def __len__(self) -> int:
        return len(self._presets)


def parse_key(label: str) -> EpisodeKey:
    """Turn a ``hypo_lv1`` style label into an episode key."""

    type_label, _, level_label = label.partition("_")
    try:
        return EpisodeType(type_label), Severity(level_label)
    except ValueError:
        raise ConfigurationError(f"Unknown episode key '{label}'") from None


def _preset(
    direction: Direction,
    entry: float,
    recovery: float,
    core_minutes: float,
    secondary: Optional[float] = None,
    **extra: Any,
) -> DetectionConfig:
    params: Dict[str, Any] = {
        "entry_threshold": entry,
        "recovery_threshold": recovery,
        "direction": direction,
        "min_core_duration_minutes": core_minutes,
        "min_recovery_duration_minutes": 15.0,
        "secondary_threshold": secondary,
    }
    params.update(extra)
    return DetectionConfig(**params)


def default_registry(
    *,
    nominal_sampling_minutes: float = 5.0,
    overrides: Optional[Mapping[EpisodeKey, Mapping[str, Any]]] = None,
    **common: Any,
) -> PresetRegistry:
    """Build the standard six detected presets.

    ``common`` applies to every preset (for example ``recovery_fallback``);
    ``overrides`` then adjusts individual presets.
    """

    extra = dict(common, nominal_sampling_minutes=nominal_sampling_minutes)
    registry = PresetRegistry()
    registry.register((EpisodeType.HYPO, Severity.LEVEL_1), _preset(Direction.BELOW, 70, 70, 15, 54, **extra))
    registry.register((EpisodeType.HYPO, Severity.LEVEL_2), _preset(Direction.BELOW, 54, 54, 15, **extra))
    registry.register((EpisodeType.HYPO, Severity.EXTENDED), _preset(Direction.BELOW, 70, 70, 120, 54, **extra))
    registry.register((EpisodeType.HYPER, Severity.LEVEL_1), _preset(Direction.ABOVE, 180, 180, 15, 250, **extra))
    registry.register((EpisodeType.HYPER, Severity.LEVEL_2), _preset(Direction.ABOVE, 250, 250, 15, **extra))
    registry.register((EpisodeType.HYPER, Severity.EXTENDED), _preset(Direction.ABOVE, 250, 180, 120, **extra))

    for key, fields_ in (overrides or {}).items():
        registry.replace(key, **fields_)
    return registry
