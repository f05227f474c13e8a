"""Load run settings and preset overrides from a JSON configuration file."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional, Union

from pydantic import ValidationError

from models.config_models import RunConfigPayload

from .engine import EpisodeEngine
from .exceptions import ConfigurationError
from .models import EpisodeKey, ExclusiveMode, RecoveryFallback, key_label
from .presets import EXCLUSIVE_SOURCES, PresetRegistry, default_registry, parse_key


@dataclass(frozen=True)
class RunConfig:
    """Engine settings resolved from a configuration file."""

    registry: PresetRegistry = field(default_factory=default_registry)
    exclusive_mode: Optional[ExclusiveMode] = None
    workers: int = 1
    nominal_sampling_minutes: float = 5.0

    def build_engine(
        self,
        *,
        exclusive_mode: Optional[ExclusiveMode] = None,
        workers: Optional[int] = None,
    ) -> EpisodeEngine:
        """Create an engine; explicit arguments win over file settings."""

        mode = exclusive_mode or self.exclusive_mode
        if mode is None:
            raise ConfigurationError("An exclusive mode is required: choose 'overlap' or 'subtract'")
        return EpisodeEngine(
            self.registry,
            exclusive_mode=mode,
            workers=workers if workers is not None else self.workers,
            nominal_sampling_minutes=self.nominal_sampling_minutes,
        )


def convert_run_config(payload: RunConfigPayload) -> RunConfig:
    common: Dict[str, Any] = {}
    if payload.recovery_fallback is not None:
        common["recovery_fallback"] = RecoveryFallback(payload.recovery_fallback.value)

    overrides: Dict[EpisodeKey, Dict[str, Any]] = {}
    for label, override in payload.presets.items():
        key = parse_key(label)
        if key in EXCLUSIVE_SOURCES:
            raise ConfigurationError(f"Preset '{key_label(key)}' is derived and has no settings to override")
        overrides[key] = override.model_dump(mode="json", exclude_unset=True)

    registry = default_registry(
        nominal_sampling_minutes=payload.nominal_sampling_minutes,
        overrides=overrides,
        **common,
    )
    return RunConfig(
        registry=registry,
        exclusive_mode=ExclusiveMode(payload.exclusive_mode.value) if payload.exclusive_mode else None,
        workers=payload.workers,
        nominal_sampling_minutes=payload.nominal_sampling_minutes,
    )


def load_run_config(path: Union[str, Path]) -> RunConfig:
    file_path = Path(path)
    if not file_path.is_file():
        raise ConfigurationError(f"Configuration file not found: {file_path}")
    try:
        payload = RunConfigPayload.model_validate_json(file_path.read_text())
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid configuration file {file_path}: {exc}") from exc
    return convert_run_config(payload)
