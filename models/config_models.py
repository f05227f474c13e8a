"""
Episode detection configuration file models.
"""
from enum import Enum
from typing import Dict, Optional
from pydantic import BaseModel, Field, ConfigDict


class DirectionEnum(str, Enum):
    ABOVE = "above"
    BELOW = "below"


class ExclusiveModeEnum(str, Enum):
    OVERLAP = "overlap"
    SUBTRACT = "subtract"


class RecoveryFallbackEnum(str, Enum):
    DISCARD = "discard"
    FINALIZE_AT_CORE_END = "finalize_at_core_end"


class PresetOverride(BaseModel):
    """
    Field overrides for one detection preset.
    """
    model_config = ConfigDict(extra="forbid")

    entry_threshold: Optional[float] = Field(default=None, description="Threshold a reading must pass to qualify")
    recovery_threshold: Optional[float] = Field(default=None, description="Threshold that marks recovery")
    direction: Optional[DirectionEnum] = Field(default=None, description="Side of the entry threshold")
    min_core_duration_minutes: Optional[float] = Field(default=None, ge=0, description="Minimum core duration in minutes")
    min_recovery_duration_minutes: Optional[float] = Field(default=None, ge=0, description="Minimum sustained recovery in minutes")
    nominal_sampling_minutes: Optional[float] = Field(default=None, gt=0, description="Nominal sampling interval in minutes")
    jitter_tolerance_minutes: Optional[float] = Field(default=None, ge=0, description="Allowance for timestamp jitter in minutes")
    max_gap_minutes: Optional[float] = Field(default=None, ge=0, description="Largest step between readings before state resets")
    secondary_threshold: Optional[float] = Field(default=None, description="Deeper cutoff for secondary duration")
    recovery_fallback: Optional[RecoveryFallbackEnum] = Field(default=None, description="Handling of cores without confirmed recovery")


class RunConfigPayload(BaseModel):
    """
    Top-level configuration file for an episode detection run.
    """
    model_config = ConfigDict(extra="forbid")

    exclusive_mode: Optional[ExclusiveModeEnum] = Field(default=None, description="How level-1-only bands are derived")
    nominal_sampling_minutes: float = Field(default=5.0, gt=0, description="Default sampling interval in minutes")
    workers: int = Field(default=1, ge=1, description="Number of worker threads")
    recovery_fallback: Optional[RecoveryFallbackEnum] = Field(default=None, description="Recovery fallback for every preset")
    presets: Dict[str, PresetOverride] = Field(default_factory=dict, description="Per-preset overrides keyed by <type>_<level>")
