"""
Engine configuration.

EngineConfig is a frozen pydantic model; every tuning constant of the
heuristics is exposed here rather than hard-coded in the stages.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class EditStyle(str, Enum):
    """Cut candidate strategies"""
    RHYTHM_MATCH = "rhythm_match"
    SEGMENT_BASED = "segment_based"
    ENERGY_BASED = "energy_based"
    CINEMATIC = "cinematic"


class EnergyThresholds(BaseModel):
    """Band edges for the transition selector"""
    model_config = ConfigDict(frozen=True)

    low: float = Field(default=0.3, ge=0.0, le=1.0)
    medium: float = Field(default=0.6, ge=0.0, le=1.0)
    high: float = Field(default=0.8, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def ordered(self) -> "EnergyThresholds":
        if not (self.low <= self.medium <= self.high):
            raise ValueError("energy thresholds must satisfy low <= medium <= high")
        return self


class EngineConfig(BaseModel):
    """Edit decision engine configuration"""
    model_config = ConfigDict(frozen=True, extra="forbid")

    # Cut selection
    beat_cut_percentage: float = Field(default=50.0, ge=0.0, le=100.0)
    min_scene_duration: float = Field(default=1.0, gt=0.0)
    max_scene_duration: float = Field(default=5.0, gt=0.0)
    prioritize_scene_boundaries: bool = True
    scene_snap_radius: float = Field(default=0.5, ge=0.0)
    edit_style: EditStyle = EditStyle.RHYTHM_MATCH
    fallback_interval: float = Field(default=3.0, gt=0.0)
    energy_change_threshold: float = Field(default=0.2, ge=0.0, le=1.0)

    # Transitions
    energy_thresholds: EnergyThresholds = Field(default_factory=EnergyThresholds)

    # Clip matching
    min_duration_ratio: float = Field(default=0.8, gt=0.0, le=2.0)
    long_scene_ratio: float = Field(default=1.5, ge=1.0)
    long_scene_penalty: float = Field(default=0.8, ge=0.0, le=1.0)
    top_k: int = Field(default=3, ge=1)
    content_weight: float = Field(default=1.0, ge=0.0)
    motion_match_weight: float = Field(default=1.0, ge=0.0, le=2.0)

    # Optimizer
    reselect_repeats: bool = True
    dissolve_ceiling: float = Field(default=0.5, ge=0.0, le=1.0)
    dissolve_target: float = Field(default=0.3, ge=0.0, le=1.0)
    pacing_long_factor: float = Field(default=1.5, ge=1.0)
    pacing_target_factor: float = Field(default=1.2, ge=1.0)
    pacing_importance_ceiling: float = Field(default=0.8, ge=0.0, le=1.0)
    pacing_min_clip: float = Field(default=0.5, ge=0.0)

    # Output / runtime
    frame_rate: float = Field(default=30.0, gt=0.0)
    rng_seed: int = 0
    strict: bool = False

    @model_validator(mode="after")
    def check_ranges(self) -> "EngineConfig":
        if self.min_scene_duration > self.max_scene_duration:
            raise ValueError(
                f"min_scene_duration ({self.min_scene_duration}) exceeds "
                f"max_scene_duration ({self.max_scene_duration})"
            )
        if self.dissolve_target > self.dissolve_ceiling:
            raise ValueError("dissolve_target must not exceed dissolve_ceiling")
        if self.pacing_target_factor > self.pacing_long_factor:
            raise ValueError("pacing_target_factor must not exceed pacing_long_factor")
        return self


DEFAULT_CONFIG = EngineConfig()
