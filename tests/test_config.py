"""
Tests for EngineConfig validation
Run with: python -m pytest tests/test_config.py -v
"""
import pytest
from pydantic import ValidationError

from montage.config import EditStyle, EnergyThresholds, EngineConfig


class TestEngineConfig:

    def test_defaults(self):
        config = EngineConfig()
        assert config.beat_cut_percentage == 50
        assert config.min_scene_duration == 1.0
        assert config.max_scene_duration == 5.0
        assert config.prioritize_scene_boundaries is True
        assert config.energy_thresholds == EnergyThresholds(low=0.3, medium=0.6, high=0.8)
        assert config.frame_rate == 30
        assert config.rng_seed == 0
        assert config.edit_style == EditStyle.RHYTHM_MATCH
        assert config.scene_snap_radius == 0.5
        assert config.top_k == 3
        assert config.motion_match_weight == 1.0

    def test_motion_weight_bounded(self):
        with pytest.raises(ValidationError):
            EngineConfig(motion_match_weight=2.5)

    def test_min_above_max_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(min_scene_duration=6.0, max_scene_duration=5.0)

    def test_threshold_order_rejected(self):
        with pytest.raises(ValidationError):
            EnergyThresholds(low=0.7, medium=0.5, high=0.9)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig.model_validate({"beat_cut_pct": 40})

    def test_dissolve_target_above_ceiling_rejected(self):
        with pytest.raises(ValidationError):
            EngineConfig(dissolve_ceiling=0.3, dissolve_target=0.5)

    def test_loaded_from_dict(self):
        config = EngineConfig.model_validate({
            "edit_style": "cinematic",
            "energy_thresholds": {"low": 0.2, "medium": 0.5, "high": 0.7},
        })
        assert config.edit_style == EditStyle.CINEMATIC
        assert config.energy_thresholds.high == 0.7

    def test_frozen(self):
        config = EngineConfig()
        with pytest.raises(ValidationError):
            config.rng_seed = 3
