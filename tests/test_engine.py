"""
End-to-end tests for the edit decision engine
Run with: python -m pytest tests/test_engine.py -v
"""
import pytest

from montage import (
    EditCache,
    EditDecisionEngine,
    EditStyle,
    EngineConfig,
    InvalidInputError,
    NoViableClipError,
    create_engine,
    generate_edit,
    regenerate_with_style,
)
from montage.config import DEFAULT_CONFIG
from montage.models import CutOrigin, TransitionType, VideoAnalysis

from conftest import beat_grid, make_audio, make_video

EPS = 1e-6


class TestScenarios:
    """Reference scenarios for the whole pipeline"""

    def test_half_second_beats_single_scene(self):
        audio = make_audio(beat_grid(0.5, 10), confidence=0.9, duration=10)
        result = generate_edit(audio, {"v": make_video("v", [(0, 10)])}, EngineConfig(beat_cut_percentage=50))

        times = [c.time for c in result.edl.cut_points]
        assert times == [float(t) for t in range(10)]
        assert all(clip.source_scene_id == "v_s0" for clip in result.edl.clips)
        assert all(clip.source_out <= 10.0 + EPS for clip in result.edl.clips)
        assert result.stats.beat_alignment_score == pytest.approx(1.0)
        assert result.stats.average_scene_duration == pytest.approx(1.0)

    def test_no_beats_forced_cuts(self):
        audio = make_audio([], duration=20)
        result = generate_edit(audio, {"v": make_video("v", [(0, 20)])}, EngineConfig(max_scene_duration=5))

        cuts = result.edl.cut_points
        assert [c.time for c in cuts] == [0, 5, 10, 15]
        assert all(c.origin == CutOrigin.FORCED for c in cuts)
        assert result.edl.clips[-1].timeline_out == pytest.approx(20.0)
        assert result.stats.beat_alignment_score == 0.0

    def test_short_video_not_used_for_long_window(self):
        audio = make_audio([], duration=4)
        videos = {
            "short": make_video("short", [(0, 2)]),
            "long": make_video("long", [(0, 10)]),
        }
        result = generate_edit(audio, videos)
        assert [c.source_video_id for c in result.edl.clips] == ["long"]

    def test_beat_snaps_to_scene_boundary(self):
        audio = make_audio([0, 1.5, 3.5, 5.5, 7.5], confidence=0.0, duration=9)
        result = generate_edit(audio, {"v": make_video("v", [(0, 1.7), (1.7, 10)])})
        times = [c.time for c in result.edl.cut_points]
        assert 1.7 in times
        assert 1.5 not in times


class TestProperties:
    """Invariants over a richer input across styles and seeds"""

    @pytest.mark.parametrize("style", list(EditStyle))
    @pytest.mark.parametrize("seed", [0, 1, 42])
    def test_invariants(self, rich_inputs, scene_index, style, seed):
        audio, videos = rich_inputs
        config = EngineConfig(edit_style=style, rng_seed=seed)
        result = generate_edit(audio, videos, config)
        edl = result.edl
        scenes = scene_index(videos)

        times = [c.time for c in edl.cut_points]
        assert times[0] == 0
        for a, b in zip(times, times[1:]):
            assert b > a
            assert b - a >= config.min_scene_duration - EPS
            assert b - a <= config.max_scene_duration + EPS
        assert audio.duration - times[-1] >= config.min_scene_duration - EPS

        for clip in edl.clips:
            covered = clip.source_out - clip.source_in + clip.source_shortfall
            assert covered == pytest.approx(clip.timeline_out - clip.timeline_in)
            assert clip.source_out <= videos[clip.source_video_id].extent + EPS
            if not clip.degraded:
                scene = scenes[(clip.source_video_id, clip.source_scene_id)]
                assert scene.start_time - EPS <= clip.source_in
                assert clip.source_out <= scene.end_time + EPS

        for a, b in zip(edl.clips, edl.clips[1:]):
            assert b.timeline_in == pytest.approx(a.timeline_out)
        assert edl.clips[-1].timeline_out == pytest.approx(audio.duration)

        assert 0.0 <= result.stats.beat_alignment_score <= 1.0

        ids = [clip.id for clip in edl.clips]
        assert len(edl.transitions) <= len(edl.clips) - 1
        for transition in edl.transitions:
            out_idx = ids.index(transition.outgoing_clip_id)
            assert ids[out_idx + 1] == transition.incoming_clip_id
            assert transition.duration <= edl.clips[out_idx].duration + EPS
            assert transition.duration <= edl.clips[out_idx + 1].duration + EPS

    @pytest.mark.parametrize("style", list(EditStyle))
    def test_deterministic_output(self, rich_inputs, style):
        audio, videos = rich_inputs
        config = EngineConfig(edit_style=style, rng_seed=7)
        first = generate_edit(audio, videos, config)
        second = generate_edit(audio, videos, config)
        assert first.edl.model_dump_json() == second.edl.model_dump_json()
        assert first.model_dump_json() == second.model_dump_json()

    def test_video_list_input(self, rich_inputs):
        audio, videos = rich_inputs
        from_map = generate_edit(audio, videos)
        from_list = generate_edit(audio, [videos[k] for k in sorted(videos)])
        assert from_map.edl == from_list.edl


class TestErrors:

    def test_missing_audio(self):
        with pytest.raises(InvalidInputError):
            generate_edit(None, {"v": make_video("v", [(0, 5)])})

    def test_no_videos(self):
        with pytest.raises(InvalidInputError):
            generate_edit(make_audio([], duration=5), {})

    def test_no_scenes(self):
        empty = VideoAnalysis(video_id="v", duration=5)
        with pytest.raises(InvalidInputError) as exc:
            generate_edit(make_audio([], duration=5), {"v": empty})
        assert exc.value.stage == "validate"

    def test_bad_config_dict(self):
        with pytest.raises(InvalidInputError) as exc:
            generate_edit(
                make_audio([], duration=5),
                {"v": make_video("v", [(0, 5)])},
                {"min_scene_duration": 6, "max_scene_duration": 5},
            )
        assert isinstance(exc.value, ValueError)

    def test_degraded_instead_of_failure(self):
        audio = make_audio([], duration=10)
        result = generate_edit(audio, {"v": make_video("v", [(0, 0.5)])})
        assert all(clip.degraded for clip in result.edl.clips)
        assert result.stats.degraded_clips == len(result.edl.clips)
        assert any(issue.category == "no_viable_clip" for issue in result.issues)
        for clip in result.edl.clips:
            assert clip.source_out <= 0.5 + EPS
            assert clip.source_shortfall == pytest.approx(clip.duration - 0.5)
        assert any("truncated" in issue.message for issue in result.issues)

    def test_strict_mode_raises(self):
        audio = make_audio([], duration=10)
        with pytest.raises(NoViableClipError):
            generate_edit(audio, {"v": make_video("v", [(0, 0.5)])}, EngineConfig(strict=True))


class TestEngineService:

    def setup_method(self):
        self.audio = make_audio(beat_grid(0.5, 10), confidence=0.9, duration=10)
        self.videos = {"v": make_video("v", [(0, 4), (4, 10)])}

    def test_progress_callback(self):
        calls = []
        generate_edit(self.audio, self.videos, progress=lambda msg, frac: calls.append((msg, frac)))
        fractions = [frac for _, frac in calls]
        assert fractions[0] == 0.0
        assert fractions[-1] == 1.0
        assert fractions == sorted(fractions)

    def test_cache_hit_returns_stored_result(self):
        engine = EditDecisionEngine(cache=EditCache(max_entries=4))
        first = engine.generate(self.audio, self.videos)
        second = engine.generate(self.audio, self.videos)
        assert second is first
        assert len(engine.cache) == 1

    def test_cache_keyed_on_config(self):
        engine = EditDecisionEngine(cache=EditCache())
        engine.generate(self.audio, self.videos)
        other = engine.generate(self.audio, self.videos, config=EngineConfig(rng_seed=3))
        assert len(engine.cache) == 2
        assert other.seed == 3

    def test_fingerprint_on_result(self):
        result = generate_edit(self.audio, self.videos)
        assert len(result.fingerprint) == 64

    def test_create_engine_overrides(self):
        engine = create_engine(cache_enabled=False, rng_seed=5, edit_style="cinematic")
        assert engine.cache is None
        assert engine.config.rng_seed == 5
        assert engine.config.edit_style == EditStyle.CINEMATIC

    def test_create_engine_rejects_bad_override(self):
        with pytest.raises(InvalidInputError):
            create_engine(min_scene_duration=9.0)

    def test_default_config_shared(self):
        assert EditDecisionEngine().config is DEFAULT_CONFIG

    def test_timeline_includes_scene_starts(self):
        result = generate_edit(self.audio, self.videos)
        scenes = [(p.time, p.source_id) for p in result.timeline if p.type == "scene"]
        assert scenes == [(0.0, "v"), (4.0, "v")]
        assert any(p.type == "cut" for p in result.timeline)


class TestRegenerateWithStyle:
    """Restyling keeps the cuts and clips and re-picks the transitions"""

    def setup_method(self):
        self.audio = make_audio(beat_grid(0.5, 10), confidence=0.9, duration=10, energy=[(0.0, 0.9)])
        self.videos = {"v": make_video("v", [(0, 4), (4, 10)])}
        self.result = generate_edit(self.audio, self.videos)

    def test_keeps_cuts_and_sources(self):
        restyled = regenerate_with_style(self.result, EditStyle.ENERGY_BASED)

        assert [c.time for c in restyled.edl.cut_points] == [c.time for c in self.result.edl.cut_points]
        before = [(c.source_video_id, c.source_scene_id, c.source_in) for c in self.result.edl.clips]
        after = [(c.source_video_id, c.source_scene_id, c.source_in) for c in restyled.edl.clips]
        assert after == before

    def test_energy_based_wipes_high_energy_cuts(self):
        restyled = regenerate_with_style(self.result, "energy_based")
        assert len(restyled.edl.transitions) == len(restyled.edl.clips) - 1
        assert all(t.type == TransitionType.WIPE for t in restyled.edl.transitions)

    def test_rhythm_match_cuts_on_beats(self):
        restyled = regenerate_with_style(self.result, EditStyle.RHYTHM_MATCH)
        assert restyled.edl.transitions == []
        assert restyled.stats.beat_alignment_score == pytest.approx(1.0)

    def test_bare_edl_with_beats(self):
        restyled = regenerate_with_style(self.result.edl, EditStyle.CINEMATIC, beats=self.audio.beats)
        assert all(t.type == TransitionType.WIPE for t in restyled.edl.transitions)
        assert len(restyled.fingerprint) == 64

    def test_new_fingerprint_and_scene_points(self):
        restyled = regenerate_with_style(self.result, EditStyle.CINEMATIC)
        assert restyled.fingerprint != self.result.fingerprint
        assert [p for p in restyled.timeline if p.type == "scene"] == \
            [p for p in self.result.timeline if p.type == "scene"]

    def test_issue_ids_renumbered(self):
        restyled = regenerate_with_style(self.result, EditStyle.SEGMENT_BASED)
        assert [i.issue_id for i in restyled.issues] == [f"issue_{n:04d}" for n in range(len(restyled.issues))]

    def test_truncated_clips_survive(self):
        degraded = generate_edit(make_audio([], duration=10), {"v": make_video("v", [(0, 0.5)])})
        restyled = regenerate_with_style(degraded, EditStyle.CINEMATIC)
        assert [c.source_shortfall for c in restyled.edl.clips] == \
            [c.source_shortfall for c in degraded.edl.clips]
        assert any(issue.category == "no_viable_clip" for issue in restyled.issues)

    def test_unknown_style(self):
        with pytest.raises(InvalidInputError):
            regenerate_with_style(self.result, "jump_cut")

    def test_cut_points_must_match_clips(self):
        broken = self.result.edl.model_copy(update={"cut_points": self.result.edl.cut_points[:-1]})
        with pytest.raises(InvalidInputError):
            regenerate_with_style(broken, EditStyle.CINEMATIC)
