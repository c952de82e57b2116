"""
Shared builders for montage tests.
"""

from typing import Iterable, List, Optional, Sequence, Tuple

import pytest

from montage.models import (
    AudioAnalysis,
    AudioSegment,
    Beat,
    ClipType,
    CutOrigin,
    EditDecision,
    EnergySample,
    Scene,
    SceneContent,
    SegmentType,
    TransitionType,
    VideoAnalysis,
)


def beat_grid(step: float, end: float) -> List[float]:
    """Beat times from 0 to ``end`` inclusive"""
    count = int(round(end / step))
    return [round(i * step, 6) for i in range(count + 1)]


def make_audio(
    beat_times: Iterable[float] = (),
    confidence: float = 0.9,
    duration: float = 0.0,
    tempo: float = 120.0,
    segments: Optional[Sequence[Tuple[float, float, SegmentType]]] = None,
    energy: Optional[Sequence[Tuple[float, float]]] = None,
    audio_id: str = "track",
) -> AudioAnalysis:
    return AudioAnalysis(
        id=audio_id,
        duration=duration,
        tempo=tempo,
        beats=[Beat(time=t, confidence=confidence) for t in beat_times],
        segments=[AudioSegment(start_time=s, end_time=e, type=t) for s, e, t in segments or []],
        energy_samples=[EnergySample(time=t, level=level) for t, level in energy or []],
    )


def make_video(
    video_id: str,
    bounds: Sequence[Tuple[float, float]],
    clip_type: ClipType = ClipType.UNKNOWN,
    confidence: float = 1.0,
    scene_types: Sequence[str] = (),
    has_faces: bool = False,
) -> VideoAnalysis:
    scenes = [
        Scene(
            id=f"{video_id}_s{i}",
            video_id=video_id,
            start_time=start,
            end_time=end,
            boundary_confidence=confidence,
            scene_types=list(scene_types),
            content=SceneContent(has_faces=has_faces, face_count=1 if has_faces else 0),
        )
        for i, (start, end) in enumerate(bounds)
    ]
    return VideoAnalysis(
        video_id=video_id,
        duration=bounds[-1][1] if bounds else 0.0,
        clip_type=clip_type,
        scenes=scenes,
    )


def make_decisions(
    durations: Sequence[float],
    transitions: Optional[Sequence[TransitionType]] = None,
    on_beat: Optional[Sequence[bool]] = None,
    importance: float = 0.5,
    scene_length: float = 20.0,
    source_in: float = 5.0,
) -> List[EditDecision]:
    """Contiguous working decisions, each on its own scene"""
    decisions = []
    start = 0.0
    for i, duration in enumerate(durations):
        scene = Scene(id=f"s{i}", video_id="v", start_time=0.0, end_time=scene_length)
        decisions.append(EditDecision(
            index=i,
            start_time=start,
            duration=duration,
            video_id="v",
            scene=scene,
            source_in=source_in,
            origin=CutOrigin.BEAT,
            importance=importance,
            on_beat=on_beat[i] if on_beat else False,
            transition_type=transitions[i] if transitions else TransitionType.CUT,
        ))
        start += duration
    return decisions


@pytest.fixture
def rich_inputs():
    """A 30s track with segments and energy, and three source videos"""
    beats = [
        Beat(time=i * 0.5, confidence=0.9 if i % 2 == 0 else 0.4)
        for i in range(60)
    ]
    audio = AudioAnalysis(
        id="rich_track",
        duration=30.0,
        tempo=120.0,
        beats=beats,
        segments=[
            AudioSegment(start_time=0, end_time=8, type=SegmentType.INTRO),
            AudioSegment(start_time=8, end_time=16, type=SegmentType.VERSE),
            AudioSegment(start_time=16, end_time=24, type=SegmentType.CHORUS),
            AudioSegment(start_time=24, end_time=30, type=SegmentType.OUTRO),
        ],
        energy_samples=[
            EnergySample(time=i * 2.0, level=(i * 37 % 100) / 100.0)
            for i in range(16)
        ],
    )
    videos = {
        "a": make_video("a", [(0, 3), (3, 9), (9, 12), (12, 20)],
                        clip_type=ClipType.PERFORMANCE, confidence=0.9, has_faces=True),
        "b": make_video("b", [(0, 2.5), (2.5, 6), (6, 14)],
                        clip_type=ClipType.B_ROLL_STATIC, confidence=0.8, scene_types=["static", "interior"]),
        "c": make_video("c", [(0, 1.2), (1.2, 7.7), (7.7, 10)],
                        clip_type=ClipType.ACTION, confidence=0.95, scene_types=["action"]),
    }
    return audio, videos


@pytest.fixture
def scene_index():
    """Lookup of (video_id, scene_id) -> Scene for containment checks"""
    def build(videos):
        return {
            (video_id, scene.id): scene
            for video_id, video in videos.items()
            for scene in video.scenes
        }
    return build
