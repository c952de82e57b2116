"""
Event Timeline Merger
=====================
Flattens beats and per-video scene boundaries into one time-sorted event
stream with provenance, plus the small time-lookup helpers the later stages
share (nearest energy sample, nearest scene boundary, visualization points).
"""

from __future__ import annotations

import bisect
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .models import (
    Beat,
    CutPoint,
    EnergySample,
    EventType,
    Scene,
    TimelineEvent,
    TimelinePoint,
)

DEFAULT_ENERGY = 0.5


def merge_events(
    beats: Sequence[Beat],
    scenes_by_video: Mapping[str, Sequence[Scene]],
) -> List[TimelineEvent]:
    """
    Merge beats and scene boundaries into one sorted stream.

    Beats are inserted first, then each video's scene starts and ends in the
    mapping's iteration order. The sort is stable, so equal times keep that
    insertion order.

    Args:
        beats: Detected beats of the music track
        scenes_by_video: Scene lists keyed by video id

    Returns:
        Events sorted ascending by time
    """
    events: List[TimelineEvent] = [
        TimelineEvent(time=beat.time, type=EventType.BEAT, confidence=beat.confidence)
        for beat in beats
    ]
    for video_id, scenes in scenes_by_video.items():
        for scene in scenes:
            events.append(TimelineEvent(
                time=scene.start_time,
                type=EventType.SCENE_BOUNDARY,
                source_id=video_id,
                confidence=scene.boundary_confidence,
            ))
            events.append(TimelineEvent(
                time=scene.end_time,
                type=EventType.SCENE_BOUNDARY,
                source_id=video_id,
                confidence=scene.boundary_confidence,
            ))
    events.sort(key=lambda e: e.time)
    return events


def scene_boundaries(scenes_by_video: Mapping[str, Sequence[Scene]]) -> List[float]:
    """Sorted, de-duplicated boundary times across all videos"""
    times = set()
    for scenes in scenes_by_video.values():
        for scene in scenes:
            times.add(scene.start_time)
            times.add(scene.end_time)
    return sorted(times)


def nearest_time(sorted_times: Sequence[float], time: float) -> Optional[float]:
    """Closest value in a sorted list; the earlier one wins a tie"""
    if not sorted_times:
        return None
    idx = bisect.bisect_left(sorted_times, time)
    candidates = []
    if idx > 0:
        candidates.append(sorted_times[idx - 1])
    if idx < len(sorted_times):
        candidates.append(sorted_times[idx])
    return min(candidates, key=lambda t: abs(t - time))


def energy_at(samples: Sequence[EnergySample], time: float, default: float = DEFAULT_ENERGY) -> float:
    """Energy level of the sample nearest to ``time``"""
    if not samples:
        return default
    nearest = min(samples, key=lambda s: abs(s.time - time))
    return nearest.level


def beat_group_size(tempo: float) -> int:
    """Beats per bar guess: 3 for slow material, 4 otherwise"""
    return 3 if 0 < tempo <= 90 else 4


def build_timeline_points(
    beats: Iterable[Beat],
    cuts: Iterable[CutPoint],
    scenes_by_video: Optional[Dict[str, Sequence[Scene]]] = None,
) -> List[TimelinePoint]:
    """Flat beat/scene/cut events for visualization, sorted by time"""
    points = [
        TimelinePoint(time=beat.time, type="beat", energy=beat.energy)
        for beat in beats
    ]
    for video_id, scenes in (scenes_by_video or {}).items():
        for scene in scenes:
            points.append(TimelinePoint(time=scene.start_time, type="scene", source_id=video_id))
    points.extend(
        TimelinePoint(time=cut.time, type="cut", source_id=cut.origin.value, energy=cut.energy)
        for cut in cuts
    )
    points.sort(key=lambda p: p.time)
    return points
