"""
Cut Point Selector
==================
Decides which timeline events become cuts.

Each edit style produces a time-ordered list of cut candidates. All styles
then share one constrained walk that applies the debounce (minimum interval),
the pacing ceiling (forced cuts at the maximum interval) and scene-boundary
snapping. The first cut is always at time 0, and no cut leaves a final clip
shorter than the minimum interval.
"""

from __future__ import annotations

import math
import random
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Set

import structlog

from .config import EditStyle, EngineConfig
from .models import (
    AudioAnalysis,
    Beat,
    CutOrigin,
    CutPoint,
    EventType,
    Scene,
    SegmentType,
    TimelineEvent,
)
from .timeline import beat_group_size, energy_at, nearest_time, scene_boundaries

logger = structlog.get_logger(__name__)

EPSILON = 1e-9

# Distance under which a cut counts as landing on a beat
ON_BEAT_TOLERANCE = 0.1

# Importance by origin
IMPORTANCE_FIRST = 1.0
IMPORTANCE_BEAT = 0.8
IMPORTANCE_SNAPPED = 0.7
IMPORTANCE_FORCED = 0.5
IMPORTANCE_GRID_BEAT = 0.6
IMPORTANCE_INTERVAL = 0.5
IMPORTANCE_SEGMENT = {SegmentType.CHORUS: 0.9}
IMPORTANCE_SEGMENT_DEFAULT = 0.7

CINEMATIC_ENERGY_JUMP = 0.3
CINEMATIC_MIN_CANDIDATES = 5


@dataclass(frozen=True)
class CutCandidate:
    """A time the walk may turn into a cut"""
    time: float
    origin: CutOrigin
    importance: float
    # Scene boundaries only advance the pacing ceiling; they never cut alone
    boundary_only: bool = False


# =============================================================================
# BEAT FILTERING
# =============================================================================

def strong_beat_times(beats: Sequence[Beat], percentage: float) -> Set[float]:
    """
    Times of the strongest ``percentage`` % of beats by confidence.

    Beats tied with the confidence of the last kept beat are kept as well,
    so equal-confidence beats are never split arbitrarily.
    """
    if not beats or percentage <= 0:
        return set()
    ranked = sorted(beats, key=lambda b: -b.confidence)
    keep = min(len(ranked), math.ceil(len(ranked) * percentage / 100.0))
    if keep == 0:
        return set()
    floor = ranked[keep - 1].confidence
    return {beat.time for beat in ranked if beat.confidence >= floor}


# =============================================================================
# CANDIDATE GENERATORS
# =============================================================================

def _rhythm_candidates(events: Sequence[TimelineEvent], beats: Sequence[Beat], config: EngineConfig) -> List[CutCandidate]:
    strong = strong_beat_times(beats, config.beat_cut_percentage)
    candidates = []
    for event in events:
        if event.type == EventType.BEAT:
            if event.time in strong:
                candidates.append(CutCandidate(event.time, CutOrigin.BEAT, IMPORTANCE_BEAT))
        else:
            candidates.append(CutCandidate(event.time, CutOrigin.SCENE_BOUNDARY, 0.0, boundary_only=True))
    return candidates


def _segment_candidates(audio: AudioAnalysis, beats: Sequence[Beat], step: int) -> List[CutCandidate]:
    candidates = []
    for segment in audio.segments:
        candidates.append(CutCandidate(
            segment.start_time,
            CutOrigin.SEGMENT,
            IMPORTANCE_SEGMENT.get(segment.type, IMPORTANCE_SEGMENT_DEFAULT),
        ))
        inside = [b for b in beats if segment.start_time <= b.time < segment.end_time]
        for idx in range(step, len(inside), step):
            candidates.append(CutCandidate(inside[idx].time, CutOrigin.BEAT, IMPORTANCE_GRID_BEAT))
    return candidates


def _energy_jump_candidates(audio: AudioAnalysis, beats: Sequence[Beat], threshold: float) -> List[CutCandidate]:
    samples = sorted(audio.energy_samples, key=lambda s: s.time)
    beat_times = sorted(b.time for b in beats)
    candidates = []
    for prev, cur in zip(samples, samples[1:]):
        change = abs(cur.level - prev.level)
        if change + EPSILON < threshold:
            continue
        time = cur.time
        beat = nearest_time(beat_times, time)
        if beat is not None and abs(beat - time) <= ON_BEAT_TOLERANCE:
            time = beat
        candidates.append(CutCandidate(time, CutOrigin.ENERGY, min(0.5 + change, 1.0)))
    return candidates


def _beat_grid(beats: Sequence[Beat], step: int) -> List[CutCandidate]:
    ordered = sorted(beats, key=lambda b: b.time)
    return [
        CutCandidate(ordered[idx].time, CutOrigin.BEAT, IMPORTANCE_GRID_BEAT)
        for idx in range(0, len(ordered), step)
    ]


def _interval_candidates(interval: float, plan_end: float) -> List[CutCandidate]:
    candidates = []
    t = interval
    while t < plan_end - EPSILON:
        candidates.append(CutCandidate(t, CutOrigin.INTERVAL, IMPORTANCE_INTERVAL))
        t += interval
    return candidates


def _styled_candidates(
    style: EditStyle,
    events: Sequence[TimelineEvent],
    beats: Sequence[Beat],
    audio: Optional[AudioAnalysis],
    config: EngineConfig,
    plan_end: float,
    rng: random.Random,
) -> List[CutCandidate]:
    """Candidates for the non-rhythm styles; falls back to rhythm matching"""
    group = beat_group_size(audio.tempo if audio else 0.0)

    if style == EditStyle.SEGMENT_BASED:
        if not audio or not audio.segments:
            return _rhythm_candidates(events, beats, config)
        found = _segment_candidates(audio, beats, 2 * group)

    elif style == EditStyle.ENERGY_BASED:
        if not audio or not audio.energy_samples:
            return _rhythm_candidates(events, beats, config)
        found = _energy_jump_candidates(audio, beats, config.energy_change_threshold)
        for candidate in _beat_grid(beats, group):
            if rng.random() < 0.5:
                found.append(candidate)

    else:
        found = []
        if audio:
            found.extend(_segment_candidates(audio, [], 2 * group))
            found.extend(_energy_jump_candidates(audio, beats, CINEMATIC_ENERGY_JUMP))
        found.extend(_beat_grid(beats, 2 * group))
        if len(found) < CINEMATIC_MIN_CANDIDATES:
            found.extend(_interval_candidates(config.fallback_interval, plan_end))

    if not found and not beats:
        found = _interval_candidates(config.fallback_interval, plan_end)

    # One candidate per time, highest importance wins
    by_time: Dict[float, CutCandidate] = {}
    for candidate in found:
        current = by_time.get(candidate.time)
        if current is None or candidate.importance > current.importance:
            by_time[candidate.time] = candidate
    merged = list(by_time.values())
    merged.extend(
        CutCandidate(e.time, CutOrigin.SCENE_BOUNDARY, 0.0, boundary_only=True)
        for e in events if e.type == EventType.SCENE_BOUNDARY
    )
    merged.sort(key=lambda c: (c.time, c.boundary_only))
    return merged


# =============================================================================
# CONSTRAINED WALK
# =============================================================================

class _CutBuilder:
    """Turns accepted times into CutPoints with energy/segment context"""

    def __init__(self, beats: Sequence[Beat], audio: Optional[AudioAnalysis]):
        self.beat_times = sorted(b.time for b in beats)
        self.audio = audio

    def on_beat(self, time: float) -> bool:
        nearest = nearest_time(self.beat_times, time)
        return nearest is not None and abs(nearest - time) <= ON_BEAT_TOLERANCE

    def build(self, time: float, origin: CutOrigin, importance: float) -> CutPoint:
        energy = energy_at(self.audio.energy_samples, time) if self.audio else 0.5
        segment = self.audio.segment_at(time) if self.audio else None
        return CutPoint(
            time=time,
            origin=origin,
            energy=energy,
            on_beat=self.on_beat(time),
            importance=importance,
            segment_type=segment.type if segment else None,
        )


def _walk(
    candidates: Sequence[CutCandidate],
    config: EngineConfig,
    plan_end: float,
    boundaries: Sequence[float],
    builder: _CutBuilder,
) -> List[CutPoint]:
    min_d = config.min_scene_duration
    max_d = config.max_scene_duration

    first_origin = CutOrigin.BEAT if builder.on_beat(0.0) else CutOrigin.FORCED
    cuts = [builder.build(0.0, first_origin, IMPORTANCE_FIRST)]
    last = 0.0

    def forced_time() -> float:
        # Pull the final forced cut back so the last clip is not a sliver
        step = last + max_d
        pulled = plan_end - min_d
        if plan_end - step < min_d - EPSILON and pulled - last >= min_d - EPSILON:
            return pulled
        return step

    def force_until(limit: float) -> None:
        nonlocal last
        while limit - last > max_d + EPSILON and last + max_d < plan_end - EPSILON:
            last = forced_time()
            cuts.append(builder.build(last, CutOrigin.FORCED, IMPORTANCE_FORCED))

    for candidate in candidates:
        force_until(candidate.time)
        if candidate.time - last < min_d - EPSILON:
            continue
        if candidate.boundary_only:
            continue

        time, origin, importance = candidate.time, candidate.origin, candidate.importance
        if origin == CutOrigin.BEAT and config.prioritize_scene_boundaries:
            boundary = nearest_time(boundaries, time)
            if boundary is not None and boundary != time and abs(boundary - time) <= config.scene_snap_radius + EPSILON:
                gap = boundary - last
                if min_d - EPSILON <= gap <= max_d + EPSILON and plan_end - boundary >= min_d - EPSILON:
                    time, origin, importance = boundary, CutOrigin.SCENE_BOUNDARY, IMPORTANCE_SNAPPED

        if plan_end - time < min_d - EPSILON or time - last > max_d + EPSILON:
            continue
        cuts.append(builder.build(time, origin, importance))
        last = time

    force_until(plan_end)
    return cuts


def plan_end_time(audio: Optional[AudioAnalysis], events: Sequence[TimelineEvent]) -> float:
    """Audio duration, or the last event time when the duration is unknown"""
    if audio is not None and audio.duration > 0:
        return audio.duration
    return max((e.time for e in events), default=0.0)


def select_cuts(
    events: Sequence[TimelineEvent],
    beats: Sequence[Beat],
    config: EngineConfig,
    audio: Optional[AudioAnalysis] = None,
    scenes_by_video: Optional[Mapping[str, Sequence[Scene]]] = None,
    rng: Optional[random.Random] = None,
) -> List[CutPoint]:
    """
    Select the cut schedule from the merged event stream.

    Args:
        events: Output of ``merge_events``
        beats: Detected beats (used for strength ranking and on-beat tagging)
        config: Engine configuration
        audio: Full audio analysis (duration, segments, energy curve)
        scenes_by_video: Scene lists used as snap targets; derived from the
            events when omitted
        rng: Seeded random generator for the energy-based style

    Returns:
        Strictly increasing cut points, the first at time 0
    """
    rng = rng or random.Random(config.rng_seed)
    plan_end = plan_end_time(audio, events)

    if scenes_by_video is not None:
        boundaries = scene_boundaries(scenes_by_video)
    else:
        boundaries = sorted({e.time for e in events if e.type == EventType.SCENE_BOUNDARY})

    style = config.edit_style
    if style == EditStyle.RHYTHM_MATCH:
        candidates = _rhythm_candidates(events, beats, config)
    else:
        candidates = _styled_candidates(style, events, beats, audio, config, plan_end, rng)

    cuts = _walk(candidates, config, plan_end, boundaries, _CutBuilder(beats, audio))

    logger.debug(
        "cuts_selected",
        style=style.value,
        candidates=len(candidates),
        count=len(cuts),
        forced=sum(1 for c in cuts if c.origin == CutOrigin.FORCED),
        plan_end=plan_end,
    )
    return cuts
