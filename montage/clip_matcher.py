"""
Clip Matcher (Scene Scorer)
===========================
For each interval between two cuts, scores every scene of every source video
and picks one among the best few with the seeded RNG.

Scoring is multiplicative: a duration-fit term, the scene's boundary
confidence, how well the scene's motion matches the cut energy, an
energy/scene-type bonus, a faces bonus for important cuts and a
segment/clip-type affinity table. Relaxation runs in tiers so an interval
is always filled; the last resort is marked degraded.
"""

from __future__ import annotations

import random
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import structlog

from .config import EngineConfig
from .errors import NoViableClipError
from .models import (
    ClipType,
    CutPoint,
    EditDecision,
    IssueLog,
    IssueSeverity,
    Scene,
    SceneCandidate,
    SceneMatch,
    SceneType,
    SegmentType,
    VideoAnalysis,
)

logger = structlog.get_logger(__name__)

STAGE = "clip_matcher"

HIGH_ENERGY = 0.7
LOW_ENERGY = 0.3
ACTION_SCENE_BONUS = 1.5
CALM_SCENE_BONUS = 1.3
FACES_BONUS = 1.2
FACES_IMPORTANCE = 0.7
ACTION_CLIP_BONUS = 1.3

# Alternatives kept per decision for the repetition guard
MAX_ALTERNATIVES = 8

DEGRADED_NO_VIABLE = "no_viable_clip"
DEGRADED_SHORT = "short_scene"

# Segment type -> clip type affinity
CLIP_AFFINITY: Dict[Tuple[SegmentType, ClipType], float] = {
    (SegmentType.CHORUS, ClipType.PERFORMANCE): 0.4,
    (SegmentType.VERSE, ClipType.B_ROLL_STATIC): 0.3,
    (SegmentType.BRIDGE, ClipType.B_ROLL_DYNAMIC): 0.3,
}


@dataclass(frozen=True)
class MatchContext:
    """Audio context at the start of an interval"""
    energy: float = 0.5
    importance: float = 0.5
    segment_type: Optional[SegmentType] = None

    @classmethod
    def from_cut(cls, cut: CutPoint) -> "MatchContext":
        return cls(energy=cut.energy, importance=cut.importance, segment_type=cut.segment_type)


# =============================================================================
# SCORING
# =============================================================================

def score_scene(
    scene: Scene,
    clip_type: ClipType,
    window: float,
    context: MatchContext,
    config: EngineConfig,
) -> float:
    """Multiplicative fitness of ``scene`` for an interval of ``window`` seconds"""
    score = 1.0

    ratio = scene.duration / window if window > 0 else 1.0
    if ratio > config.long_scene_ratio:
        score *= config.long_scene_penalty
    elif ratio < 1.0:
        score *= ratio

    score *= scene.boundary_confidence

    # Energy/motion match: neutral at 0.5, up to 1 + w/2 for a perfect match
    match = 1.0 - abs(context.energy - scene.content.motion_level)
    score *= 1.0 + config.motion_match_weight * (match - 0.5)

    if context.energy > HIGH_ENERGY and scene.has_type(SceneType.ACTION):
        score *= ACTION_SCENE_BONUS
    elif context.energy < LOW_ENERGY and scene.has_type(SceneType.INTERIOR, SceneType.STATIC):
        score *= CALM_SCENE_BONUS

    if scene.content.has_faces and context.importance > FACES_IMPORTANCE:
        score *= FACES_BONUS

    if context.segment_type is not None:
        affinity = CLIP_AFFINITY.get((context.segment_type, clip_type), 0.0)
        score *= 1.0 + affinity * config.content_weight

    if clip_type == ClipType.ACTION and context.energy > HIGH_ENERGY:
        score *= ACTION_CLIP_BONUS

    return score


def _all_scenes(videos: Mapping[str, VideoAnalysis]):
    """(video_id, clip_type, scene) in sorted video id, then scene order"""
    for video_id in sorted(videos):
        video = videos[video_id]
        for scene in video.scenes:
            yield video_id, video.clip_type, scene


def _rank(candidates: List[SceneCandidate]) -> List[SceneCandidate]:
    # sorted() is stable so equal scores keep (video id, scene order)
    return sorted(candidates, key=lambda c: -c.score)


def select_best_scene(
    window_start: float,
    window_end: float,
    videos: Mapping[str, VideoAnalysis],
    context: MatchContext,
    config: EngineConfig,
    rng: random.Random,
) -> SceneMatch:
    """
    Pick the scene that covers ``[window_start, window_end)``.

    Tiers: scenes of at least ``min_duration_ratio`` x window, then any scene
    at least as long as the window, then the single longest scene anywhere
    (degraded, or NoViableClipError in strict mode).

    Args:
        window_start: Interval start on the timeline
        window_end: Interval end on the timeline
        videos: Source video analyses keyed by video id
        context: Audio context at the interval start
        config: Engine configuration
        rng: Seeded random generator for the top-k pick

    Returns:
        SceneMatch with the chosen scene and ranked alternatives
    """
    window = window_end - window_start
    scenes = list(_all_scenes(videos))

    passing = [
        SceneCandidate(video_id, scene, score_scene(scene, clip_type, window, context, config))
        for video_id, clip_type, scene in scenes
        if scene.duration >= config.min_duration_ratio * window - 1e-9
    ]
    if not passing:
        passing = [
            SceneCandidate(video_id, scene, score_scene(scene, clip_type, window, context, config))
            for video_id, clip_type, scene in scenes
            if scene.duration >= window - 1e-9
        ]

    if not passing:
        if config.strict:
            raise NoViableClipError(
                f"no scene can cover {window:.3f}s interval at {window_start:.3f}s",
                window_start=window_start,
                window_end=window_end,
            )
        if not scenes:
            raise NoViableClipError(
                "no scenes available",
                window_start=window_start,
                window_end=window_end,
            )
        # max() keeps the first of equal durations
        video_id, _, scene = max(scenes, key=lambda s: s[2].duration)
        logger.warning(
            "no_viable_clip",
            window_start=window_start,
            window_end=window_end,
            fallback_scene=scene.id,
            fallback_duration=scene.duration,
        )
        return SceneMatch(
            video_id=video_id,
            scene=scene,
            score=0.0,
            degraded=True,
            degraded_reason=DEGRADED_NO_VIABLE,
        )

    ranked = _rank(passing)
    top = ranked[: config.top_k]
    chosen = top[rng.randrange(len(top))]
    alternatives = [c for c in ranked if c is not chosen][:MAX_ALTERNATIVES]

    short = chosen.scene.duration < window - 1e-9
    return SceneMatch(
        video_id=chosen.video_id,
        scene=chosen.scene,
        score=chosen.score,
        degraded=short,
        degraded_reason=DEGRADED_SHORT if short else None,
        alternatives=alternatives,
    )


# =============================================================================
# SOURCE PLACEMENT
# =============================================================================

def place_source(scene: Scene, timeline_in: float, window: float, extent: float) -> float:
    """
    Source in-point for a ``window``-long clip taken from ``scene``.

    A scene that fits the window mirrors the timeline position, clamped into
    the scene, so reused takes stay continuous. A scene that is too short is
    read from its start, clamped to the video extent; when the whole video is
    shorter than the window the clip is truncated at freeze time.
    """
    if scene.duration >= window - 1e-9:
        latest = max(scene.start_time, scene.end_time - window)
        return min(max(timeline_in, scene.start_time), latest)
    return max(0.0, min(scene.start_time, extent - window))


# =============================================================================
# INTERVAL ASSIGNMENT
# =============================================================================

def assign_clips(
    cuts: Sequence[CutPoint],
    plan_end: float,
    videos: Mapping[str, VideoAnalysis],
    config: EngineConfig,
    rng: random.Random,
    issues: Optional[IssueLog] = None,
) -> List[EditDecision]:
    """Build one working decision per interval between consecutive cuts"""
    issues = issues if issues is not None else IssueLog()
    decisions: List[EditDecision] = []
    bounds = [cut.time for cut in cuts] + [plan_end]

    for idx, cut in enumerate(cuts):
        start, end = bounds[idx], bounds[idx + 1]
        if end <= start:
            continue
        match = select_best_scene(start, end, videos, MatchContext.from_cut(cut), config, rng)
        window = end - start
        extent = videos[match.video_id].extent
        source_in = place_source(match.scene, start, window, extent)
        decision = EditDecision(
            index=len(decisions),
            start_time=start,
            duration=window,
            video_id=match.video_id,
            scene=match.scene,
            source_in=source_in,
            origin=cut.origin,
            energy=cut.energy,
            importance=cut.importance,
            on_beat=cut.on_beat,
            segment_type=cut.segment_type,
            degraded=match.degraded,
            degraded_reason=match.degraded_reason,
            alternatives=match.alternatives,
            source_limit=extent,
        )
        decisions.append(decision)

        if match.degraded:
            severity = (
                IssueSeverity.ERROR if match.degraded_reason == DEGRADED_NO_VIABLE
                else IssueSeverity.WARNING
            )
            message = (
                f"Interval {start:.2f}-{end:.2f}s filled from {match.video_id}/{match.scene.id} "
                f"({match.scene.duration:.2f}s scene for {window:.2f}s window)"
            )
            shortfall = source_in + window - extent
            if shortfall > 1e-9:
                message += f"; source truncated by {shortfall:.2f}s"
            issues.add(
                severity=severity,
                category=match.degraded_reason or "degraded",
                stage=STAGE,
                message=message,
                time=start,
                clip_id=f"clip_{decision.index:04d}",
            )

    logger.debug(
        "clips_assigned",
        count=len(decisions),
        degraded=sum(1 for d in decisions if d.degraded),
    )
    return decisions
