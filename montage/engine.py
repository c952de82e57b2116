"""
Edit Decision Engine
====================
Runs the six stages in order and freezes the working decisions into an
EditDecisionList:

    merge events -> select cuts -> match clips -> select transitions
    -> optimize -> report stats

``regenerate_with_style`` re-runs transition selection and the later stages
on an existing edit, picking transitions for another style.

Each stage runs inside an OpenTelemetry span and is timed into a Prometheus
histogram. Randomness comes from one ``random.Random(config.rng_seed)``
created per invocation, so identical inputs give byte-identical output.
"""

from __future__ import annotations

import random
import time
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import structlog
from opentelemetry import trace
from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from .cache import EditCache, derived_fingerprint, fingerprint
from .clip_matcher import assign_clips
from .config import DEFAULT_CONFIG, EditStyle, EngineConfig
from .cut_selector import plan_end_time, select_cuts
from .errors import InvalidInputError, MontageError
from .models import (
    TIME_EPSILON,
    AudioAnalysis,
    Beat,
    ClipAssignment,
    CutPoint,
    EditDecision,
    EditDecisionList,
    EditDecisionResult,
    IssueLog,
    Scene,
    VideoAnalysis,
)
from .optimizer import STAGE as OPTIMIZER_STAGE, optimize
from .stats import compute_stats
from .timeline import build_timeline_points, merge_events
from .transitions import assign_style_transitions, assign_transitions, build_transitions, clip_id

logger = structlog.get_logger(__name__)
tracer = trace.get_tracer("montage.engine")

ProgressCallback = Callable[[str, float], None]
VideoInput = Union[Mapping[str, Any], Sequence[Any]]


# =============================================================================
# PROMETHEUS METRICS
# =============================================================================

GENERATIONS = Counter(
    'montage_generations_total',
    'Edit generations by outcome',
    ['status', 'style']
)

STAGE_LATENCY = Histogram(
    'montage_stage_latency_ms',
    'Engine stage latency in milliseconds',
    ['stage'],
    buckets=[0.5, 1, 2.5, 5, 10, 25, 50, 100, 250, 500, 1000]
)

DEGRADED_CLIPS = Counter(
    'montage_degraded_clips_total',
    'Clip assignments filled by a degraded fallback'
)


# =============================================================================
# INPUT HANDLING
# =============================================================================

def resolve_config(config: Union[EngineConfig, Mapping[str, Any], None]) -> EngineConfig:
    """Accept an EngineConfig, a plain dict, or None for defaults"""
    if config is None:
        return DEFAULT_CONFIG
    if isinstance(config, EngineConfig):
        return config
    try:
        return EngineConfig.model_validate(dict(config))
    except ValidationError as e:
        raise InvalidInputError(f"invalid engine config: {e}", stage="validate") from e


def _coerce_audio(audio: Any) -> AudioAnalysis:
    if audio is None:
        raise InvalidInputError("audio analysis is required", stage="validate")
    if isinstance(audio, AudioAnalysis):
        return audio
    try:
        return AudioAnalysis.model_validate(audio)
    except ValidationError as e:
        raise InvalidInputError(f"invalid audio analysis: {e}", stage="validate") from e


def _coerce_videos(videos: Optional[VideoInput]) -> Dict[str, VideoAnalysis]:
    if not videos:
        raise InvalidInputError("at least one video analysis is required", stage="validate")
    items = videos.items() if isinstance(videos, Mapping) else [(None, v) for v in videos]
    result: Dict[str, VideoAnalysis] = {}
    for key, video in items:
        if not isinstance(video, VideoAnalysis):
            try:
                video = VideoAnalysis.model_validate(video)
            except ValidationError as e:
                raise InvalidInputError(f"invalid video analysis {key or ''}: {e}", stage="validate") from e
        result[key if key is not None else video.video_id] = video
    return result


def validate_inputs(audio: Any, videos: Optional[VideoInput]) -> Tuple[AudioAnalysis, Dict[str, VideoAnalysis]]:
    """
    Coerce and check engine inputs before any stage runs.

    Raises:
        InvalidInputError: missing audio, no videos, or no scenes at all
    """
    audio = _coerce_audio(audio)
    video_map = _coerce_videos(videos)
    if not any(video.scenes for video in video_map.values()):
        raise InvalidInputError(
            "no scenes in any video; cannot assign clips",
            stage="validate",
            context={"video_ids": sorted(video_map)},
        )
    return audio, video_map


# =============================================================================
# ENGINE
# =============================================================================

@contextmanager
def _stage(name: str) -> Iterator[Any]:
    start = time.perf_counter()
    try:
        with tracer.start_as_current_span(f"montage.{name}") as span:
            yield span
    finally:
        STAGE_LATENCY.labels(stage=name).observe((time.perf_counter() - start) * 1000)


def _freeze(decisions: Sequence[EditDecision], plan_end: float, frame_rate: float) -> EditDecisionList:
    """Turn the working decisions into the immutable EDL"""
    clips: List[ClipAssignment] = []
    for idx, decision in enumerate(decisions):
        timeline_out = decisions[idx + 1].start_time if idx + 1 < len(decisions) else decision.end_time
        window = timeline_out - decision.start_time
        # A degraded clip from a video shorter than its window stops at the video end
        shortfall = 0.0
        if decision.degraded and decision.source_limit is not None:
            shortfall = max(0.0, decision.source_in + window - decision.source_limit)
            if shortfall <= TIME_EPSILON:
                shortfall = 0.0
        clips.append(ClipAssignment(
            id=clip_id(decision.index),
            timeline_in=decision.start_time,
            timeline_out=timeline_out,
            source_video_id=decision.video_id,
            source_scene_id=decision.scene_id,
            source_in=decision.source_in,
            source_out=decision.source_in + window - shortfall,
            degraded=decision.degraded,
            degraded_reason=decision.degraded_reason,
            repeated=decision.repeated,
            scene_start=decision.scene.start_time,
            scene_end=decision.scene.end_time,
            source_limit=decision.source_limit,
            source_shortfall=shortfall,
        ))
    cut_points = [
        CutPoint(
            time=d.start_time,
            origin=d.origin,
            energy=d.energy,
            on_beat=d.on_beat,
            importance=d.importance,
            segment_type=d.segment_type,
        )
        for d in decisions
    ]
    return EditDecisionList(
        clips=clips,
        transitions=build_transitions(decisions),
        cut_points=cut_points,
        frame_rate=frame_rate,
        duration=plan_end,
    )


class EditDecisionEngine:
    """
    Stateless edit decision service with an optional result cache.

    Usage:
        engine = EditDecisionEngine()
        result = engine.generate(audio, {"clip_a": video_a})
        print(result.stats.beat_alignment_score)
    """

    def __init__(
        self,
        config: Union[EngineConfig, Mapping[str, Any], None] = None,
        cache: Optional[EditCache] = None,
    ):
        self.config = resolve_config(config)
        self.cache = cache

    def generate(
        self,
        audio: Any,
        videos: VideoInput,
        config: Union[EngineConfig, Mapping[str, Any], None] = None,
        progress: Optional[ProgressCallback] = None,
    ) -> EditDecisionResult:
        """
        Generate an edit plan.

        Args:
            audio: AudioAnalysis (or its dict form)
            videos: {video_id: VideoAnalysis} or a list of VideoAnalysis
            config: Per-call override of the engine config
            progress: Optional ``progress(message, fraction)`` callback

        Returns:
            EditDecisionResult with EDL, timeline, stats and issues

        Raises:
            InvalidInputError: unusable inputs or config
            NoViableClipError: strict mode and an interval cannot be filled
        """
        config = resolve_config(config) if config is not None else self.config
        style = config.edit_style.value

        try:
            audio, video_map = validate_inputs(audio, videos)
        except InvalidInputError:
            GENERATIONS.labels(status="invalid", style=style).inc()
            raise

        key = fingerprint(audio.id, video_map.keys(), config)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                GENERATIONS.labels(status="cached", style=style).inc()
                logger.info("edit_cache_hit", fingerprint=key[:12])
                if progress:
                    progress("Loaded from cache", 1.0)
                return cached

        try:
            with tracer.start_as_current_span("montage.generate") as span:
                span.set_attribute("montage.style", style)
                span.set_attribute("montage.videos", len(video_map))
                result = self._run(audio, video_map, config, key, progress)
        except MontageError:
            GENERATIONS.labels(status="error", style=style).inc()
            raise

        GENERATIONS.labels(status="success", style=style).inc()
        if self.cache is not None:
            self.cache.put(key, result)
        return result

    def _run(
        self,
        audio: AudioAnalysis,
        videos: Dict[str, VideoAnalysis],
        config: EngineConfig,
        key: str,
        progress: Optional[ProgressCallback],
    ) -> EditDecisionResult:
        def report(message: str, fraction: float) -> None:
            if progress:
                progress(message, fraction)

        rng = random.Random(config.rng_seed)
        issues = IssueLog()
        scenes_by_video = {video_id: video.scenes for video_id, video in videos.items()}

        report("Merging timeline events", 0.0)
        with _stage("merge"):
            events = merge_events(audio.beats, scenes_by_video)
        plan_end = plan_end_time(audio, events)

        report("Selecting cut points", 0.15)
        with _stage("cut_selection") as span:
            cuts = select_cuts(events, audio.beats, config, audio=audio, scenes_by_video=scenes_by_video, rng=rng)
            span.set_attribute("montage.cuts", len(cuts))

        report("Matching clips", 0.35)
        with _stage("clip_matching"):
            decisions = assign_clips(cuts, plan_end, videos, config, rng, issues)

        report("Selecting transitions", 0.6)
        with _stage("transition_selection"):
            assign_transitions(decisions, config, rng)

        report("Optimizing edit", 0.75)
        with _stage("optimization"):
            optimize(decisions, config, audio.beats, issues)

        report("Computing statistics", 0.9)
        with _stage("reporting"):
            edl = _freeze(decisions, plan_end, config.frame_rate)
            stats = compute_stats(edl.cut_points, audio.beats, edl.transitions, edl.clips)
            timeline = build_timeline_points(audio.beats, edl.cut_points, scenes_by_video)

        if stats.degraded_clips:
            DEGRADED_CLIPS.inc(stats.degraded_clips)

        logger.info(
            "edit_generated",
            audio_id=audio.id,
            videos=len(videos),
            style=config.edit_style.value,
            cuts=stats.total_cuts,
            transitions=len(edl.transitions),
            alignment=round(stats.beat_alignment_score, 3),
            degraded=stats.degraded_clips,
            issues=len(issues),
        )
        report("Edit decision complete", 1.0)

        return EditDecisionResult(
            edl=edl,
            timeline=timeline,
            stats=stats,
            issues=issues.issues,
            fingerprint=key,
            seed=config.rng_seed,
        )


# =============================================================================
# FUNCTIONAL API & FACTORY
# =============================================================================

def generate_edit(
    audio: Any,
    videos: VideoInput,
    config: Union[EngineConfig, Mapping[str, Any], None] = None,
    progress: Optional[ProgressCallback] = None,
) -> EditDecisionResult:
    """Generate an edit plan without caching"""
    return EditDecisionEngine(config).generate(audio, videos, progress=progress)


def create_engine(
    config: Union[EngineConfig, Mapping[str, Any], None] = None,
    cache_enabled: bool = True,
    max_cache_entries: int = 64,
    cache_ttl_seconds: Optional[float] = None,
    **overrides: Any,
) -> EditDecisionEngine:
    """
    Factory function to create an EditDecisionEngine.

    Args:
        config: Base configuration (EngineConfig, dict or None)
        cache_enabled: Attach an EditCache
        max_cache_entries: LRU bound of the cache
        cache_ttl_seconds: Optional cache entry lifetime
        **overrides: EngineConfig fields overriding ``config``

    Returns:
        Configured EditDecisionEngine
    """
    base = resolve_config(config)
    if overrides:
        base = resolve_config({**base.model_dump(), **overrides})
    cache = EditCache(max_entries=max_cache_entries, ttl_seconds=cache_ttl_seconds) if cache_enabled else None
    return EditDecisionEngine(config=base, cache=cache)


# =============================================================================
# RESTYLING
# =============================================================================

def _thaw(edl: EditDecisionList) -> List[EditDecision]:
    """Working decisions rebuilt from a frozen EDL (no stored alternatives)"""
    if len(edl.clips) != len(edl.cut_points):
        raise InvalidInputError(
            f"edit has {len(edl.clips)} clips but {len(edl.cut_points)} cut points",
            stage="restyle",
        )
    decisions: List[EditDecision] = []
    for idx, (clip, cut) in enumerate(zip(edl.clips, edl.cut_points)):
        scene_start = clip.scene_start if clip.scene_start is not None else clip.source_in
        scene_end = clip.scene_end if clip.scene_end is not None else clip.source_out
        scene = Scene(
            id=clip.source_scene_id,
            video_id=clip.source_video_id,
            start_time=scene_start,
            end_time=max(scene_start, scene_end),
        )
        decisions.append(EditDecision(
            index=idx,
            start_time=clip.timeline_in,
            duration=clip.duration,
            video_id=clip.source_video_id,
            scene=scene,
            source_in=clip.source_in,
            origin=cut.origin,
            energy=cut.energy,
            importance=cut.importance,
            on_beat=cut.on_beat,
            segment_type=cut.segment_type,
            degraded=clip.degraded,
            degraded_reason=clip.degraded_reason,
            source_limit=clip.source_limit,
        ))
    return decisions


def regenerate_with_style(
    previous: Union[EditDecisionResult, EditDecisionList],
    style: Union[EditStyle, str],
    config: Union[EngineConfig, Mapping[str, Any], None] = None,
    beats: Optional[Sequence[Beat]] = None,
) -> EditDecisionResult:
    """
    Re-pick the transitions of an existing edit for another style.

    Cut points and clip assignments are kept. Every junction gets the
    style's deterministic transition, then the optimizer passes run again.

    Args:
        previous: Result (or bare EDL) to restyle; left untouched
        style: Target edit style
        config: Base configuration; its ``edit_style`` is replaced by ``style``
        beats: Detected beats; read from the result timeline when omitted

    Returns:
        New EditDecisionResult

    Raises:
        InvalidInputError: unknown style, bad config or an inconsistent EDL
    """
    base = resolve_config(config)
    try:
        style = EditStyle(style)
    except ValueError as e:
        raise InvalidInputError(f"unknown edit style {style!r}", stage="restyle") from e
    config = resolve_config({**base.model_dump(), "edit_style": style})

    if isinstance(previous, EditDecisionResult):
        edl, timeline, base_key = previous.edl, previous.timeline, previous.fingerprint
        carried = [i for i in previous.issues if i.stage != OPTIMIZER_STAGE]
    else:
        edl, timeline, base_key, carried = previous, [], "", []
    if beats is None:
        beats = [Beat(time=p.time, energy=p.energy) for p in timeline if p.type == "beat"]

    issues = IssueLog()
    for issue in carried:
        issues.add(
            severity=issue.severity,
            category=issue.category,
            stage=issue.stage,
            message=issue.message,
            time=issue.time,
            clip_id=issue.clip_id,
        )

    with tracer.start_as_current_span("montage.regenerate") as span:
        span.set_attribute("montage.style", style.value)
        decisions = _thaw(edl)
        assign_style_transitions(decisions, style, config)
        optimize(decisions, config, beats, issues)
        restyled = _freeze(decisions, edl.duration, edl.frame_rate)
        stats = compute_stats(restyled.cut_points, beats, restyled.transitions, restyled.clips)

    # Scene points are carried over; beats and cuts are rebuilt
    points = build_timeline_points(beats, restyled.cut_points)
    points.extend(p for p in timeline if p.type == "scene")
    points.sort(key=lambda p: p.time)

    GENERATIONS.labels(status="restyled", style=style.value).inc()
    logger.info(
        "edit_restyled",
        style=style.value,
        cuts=stats.total_cuts,
        transitions=len(restyled.transitions),
        issues=len(issues),
    )
    return EditDecisionResult(
        edl=restyled,
        timeline=points,
        stats=stats,
        issues=issues.issues,
        fingerprint=derived_fingerprint(base_key, config),
        seed=config.rng_seed,
    )
