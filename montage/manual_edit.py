"""
Manual retiming of a generated edit.

Changing one clip's duration ripples into the following clip only: its
start moves with the edit while its out point stays where it was. Both
clips stay inside their source scene (degraded clips inside the video).
"""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence, Tuple

import structlog

from .errors import InvalidInputError
from .models import (
    TIME_EPSILON,
    Beat,
    ClipAssignment,
    CutOrigin,
    EditDecisionList,
    Transition,
    VideoAnalysis,
)
from .timeline import nearest_time
from .transitions import transition_duration

logger = structlog.get_logger(__name__)

STAGE = "manual_edit"
EPSILON = 1e-9
ON_BEAT_TOLERANCE = 0.1


def _source_bounds(clip: ClipAssignment, videos: Optional[Mapping[str, VideoAnalysis]]) -> Tuple[float, float]:
    """Source range a clip may read: its scene, or the whole video when degraded"""
    video = videos.get(clip.source_video_id) if videos else None

    if clip.degraded:
        limit = video.extent if video is not None else clip.source_limit
        if limit is not None:
            return 0.0, limit
    else:
        if video is not None:
            scene = next((s for s in video.scenes if s.id == clip.source_scene_id), None)
            if scene is not None:
                return scene.start_time, scene.end_time
        if clip.scene_start is not None and clip.scene_end is not None:
            return clip.scene_start, clip.scene_end

    raise InvalidInputError(
        f"source bounds of clip {clip.id} are unknown; pass the video analyses",
        stage=STAGE,
        time=clip.timeline_in,
        context={"video_id": clip.source_video_id, "scene_id": clip.source_scene_id},
    )


def apply_manual_edit(
    edl: EditDecisionList,
    clip_index: int,
    duration: float,
    videos: Optional[Mapping[str, VideoAnalysis]] = None,
    beats: Optional[Sequence[Beat]] = None,
) -> EditDecisionList:
    """
    Retime one clip and ripple the following clip's start.

    Args:
        edl: Edit to modify (left untouched)
        clip_index: Index of the clip to retime
        duration: New timeline duration of that clip
        videos: Source analyses; without them the scene bounds stored on
            each clip are used
        beats: Detected beats, used to tag the moved cut as on/off beat

    Returns:
        New EditDecisionList with clips, cut points and transitions updated

    Raises:
        InvalidInputError: bad index, non-positive duration, a duration that
            swallows the following clip, one that leaves the source scene,
            or a clip whose source bounds are unknown
    """
    clips: List[ClipAssignment] = list(edl.clips)
    if not 0 <= clip_index < len(clips):
        raise InvalidInputError(
            f"clip index {clip_index} out of range (0..{len(clips) - 1})",
            stage=STAGE,
            context={"clip_index": clip_index},
        )
    if duration <= 0:
        raise InvalidInputError(f"duration must be positive, got {duration}", stage=STAGE)

    clip = clips[clip_index]
    new_out = clip.timeline_in + duration
    following = clips[clip_index + 1] if clip_index + 1 < len(clips) else None

    if following is not None and new_out >= following.timeline_out - EPSILON:
        raise InvalidInputError(
            f"duration {duration:.3f}s leaves no room for clip {following.id}",
            stage=STAGE,
            time=clip.timeline_in,
        )

    for touched in (clip, following):
        if touched is not None and touched.source_shortfall > TIME_EPSILON:
            raise InvalidInputError(
                f"clip {touched.id} is truncated by its source and cannot be retimed",
                stage=STAGE,
                time=touched.timeline_in,
            )

    _, hi = _source_bounds(clip, videos)
    if clip.source_in + duration > hi + TIME_EPSILON:
        raise InvalidInputError(
            f"clip {clip.id} would run past the end of scene {clip.source_scene_id}",
            stage=STAGE,
            time=clip.timeline_in,
        )

    clips[clip_index] = clip.model_copy(update={
        "timeline_out": new_out,
        "source_out": clip.source_in + duration,
    })

    cut_points = list(edl.cut_points)
    edl_duration = edl.duration
    if following is not None:
        next_duration = following.timeline_out - new_out
        lo, hi = _source_bounds(following, videos)
        if next_duration > hi - lo + TIME_EPSILON:
            raise InvalidInputError(
                f"clip {following.id} would outgrow scene {following.source_scene_id}",
                stage=STAGE,
                time=new_out,
            )
        source_in = max(following.source_out - next_duration, lo)
        clips[clip_index + 1] = following.model_copy(update={
            "timeline_in": new_out,
            "source_in": source_in,
            "source_out": source_in + next_duration,
        })
        if clip_index + 1 < len(cut_points):
            beat_times = sorted(b.time for b in beats or [])
            nearest = nearest_time(beat_times, new_out)
            cut_points[clip_index + 1] = cut_points[clip_index + 1].model_copy(update={
                "time": new_out,
                "origin": CutOrigin.MANUAL,
                "on_beat": nearest is not None and abs(nearest - new_out) <= ON_BEAT_TOLERANCE,
            })
    else:
        edl_duration = new_out

    by_id = {c.id: c for c in clips}
    transitions: List[Transition] = []
    for transition in edl.transitions:
        outgoing = by_id[transition.outgoing_clip_id]
        incoming = by_id[transition.incoming_clip_id]
        transitions.append(transition.model_copy(update={
            "center_point": incoming.timeline_in,
            "duration": min(transition_duration(transition.type), outgoing.duration, incoming.duration),
        }))

    logger.info("manual_edit_applied", clip_id=clip.id, duration=duration)

    # model_copy skips validation; rebuilding the clips re-checks each one
    return EditDecisionList(
        clips=[ClipAssignment.model_validate(c.model_dump()) for c in clips],
        transitions=transitions,
        cut_points=cut_points,
        frame_rate=edl.frame_rate,
        duration=edl_duration,
    )
