"""
Edit Optimizer
==============
Corrective passes over the assembled decision sequence, run in order:

1. Repetition guard - adjacent decisions on the same (video, scene) are
   re-selected from the stored alternatives, or flagged.
2. Transition balance - too many dissolves are converted back to cuts,
   on-beat ones first.
3. Pacing smoothing - outlier-long, unimportant clips shrink toward the
   mean and the following clip starts earlier by the same amount.

Every pass keeps the decisions contiguous and duration-preserving, so the
EditDecisionList built afterwards always validates.
"""

from __future__ import annotations

import math
from typing import List, Optional, Sequence, Tuple

import structlog

from .clip_matcher import place_source
from .config import EngineConfig
from .models import (
    Beat,
    CutOrigin,
    EditDecision,
    EditIssue,
    IssueLog,
    IssueSeverity,
    TransitionType,
)
from .timeline import nearest_time
from .transitions import clip_id

logger = structlog.get_logger(__name__)

STAGE = "optimizer"
EPSILON = 1e-9
ON_BEAT_TOLERANCE = 0.1


def _key(decision: EditDecision) -> Tuple[str, str]:
    return decision.video_id, decision.scene_id


# =============================================================================
# PASS 1: REPETITION GUARD
# =============================================================================

def guard_repetition(decisions: Sequence[EditDecision], config: EngineConfig, issues: IssueLog) -> int:
    """Returns the number of decisions re-selected"""
    reselected = 0
    for idx in range(1, len(decisions)):
        prev, cur = decisions[idx - 1], decisions[idx]
        if _key(prev) != _key(cur):
            continue
        following = decisions[idx + 1] if idx + 1 < len(decisions) else None

        replacement = None
        if config.reselect_repeats:
            for alt in cur.alternatives:
                key = (alt.video_id, alt.scene.id)
                if key == _key(prev) or (following is not None and key == _key(following)):
                    continue
                if alt.scene.duration < cur.duration - EPSILON:
                    continue
                replacement = alt
                break

        if replacement is not None:
            cur.video_id = replacement.video_id
            cur.scene = replacement.scene
            cur.source_in = place_source(replacement.scene, cur.start_time, cur.duration, replacement.scene.end_time)
            cur.degraded = False
            cur.degraded_reason = None
            cur.source_limit = replacement.scene.end_time
            reselected += 1
            issues.add(
                severity=IssueSeverity.INFO,
                category="repeat_reselected",
                stage=STAGE,
                message=f"Replaced repeated scene with {replacement.video_id}/{replacement.scene.id}",
                time=cur.start_time,
                clip_id=clip_id(cur.index),
            )
        else:
            cur.repeated = True
            issues.add(
                severity=IssueSeverity.WARNING,
                category="repeated_scene",
                stage=STAGE,
                message=f"Scene {cur.video_id}/{cur.scene_id} repeats the previous clip",
                time=cur.start_time,
                clip_id=clip_id(cur.index),
            )
    return reselected


# =============================================================================
# PASS 2: TRANSITION BALANCE
# =============================================================================

def balance_transitions(decisions: Sequence[EditDecision], config: EngineConfig, issues: IssueLog) -> int:
    """
    Convert dissolves to cuts when they dominate the junctions.

    The share is measured over all junctions (cuts included). When it exceeds
    ``dissolve_ceiling``, dissolves are converted until at most
    ``dissolve_target`` remain, on-beat junctions first, each group in time
    order.

    Returns:
        Number of dissolves converted
    """
    junctions = decisions[1:]
    if not junctions:
        return 0
    dissolves = [d for d in junctions if d.transition_type == TransitionType.DISSOLVE]
    if len(dissolves) / len(junctions) <= config.dissolve_ceiling + EPSILON:
        return 0

    allowed = math.floor(config.dissolve_target * len(junctions) + EPSILON)
    excess = len(dissolves) - allowed
    ordered = [d for d in dissolves if d.on_beat] + [d for d in dissolves if not d.on_beat]
    for decision in ordered[:excess]:
        decision.transition_type = TransitionType.CUT

    issues.add(
        severity=IssueSeverity.INFO,
        category="transitions_rebalanced",
        stage=STAGE,
        message=f"Converted {excess} of {len(dissolves)} dissolves to cuts across {len(junctions)} junctions",
    )
    return excess


# =============================================================================
# PASS 3: PACING SMOOTHING
# =============================================================================

def smooth_pacing(
    decisions: Sequence[EditDecision],
    config: EngineConfig,
    beats: Optional[Sequence[Beat]] = None,
) -> int:
    """Returns the number of clips shortened"""
    if len(decisions) < 2:
        return 0
    mean = sum(d.duration for d in decisions) / len(decisions)
    target = max(config.pacing_target_factor * mean, config.min_scene_duration, config.pacing_min_clip)
    beat_times = sorted(b.time for b in beats or [])
    # Outliers are judged on the durations before this pass
    long_clips = [d.duration > config.pacing_long_factor * mean + EPSILON for d in decisions]
    shortened = 0

    for idx, (cur, nxt) in enumerate(zip(decisions, decisions[1:])):
        if not long_clips[idx]:
            continue
        if cur.importance >= config.pacing_importance_ceiling:
            continue
        if nxt.degraded:
            continue

        delta = cur.duration - target
        delta = min(
            delta,
            config.max_scene_duration - nxt.duration,
            nxt.scene.duration - nxt.duration,
        )
        if delta <= EPSILON:
            continue

        cur.duration -= delta
        nxt.start_time = cur.end_time
        nxt.duration += delta
        latest = nxt.scene.end_time - nxt.duration
        nxt.source_in = min(max(nxt.source_in - delta, nxt.scene.start_time), latest)

        nearest = nearest_time(beat_times, nxt.start_time)
        nxt.on_beat = nearest is not None and abs(nearest - nxt.start_time) <= ON_BEAT_TOLERANCE
        nxt.origin = CutOrigin.BEAT if nxt.on_beat else CutOrigin.PACING
        shortened += 1
    return shortened


def optimize(
    decisions: List[EditDecision],
    config: EngineConfig,
    beats: Optional[Sequence[Beat]] = None,
    issues: Optional[IssueLog] = None,
) -> Tuple[List[EditDecision], List[EditIssue]]:
    """
    Run the three corrective passes in place.

    Args:
        decisions: Working decisions from the matcher and transition selector
        config: Engine configuration
        beats: Detected beats, used to refresh on-beat flags of moved cuts
        issues: Shared issue log; a fresh one is used when omitted

    Returns:
        (decisions, issues raised by the optimizer)
    """
    issues = issues if issues is not None else IssueLog()
    before = len(issues)

    reselected = guard_repetition(decisions, config, issues)
    converted = balance_transitions(decisions, config, issues)
    shortened = smooth_pacing(decisions, config, beats)

    logger.debug(
        "edit_optimized",
        reselected=reselected,
        repeated=sum(1 for d in decisions if d.repeated),
        dissolves_converted=converted,
        clips_shortened=shortened,
    )
    return decisions, issues.issues[before:]
