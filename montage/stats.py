"""
Stats/Alignment Reporter
========================
Summary statistics of a generated edit, used for diagnostics and tests.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Optional, Sequence

import numpy as np

from .models import (
    Beat,
    ClipAssignment,
    CutPoint,
    EditStats,
    RhythmPattern,
    Transition,
    TransitionType,
)


def beat_alignment_score(cuts: Sequence[CutPoint], beats: Sequence[Beat]) -> float:
    """
    Mean over cuts of ``max(0, 1 - distance to nearest beat)``.

    1.0 for a perfectly beat-aligned edit, 0 for a cut a second or more
    from any beat, and 0 when there are no beats or no cuts.
    """
    if not cuts or not beats:
        return 0.0
    beat_times = np.sort(np.asarray([b.time for b in beats], dtype=float))
    cut_times = np.asarray([c.time for c in cuts], dtype=float)

    idx = np.searchsorted(beat_times, cut_times)
    left = beat_times[np.clip(idx - 1, 0, len(beat_times) - 1)]
    right = beat_times[np.clip(idx, 0, len(beat_times) - 1)]
    distance = np.minimum(np.abs(cut_times - left), np.abs(cut_times - right))

    per_cut = np.maximum(0.0, 1.0 - distance)
    return float(np.clip(per_cut.mean(), 0.0, 1.0))


def detect_rhythm_pattern(durations: Sequence[float]) -> RhythmPattern:
    """Detect the rhythm pattern from clip durations"""
    if len(durations) < 3:
        return RhythmPattern.CONSTANT

    # Trend between first and last thirds
    third = len(durations) // 3
    avg_first = sum(durations[:third]) / third
    avg_last = sum(durations[-third:]) / third

    if avg_last < avg_first * 0.7:
        return RhythmPattern.ACCELERATING
    elif avg_last > avg_first * 1.3:
        return RhythmPattern.DECELERATING

    diffs = np.diff(durations)
    sign_changes = int(np.sum(diffs[:-1] * diffs[1:] < 0))
    if sign_changes > len(diffs) * 0.6:
        return RhythmPattern.ALTERNATING

    if float(np.var(durations)) < 0.5:
        return RhythmPattern.CONSTANT

    return RhythmPattern.IRREGULAR


def transition_type_counts(cuts: Sequence[CutPoint], transitions: Sequence[Transition]) -> Dict[str, int]:
    """Materialized transition types plus ``cut`` for the remaining junctions"""
    counts: Dict[str, int] = {t.value: 0 for t in TransitionType}
    for transition_type, n in Counter(t.type for t in transitions).items():
        counts[transition_type.value] = n
    junctions = max(len(cuts) - 1, 0)
    counts[TransitionType.CUT.value] += max(junctions - len(transitions), 0)
    return counts


def compute_stats(
    cuts: Sequence[CutPoint],
    beats: Sequence[Beat],
    transitions: Sequence[Transition],
    clips: Optional[Sequence[ClipAssignment]] = None,
) -> EditStats:
    """
    Compute summary statistics.

    Args:
        cuts: Final cut points
        beats: Detected beats
        transitions: Materialized (non-cut) transitions
        clips: Clip assignments, for duration and degradation statistics

    Returns:
        EditStats
    """
    n = len(cuts)
    average = (cuts[-1].time - cuts[0].time) / (n - 1) if n >= 2 else 0.0

    durations: List[float] = [c.duration for c in clips] if clips else []
    total_time = sum(durations)

    return EditStats(
        total_cuts=n,
        average_scene_duration=max(average, 0.0),
        transition_type_counts=transition_type_counts(cuts, transitions),
        beat_alignment_score=beat_alignment_score(cuts, beats),
        rhythm_pattern=detect_rhythm_pattern(durations),
        clip_duration_variance=float(np.var(durations)) if durations else 0.0,
        cuts_per_minute=(n / total_time * 60.0) if total_time > 0 else 0.0,
        degraded_clips=sum(1 for c in clips or [] if c.degraded),
        repeated_clips=sum(1 for c in clips or [] if c.repeated),
    )
