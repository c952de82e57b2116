"""
Transition Selector
===================
Maps the energy at each cut to a transition type, and materializes the
non-cut ones as Transition records. Restyling an existing edit uses the
deterministic per-style rules instead of the energy bands.
"""

from __future__ import annotations

import random
from typing import Dict, List, Sequence, Tuple

from .config import EditStyle, EnergyThresholds, EngineConfig
from .models import EditDecision, SegmentType, Transition, TransitionType

TRANSITION_DURATIONS: Dict[TransitionType, float] = {
    TransitionType.CUT: 0.0,
    TransitionType.DISSOLVE: 0.5,
    TransitionType.WIPE: 0.25,
    TransitionType.FADE_IN: 0.25,
    TransitionType.FADE_OUT: 0.25,
}

HIGH_ENERGY_TRANSITIONS: Tuple[TransitionType, ...] = (TransitionType.CUT, TransitionType.WIPE)
MEDIUM_ENERGY_TRANSITIONS: Tuple[TransitionType, ...] = (TransitionType.CUT, TransitionType.DISSOLVE)
LOW_ENERGY_TRANSITIONS: Tuple[TransitionType, ...] = (
    TransitionType.DISSOLVE,
    TransitionType.FADE_IN,
    TransitionType.FADE_OUT,
)


def transition_band(energy: float, thresholds: EnergyThresholds) -> Tuple[TransitionType, ...]:
    """Candidate transitions for an energy level"""
    if energy >= thresholds.high:
        return HIGH_ENERGY_TRANSITIONS
    if energy < thresholds.low:
        return LOW_ENERGY_TRANSITIONS
    # Everything between low and high, including the medium..high gap
    return MEDIUM_ENERGY_TRANSITIONS


def select_transition(energy: float, config: EngineConfig, rng: random.Random) -> TransitionType:
    """Pick a transition type for a cut at the given energy"""
    band = transition_band(energy, config.energy_thresholds)
    return band[rng.randrange(len(band))]


def transition_duration(transition_type: TransitionType) -> float:
    return TRANSITION_DURATIONS.get(transition_type, 0.0)


def assign_transitions(decisions: Sequence[EditDecision], config: EngineConfig, rng: random.Random) -> None:
    """Set the incoming transition of every decision after the first"""
    for decision in decisions[1:]:
        decision.transition_type = select_transition(decision.energy, config, rng)


# =============================================================================
# STYLE-AWARE SELECTION (used when an edit is restyled)
# =============================================================================

IMPORTANT_CUT = 0.8
CINEMATIC_WIPE_ENERGY = 0.7


def style_transition(decision: EditDecision, style: EditStyle, thresholds: EnergyThresholds) -> TransitionType:
    """
    Deterministic transition for a cut under an edit style.

    - rhythm_match: cuts on the beat, dissolves between beats
    - segment_based: wipes into important chorus cuts, dissolves elsewhere
      in a chorus, fades out into a bridge, cuts otherwise
    - energy_based: wipe above the high band edge, dissolve above medium
    - cinematic: fades into important cuts, wipes on energetic beats,
      dissolves in a chorus
    """
    chorus = decision.segment_type == SegmentType.CHORUS

    if style == EditStyle.RHYTHM_MATCH:
        return TransitionType.CUT if decision.on_beat else TransitionType.DISSOLVE

    if style == EditStyle.SEGMENT_BASED:
        if chorus:
            return TransitionType.WIPE if decision.importance > IMPORTANT_CUT else TransitionType.DISSOLVE
        if decision.segment_type == SegmentType.BRIDGE:
            return TransitionType.FADE_OUT
        return TransitionType.CUT

    if style == EditStyle.ENERGY_BASED:
        if decision.energy > thresholds.high:
            return TransitionType.WIPE
        if decision.energy > thresholds.medium:
            return TransitionType.DISSOLVE
        return TransitionType.CUT

    if decision.importance > IMPORTANT_CUT:
        return TransitionType.FADE_IN
    if decision.on_beat and decision.energy > CINEMATIC_WIPE_ENERGY:
        return TransitionType.WIPE
    if chorus:
        return TransitionType.DISSOLVE
    return TransitionType.CUT


def assign_style_transitions(decisions: Sequence[EditDecision], style: EditStyle, config: EngineConfig) -> None:
    """Re-pick every incoming transition for ``style``; the first clip has none"""
    if decisions:
        decisions[0].transition_type = TransitionType.CUT
    for decision in decisions[1:]:
        decision.transition_type = style_transition(decision, style, config.energy_thresholds)


def clip_id(index: int) -> str:
    return f"clip_{index:04d}"


def build_transitions(decisions: Sequence[EditDecision]) -> List[Transition]:
    """
    Materialize non-cut junctions.

    The transition sits on the incoming decision's start. Its duration is
    the type default, clamped to the shorter of the two adjacent clips.
    """
    transitions: List[Transition] = []
    for prev, cur in zip(decisions, decisions[1:]):
        if cur.transition_type == TransitionType.CUT:
            continue
        duration = min(transition_duration(cur.transition_type), prev.duration, cur.duration)
        transitions.append(Transition(
            id=f"transition_{len(transitions):04d}",
            type=cur.transition_type,
            duration=duration,
            outgoing_clip_id=clip_id(prev.index),
            incoming_clip_id=clip_id(cur.index),
            center_point=cur.start_time,
        ))
    return transitions
