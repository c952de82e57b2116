"""
Montage - Beat-Synchronized Edit Decision Engine

Turns a finished music analysis and one or more video analyses into an edit
plan: cut points, the source scene shown in each interval, and the
transition at each cut.

Stages:
- merge_events: beats + scene boundaries into one sorted stream
- select_cuts: debounced, ceiling-bounded cut schedule with scene snapping
- assign_clips: scene scoring and seeded top-k selection per interval
- assign_transitions: energy-banded transition choice
- regenerate_with_style: re-pick transitions of an edit for another style
- optimize: repetition guard, transition balance, pacing smoothing
- compute_stats: cut count, pacing, transition histogram, beat alignment

Usage:
    from montage import generate_edit, EngineConfig

    result = generate_edit(audio, {"clip_a": video_a}, EngineConfig(rng_seed=7))
    for clip in result.edl.clips:
        print(clip.timeline_in, clip.source_video_id, clip.source_in)
"""

from .cache import EditCache, fingerprint

from .config import (
    EditStyle,
    EnergyThresholds,
    EngineConfig,
)

from .errors import (
    InvalidInputError,
    MontageError,
    NoViableClipError,
)

from .models import (
    AudioAnalysis,
    AudioSegment,
    Beat,
    ClipAssignment,
    ClipType,
    CutOrigin,
    CutPoint,
    EditDecisionList,
    EditDecisionResult,
    EditIssue,
    EditStats,
    EnergySample,
    Scene,
    SceneContent,
    SceneType,
    SegmentType,
    TimelinePoint,
    Transition,
    TransitionType,
    VideoAnalysis,
)

from .timeline import merge_events
from .cut_selector import select_cuts
from .clip_matcher import select_best_scene
from .transitions import select_transition, style_transition, transition_duration
from .optimizer import optimize
from .stats import compute_stats
from .manual_edit import apply_manual_edit

from .engine import (
    EditDecisionEngine,
    create_engine,
    generate_edit,
    regenerate_with_style,
)

__all__ = [
    # Engine
    'EditDecisionEngine',
    'generate_edit',
    'create_engine',
    'regenerate_with_style',
    'EditCache',
    'fingerprint',
    'apply_manual_edit',

    # Stages
    'merge_events',
    'select_cuts',
    'select_best_scene',
    'select_transition',
    'style_transition',
    'transition_duration',
    'optimize',
    'compute_stats',

    # Config
    'EngineConfig',
    'EnergyThresholds',
    'EditStyle',

    # Errors
    'MontageError',
    'InvalidInputError',
    'NoViableClipError',

    # Models
    'AudioAnalysis',
    'AudioSegment',
    'Beat',
    'EnergySample',
    'VideoAnalysis',
    'Scene',
    'SceneContent',
    'SceneType',
    'SegmentType',
    'ClipType',
    'CutOrigin',
    'CutPoint',
    'ClipAssignment',
    'Transition',
    'TransitionType',
    'EditDecisionList',
    'EditDecisionResult',
    'EditIssue',
    'EditStats',
    'TimelinePoint',
]

__version__ = '1.0.0'
