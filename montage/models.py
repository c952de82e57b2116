"""
Montage Data Models
===================
Analysis inputs, edit-plan outputs and the working records the engine passes
between stages.

Inputs (AudioAnalysis, VideoAnalysis) arrive from the audio/video analysis
collaborators. Outputs (EditDecisionList, EditStats, EditDecisionResult) are
frozen pydantic models; the EditDecisionList validates its own invariants on
construction so an inconsistent plan can never leave the engine.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

# Tolerance for timeline arithmetic (contiguity, duration preservation)
TIME_EPSILON = 1e-6


# =============================================================================
# SECTION 1: ENUMS
# =============================================================================

class SegmentType(str, Enum):
    """Musical section labels produced by the audio collaborator"""
    INTRO = "intro"
    VERSE = "verse"
    PRE_CHORUS = "pre_chorus"
    CHORUS = "chorus"
    BRIDGE = "bridge"
    BREAKDOWN = "breakdown"
    DROP = "drop"
    OUTRO = "outro"
    UNKNOWN = "unknown"


class SceneType(str, Enum):
    """Content tags attached to a detected scene"""
    ACTION = "action"
    INTERIOR = "interior"
    EXTERIOR = "exterior"
    STATIC = "static"
    PERFORMANCE = "performance"
    B_ROLL = "b_roll"
    DIALOGUE = "dialogue"
    ESTABLISHING = "establishing"
    CLOSEUP = "closeup"
    WIDE = "wide"
    MEDIUM = "medium"
    TRANSITION = "transition"


class ClipType(str, Enum):
    """Whole-clip classification of a source video"""
    PERFORMANCE = "performance"
    B_ROLL_STATIC = "b_roll_static"
    B_ROLL_DYNAMIC = "b_roll_dynamic"
    ACTION = "action"
    ESTABLISHING = "establishing"
    REACTION = "reaction"
    CUTAWAY = "cutaway"
    UNKNOWN = "unknown"


class CutOrigin(str, Enum):
    """Why a cut point exists"""
    BEAT = "beat"
    SCENE_BOUNDARY = "scene_boundary"
    FORCED = "forced"
    SEGMENT = "segment"
    ENERGY = "energy"
    INTERVAL = "interval"
    PACING = "pacing"  # moved off its beat by pacing smoothing
    MANUAL = "manual"


class TransitionType(str, Enum):
    """Transitions the engine can place between two clips"""
    CUT = "cut"
    DISSOLVE = "dissolve"
    WIPE = "wipe"
    FADE_IN = "fade_in"
    FADE_OUT = "fade_out"


class EventType(str, Enum):
    BEAT = "beat"
    SCENE_BOUNDARY = "scene_boundary"


class RhythmPattern(str, Enum):
    """Editing rhythm patterns"""
    CONSTANT = "constant"
    ACCELERATING = "accelerating"
    DECELERATING = "decelerating"
    ALTERNATING = "alternating"
    IRREGULAR = "irregular"


class IssueSeverity(str, Enum):
    """Issue severity levels"""
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


# =============================================================================
# SECTION 2: AUDIO ANALYSIS INPUTS
# =============================================================================

class Beat(BaseModel):
    """Detected rhythmic pulse"""
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0.0, description="Beat timestamp in seconds")
    confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    energy: Optional[float] = Field(default=None, ge=0.0, le=1.0)


class AudioSegment(BaseModel):
    """Musical section (verse, chorus, ...) of the track"""
    model_config = ConfigDict(frozen=True)

    start_time: float = Field(ge=0.0)
    end_time: float = Field(ge=0.0)
    duration: float = Field(ge=0.0, default=0.0)
    type: SegmentType = SegmentType.UNKNOWN
    energy: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)

    @model_validator(mode="before")
    @classmethod
    def fill_duration(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("duration"):
            data = dict(data)
            data["duration"] = max(0.0, data.get("end_time", 0.0) - data.get("start_time", 0.0))
        return data

    @model_validator(mode="after")
    def end_after_start(self) -> "AudioSegment":
        if self.end_time < self.start_time:
            raise ValueError("end_time must be >= start_time")
        return self

    def contains(self, time: float) -> bool:
        return self.start_time <= time < self.end_time


class EnergySample(BaseModel):
    """One point of the sparse energy curve"""
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0.0)
    level: float = Field(ge=0.0, le=1.0)


class AudioAnalysis(BaseModel):
    """Finished audio analysis for one music track"""
    model_config = ConfigDict(frozen=True)

    id: str = Field(description="Stable identifier of the analysed track")
    duration: float = Field(ge=0.0, default=0.0)
    tempo: float = Field(ge=0.0, default=120.0, description="Tempo in BPM")
    beats: List[Beat] = Field(default_factory=list)
    segments: List[AudioSegment] = Field(default_factory=list)
    energy_samples: List[EnergySample] = Field(default_factory=list)

    def segment_at(self, time: float) -> Optional[AudioSegment]:
        for segment in self.segments:
            if segment.contains(time):
                return segment
        return None


# =============================================================================
# SECTION 3: VIDEO ANALYSIS INPUTS
# =============================================================================

class SceneContent(BaseModel):
    """Content summary of a scene (faces, motion)"""
    model_config = ConfigDict(frozen=True)

    has_faces: bool = False
    face_count: int = Field(ge=0, default=0)
    has_motion: bool = False
    motion_amount: float = Field(ge=0.0, le=1.0, default=0.0)

    @property
    def motion_level(self) -> float:
        """Measured motion; scenes only flagged as moving count as medium"""
        if self.has_motion and self.motion_amount == 0:
            return 0.5
        return self.motion_amount


class Scene(BaseModel):
    """Contiguous span of a source video between two detected visual cuts"""
    model_config = ConfigDict(frozen=True)

    id: str
    video_id: str = ""
    start_time: float = Field(ge=0.0)
    end_time: float = Field(ge=0.0)
    duration: float = Field(ge=0.0, default=0.0)
    boundary_confidence: float = Field(ge=0.0, le=1.0, default=1.0)
    scene_types: Tuple[SceneType, ...] = ()
    content: SceneContent = Field(default_factory=SceneContent)

    @model_validator(mode="before")
    @classmethod
    def fill_duration(cls, data: Any) -> Any:
        if isinstance(data, dict) and not data.get("duration"):
            data = dict(data)
            data["duration"] = max(0.0, data.get("end_time", 0.0) - data.get("start_time", 0.0))
        return data

    @field_validator("scene_types", mode="before")
    @classmethod
    def normalize_types(cls, v: Any) -> Any:
        # Stored as a sorted, de-duplicated tuple so dumps are reproducible
        if v is None:
            return ()
        return tuple(sorted({SceneType(t) for t in v}, key=lambda t: t.value))

    @model_validator(mode="after")
    def end_after_start(self) -> "Scene":
        if self.end_time < self.start_time:
            raise ValueError(f"scene {self.id}: end_time must be >= start_time")
        return self

    def has_type(self, *types: SceneType) -> bool:
        return any(t in self.scene_types for t in types)


class VideoAnalysis(BaseModel):
    """Finished video analysis for one source clip"""
    model_config = ConfigDict(frozen=True)

    video_id: str
    duration: float = Field(ge=0.0, default=0.0)
    frame_rate: float = Field(gt=0.0, default=30.0)
    title: Optional[str] = None
    clip_type: ClipType = ClipType.UNKNOWN
    scenes: List[Scene] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def tag_scenes(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        video_id = data.get("video_id", "")
        tagged = []
        for scene in data.get("scenes") or []:
            if isinstance(scene, dict) and not scene.get("video_id"):
                scene = {**scene, "video_id": video_id}
            elif isinstance(scene, Scene) and not scene.video_id:
                scene = scene.model_copy(update={"video_id": video_id})
            tagged.append(scene)
        return {**data, "scenes": tagged}

    @model_validator(mode="after")
    def scenes_ordered(self) -> "VideoAnalysis":
        for prev, cur in zip(self.scenes, self.scenes[1:]):
            if cur.start_time < prev.end_time - TIME_EPSILON:
                raise ValueError(
                    f"video {self.video_id}: scenes {prev.id} and {cur.id} overlap or are out of order"
                )
        return self

    @property
    def extent(self) -> float:
        """Usable source length: declared duration or the last scene end"""
        last_end = self.scenes[-1].end_time if self.scenes else 0.0
        return max(self.duration, last_end)


# =============================================================================
# SECTION 4: EDIT PLAN OUTPUTS
# =============================================================================

class CutPoint(BaseModel):
    """Chosen timestamp where the visible source changes"""
    model_config = ConfigDict(frozen=True)

    time: float = Field(ge=0.0)
    origin: CutOrigin
    energy: float = Field(ge=0.0, le=1.0, default=0.5)
    on_beat: bool = False
    importance: float = Field(ge=0.0, le=1.0, default=0.5)
    segment_type: Optional[SegmentType] = None


class ClipAssignment(BaseModel):
    """Source footage placed on one timeline interval"""
    model_config = ConfigDict(frozen=True)

    id: str
    timeline_in: float = Field(ge=0.0)
    timeline_out: float = Field(ge=0.0)
    source_video_id: str
    source_scene_id: str
    source_in: float = Field(ge=0.0)
    source_out: float = Field(ge=0.0)
    degraded: bool = False
    degraded_reason: Optional[str] = None
    repeated: bool = False
    # Bounds of the source scene, kept so later edits can enforce containment
    scene_start: Optional[float] = Field(default=None, ge=0.0)
    scene_end: Optional[float] = Field(default=None, ge=0.0)
    # End of the usable source footage (video extent)
    source_limit: Optional[float] = Field(default=None, ge=0.0)
    # Seconds the source cannot cover; only degraded clips are truncated
    source_shortfall: float = Field(ge=0.0, default=0.0)

    @model_validator(mode="after")
    def duration_preserved(self) -> "ClipAssignment":
        if self.timeline_out <= self.timeline_in:
            raise ValueError(f"clip {self.id}: timeline_out must be > timeline_in")
        covered = self.source_out - self.source_in + self.source_shortfall
        if abs(covered - self.duration) > TIME_EPSILON:
            raise ValueError(f"clip {self.id}: source and timeline durations differ")
        if self.source_shortfall > TIME_EPSILON and not self.degraded:
            raise ValueError(f"clip {self.id}: only degraded clips may be truncated")
        if not self.degraded and self.scene_start is not None and self.scene_end is not None:
            if self.source_in < self.scene_start - TIME_EPSILON or self.source_out > self.scene_end + TIME_EPSILON:
                raise ValueError(f"clip {self.id}: source window leaves scene {self.source_scene_id}")
        if self.source_limit is not None and self.source_out > self.source_limit + TIME_EPSILON:
            raise ValueError(f"clip {self.id}: source window runs past the end of the video")
        return self

    @property
    def duration(self) -> float:
        return self.timeline_out - self.timeline_in


class Transition(BaseModel):
    """Non-cut transition overlapping two adjacent clips around a cut"""
    model_config = ConfigDict(frozen=True)

    id: str
    type: TransitionType
    duration: float = Field(ge=0.0)
    outgoing_clip_id: str
    incoming_clip_id: str
    center_point: float = Field(ge=0.0)


class EditDecisionList(BaseModel):
    """Aggregate edit plan: clips, transitions and cut points"""
    model_config = ConfigDict(frozen=True)

    clips: List[ClipAssignment] = Field(default_factory=list)
    transitions: List[Transition] = Field(default_factory=list)
    cut_points: List[CutPoint] = Field(default_factory=list)
    frame_rate: float = Field(gt=0.0, default=30.0)
    duration: float = Field(ge=0.0, default=0.0)

    @model_validator(mode="after")
    def check_invariants(self) -> "EditDecisionList":
        for prev, cur in zip(self.clips, self.clips[1:]):
            if abs(cur.timeline_in - prev.timeline_out) > TIME_EPSILON:
                raise ValueError(f"clips {prev.id} and {cur.id} are not contiguous")
        for prev, cur in zip(self.cut_points, self.cut_points[1:]):
            if cur.time <= prev.time:
                raise ValueError("cut points must be strictly increasing")
        if self.clips and len(self.transitions) > len(self.clips) - 1:
            raise ValueError("more transitions than clip junctions")
        position = {clip.id: i for i, clip in enumerate(self.clips)}
        for transition in self.transitions:
            out_idx = position.get(transition.outgoing_clip_id)
            in_idx = position.get(transition.incoming_clip_id)
            if out_idx is None or in_idx is None or in_idx != out_idx + 1:
                raise ValueError(f"transition {transition.id} does not join adjacent clips")
        return self

    def clip_by_id(self, clip_id: str) -> Optional[ClipAssignment]:
        return next((c for c in self.clips if c.id == clip_id), None)


class TimelinePoint(BaseModel):
    """Flat beat/cut event for timeline visualization"""
    model_config = ConfigDict(frozen=True)

    time: float
    type: Literal["beat", "scene", "cut"]
    source_id: Optional[str] = None
    energy: Optional[float] = None


class EditIssue(BaseModel):
    """Detected editing issue or degradation"""
    model_config = ConfigDict(frozen=True)

    issue_id: str
    severity: IssueSeverity
    category: str
    stage: str
    message: str
    time: Optional[float] = None
    clip_id: Optional[str] = None


class EditStats(BaseModel):
    """Summary statistics of a generated edit"""
    model_config = ConfigDict(frozen=True)

    total_cuts: int = Field(ge=0)
    average_scene_duration: float = Field(ge=0.0)
    transition_type_counts: Dict[str, int] = Field(default_factory=dict)
    beat_alignment_score: float = Field(ge=0.0, le=1.0)
    rhythm_pattern: RhythmPattern = RhythmPattern.CONSTANT
    clip_duration_variance: float = Field(ge=0.0, default=0.0)
    cuts_per_minute: float = Field(ge=0.0, default=0.0)
    degraded_clips: int = Field(ge=0, default=0)
    repeated_clips: int = Field(ge=0, default=0)


class EditDecisionResult(BaseModel):
    """Complete output of one engine invocation"""
    model_config = ConfigDict(frozen=True)

    edl: EditDecisionList
    timeline: List[TimelinePoint] = Field(default_factory=list)
    stats: EditStats
    issues: List[EditIssue] = Field(default_factory=list)
    fingerprint: str = ""
    seed: int = 0


# =============================================================================
# SECTION 5: WORKING RECORDS (stage-to-stage, mutable)
# =============================================================================

@dataclass(frozen=True)
class TimelineEvent:
    """Merged beat / scene-boundary event with provenance"""
    time: float
    type: EventType
    source_id: Optional[str] = None
    confidence: float = 1.0


@dataclass(frozen=True)
class SceneCandidate:
    """A scored scene considered for one interval"""
    video_id: str
    scene: Scene
    score: float


@dataclass
class SceneMatch:
    """Clip matcher verdict for one interval"""
    video_id: str
    scene: Scene
    score: float
    degraded: bool = False
    degraded_reason: Optional[str] = None
    alternatives: List[SceneCandidate] = field(default_factory=list)


@dataclass
class EditDecision:
    """One interval of the plan while the optimizer may still reshape it"""
    index: int
    start_time: float
    duration: float
    video_id: str
    scene: Scene
    source_in: float
    origin: CutOrigin
    energy: float = 0.5
    importance: float = 0.5
    on_beat: bool = False
    segment_type: Optional[SegmentType] = None
    transition_type: TransitionType = TransitionType.CUT
    degraded: bool = False
    degraded_reason: Optional[str] = None
    repeated: bool = False
    alternatives: List[SceneCandidate] = field(default_factory=list)
    source_limit: Optional[float] = None

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration

    @property
    def scene_id(self) -> str:
        return self.scene.id

    @property
    def source_out(self) -> float:
        return self.source_in + self.duration


@dataclass
class IssueLog:
    """Collects EditIssues across stages with sequential ids"""
    issues: List[EditIssue] = field(default_factory=list)

    def add(
        self,
        severity: IssueSeverity,
        category: str,
        stage: str,
        message: str,
        time: Optional[float] = None,
        clip_id: Optional[str] = None,
    ) -> EditIssue:
        issue = EditIssue(
            issue_id=f"issue_{len(self.issues):04d}",
            severity=severity,
            category=category,
            stage=stage,
            message=message,
            time=time,
            clip_id=clip_id,
        )
        self.issues.append(issue)
        return issue

    def __len__(self) -> int:
        return len(self.issues)
