"""
Core data models for launchkit.

Records are plain dataclasses mutated in place by the tracker; enums are
str-valued so they serialize to the same strings the document store keeps.
Input contexts for the recommendation engine are pydantic models so that
malformed caller input is rejected in one place.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Set, Union

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class Phase(str, Enum):
    VALIDATION = "validation"
    DEFINITION = "definition"
    TECHNICAL = "technical"
    MARKETING = "marketing"
    OPERATIONS = "operations"
    FINANCIAL = "financial"
    RISK = "risk"
    OPTIMIZATION = "optimization"

    @classmethod
    def coerce(cls, value: Union["Phase", str]) -> "Phase":
        """Return the Phase for a member or its string value.

        Raises:
            ValueError: value names no canonical phase.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            return cls(value.strip().lower())
        raise ValueError(f"Unknown phase: {value!r}")

    @property
    def display_name(self) -> str:
        return PHASE_DISPLAY_NAMES[self]


PHASE_ORDER = tuple(Phase)

PHASE_DISPLAY_NAMES = {
    Phase.VALIDATION: "Product Validation",
    Phase.DEFINITION: "Product Definition",
    Phase.TECHNICAL: "Technical Architecture",
    Phase.MARKETING: "Go-to-Market",
    Phase.OPERATIONS: "Operational Readiness",
    Phase.FINANCIAL: "Financial Planning",
    Phase.RISK: "Risk Management",
    Phase.OPTIMIZATION: "Post-Launch Optimization",
}


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)


class ProjectStage(str, Enum):
    CONCEPT = "concept"
    VALIDATION = "validation"
    DEVELOPMENT = "development"
    TESTING = "testing"
    LAUNCH = "launch"
    GROWTH = "growth"


class Priority(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


PRIORITY_RANK = {Priority.HIGH: 0, Priority.MEDIUM: 1, Priority.LOW: 2}


class RecommendationType(str, Enum):
    NEXT_STEP = "next-step"
    RESOURCE = "resource"
    RISK = "risk"
    OPTIMIZATION = "optimization"
    PERSONALIZED = "personalized"


class RiskCategory(str, Enum):
    TECHNICAL = "technical"
    MARKET = "market"
    FINANCIAL = "financial"
    OPERATIONAL = "operational"
    TIMELINE = "timeline"


class RiskRating(str, Enum):
    """Qualitative probability / impact judgement."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ResourceType(str, Enum):
    ARTICLE = "article"
    TOOL = "tool"
    TEMPLATE = "template"
    VIDEO = "video"
    BOOK = "book"


class Momentum(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


# ---------------------------------------------------------------------------
# Progress records
# ---------------------------------------------------------------------------

@dataclass
class StepProgress:
    """A single step inside a phase."""
    step_id: str
    status: StepStatus = StepStatus.NOT_STARTED
    data: Dict[str, Any] = field(default_factory=dict)
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None
    started_at: Optional[datetime] = None   # first time the step went in_progress

    def __post_init__(self):
        self.status = StepStatus(self.status)


@dataclass
class PhaseProgress:
    phase: Phase
    steps: List[StepProgress] = field(default_factory=list)
    completion_percentage: int = 0
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    def __post_init__(self):
        self.phase = Phase.coerce(self.phase)
        # With steps present the percentage is always derived from them
        if self.steps:
            done = sum(1 for step in self.steps if step.status.is_terminal)
            self.completion_percentage = round(100 * done / len(self.steps))

    def find_step(self, step_id: str) -> Optional[StepProgress]:
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None


@dataclass
class UserProgress:
    """Progress of one user through one project. Always holds all eight phases."""
    user_id: str
    project_id: str
    current_phase: Phase = Phase.VALIDATION
    phases: Dict[Phase, PhaseProgress] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def __post_init__(self):
        now = datetime.now()
        if self.created_at is None:
            self.created_at = now
        if self.updated_at is None:
            self.updated_at = now
        self.current_phase = Phase.coerce(self.current_phase)
        normalized: Dict[Phase, PhaseProgress] = {}
        for key, value in self.phases.items():
            normalized[Phase.coerce(key)] = value
        for phase in PHASE_ORDER:
            if phase not in normalized:
                normalized[phase] = PhaseProgress(phase=phase, started_at=self.created_at)
        self.phases = {phase: normalized[phase] for phase in PHASE_ORDER}

    def phase(self, phase: Union[Phase, str]) -> PhaseProgress:
        return self.phases[Phase.coerce(phase)]


@dataclass
class ProjectData:
    """Project description owned by the project-data store; read-only here."""
    id: str
    user_id: str
    name: str = ""
    description: str = ""
    industry: str = ""
    target_market: str = ""
    stage: Union[ProjectStage, str] = ProjectStage.CONCEPT
    data: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


# ---------------------------------------------------------------------------
# Engine outputs (value objects, never persisted)
# ---------------------------------------------------------------------------

@dataclass
class Recommendation:
    id: str
    title: str
    description: str
    priority: Priority
    phase: Phase
    category: str
    type: RecommendationType
    action_items: List[str] = field(default_factory=list)
    estimated_time: Optional[str] = None


@dataclass
class Risk:
    id: str
    title: str
    description: str
    category: RiskCategory
    probability: RiskRating
    impact: RiskRating
    priority: int
    mitigation: str
    status: str = "identified"


@dataclass
class RiskScore:
    probability: int
    impact: int
    score: int
    level: RiskLevel


@dataclass
class Resource:
    id: str
    title: str
    description: str
    type: ResourceType
    category: str
    tags: Set[str] = field(default_factory=set)
    relevance_score: float = 0.0
    url: Optional[str] = None


@dataclass
class BehaviorPattern:
    """Per-user statistics derived from progress snapshots."""
    user_id: str
    completion_rate: float = 0.0
    average_time_per_phase: Dict[Phase, float] = field(default_factory=dict)  # minutes
    common_stuck_points: List[str] = field(default_factory=list)
    preferred_resource_types: List[ResourceType] = field(default_factory=list)
    last_active_date: Optional[datetime] = None
    sessions_recorded: Dict[Phase, int] = field(default_factory=dict)


@dataclass
class ProgressCalculation:
    phase_completion: Dict[Phase, int]
    overall_completion: float
    total_steps: int
    completed_steps: int
    next_step: Optional[StepProgress]
    next_phase: Optional[Phase]


@dataclass
class ProgressSummary:
    progress: UserProgress
    calculation: ProgressCalculation
    recommendations: List[str]
    risks: List[str]


@dataclass
class ContentSuggestions:
    template_suggestions: List[str] = field(default_factory=list)
    framework_adjustments: List[str] = field(default_factory=list)
    content_ideas: List[str] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Engine input contexts
# ---------------------------------------------------------------------------

class _ContextModel(BaseModel):
    # Accept snake_case and camelCase keys; ignore anything else
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ProjectContext(_ContextModel):
    project_id: Optional[str] = None
    industry: str = ""
    stage: str = ""
    team_size: int = 1
    budget: float = 10000
    timeline: Optional[str] = None
    current_phase: Optional[str] = None


class ContentContext(_ContextModel):
    current_phase: Phase
    project_stage: str = ""
    industry: str = ""
    team_size: int = 1
    budget: float = 10000
    completed_steps: List[str] = []
    user_input: Dict[str, Any] = {}


# ---------------------------------------------------------------------------
# Serialization
# ---------------------------------------------------------------------------

def to_datetime(value: Any) -> Optional[datetime]:
    """Parse a stored timestamp into a naive local datetime.

    Accepts datetime, ISO-8601 strings, epoch seconds and {"seconds": n}
    timestamp mappings.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, (int, float)):
        dt = datetime.fromtimestamp(value)
    elif isinstance(value, dict) and "seconds" in value:
        dt = datetime.fromtimestamp(value["seconds"] + value.get("nanoseconds", 0) / 1e9)
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp: {value!r}")

    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).astimezone().replace(tzinfo=None)
    return dt


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _pick(d: Dict[str, Any], key: str, default: Any = None) -> Any:
    """Read a snake_case key, falling back to its camelCase form."""
    if key in d:
        return d[key]
    return d.get(to_camel(key), default)


def step_to_dict(step: StepProgress) -> Dict[str, Any]:
    return {
        "step_id": step.step_id,
        "status": step.status.value,
        "data": step.data,
        "completed_at": _iso(step.completed_at),
        "notes": step.notes,
        "started_at": _iso(step.started_at),
    }


def step_from_dict(d: Dict[str, Any]) -> StepProgress:
    return StepProgress(
        step_id=_pick(d, "step_id"),
        status=StepStatus(_pick(d, "status", StepStatus.NOT_STARTED.value)),
        data=_pick(d, "data") or {},
        completed_at=to_datetime(_pick(d, "completed_at")),
        notes=_pick(d, "notes"),
        started_at=to_datetime(_pick(d, "started_at")),
    )


def progress_to_dict(progress: UserProgress) -> Dict[str, Any]:
    return {
        "user_id": progress.user_id,
        "project_id": progress.project_id,
        "current_phase": progress.current_phase.value,
        "phases": {
            phase.value: {
                "phase": phase.value,
                "steps": [step_to_dict(s) for s in pp.steps],
                "completion_percentage": pp.completion_percentage,
                "started_at": _iso(pp.started_at),
                "completed_at": _iso(pp.completed_at),
            }
            for phase, pp in progress.phases.items()
        },
        "created_at": _iso(progress.created_at),
        "updated_at": _iso(progress.updated_at),
    }


def progress_from_dict(d: Dict[str, Any]) -> UserProgress:
    """Build a UserProgress from a stored document.

    Raises:
        KeyError / ValueError / TypeError: the document is malformed.
    """
    phases: Dict[Phase, PhaseProgress] = {}
    for key, raw in (_pick(d, "phases") or {}).items():
        phase = Phase.coerce(key)
        phases[phase] = PhaseProgress(
            phase=phase,
            steps=[step_from_dict(s) for s in _pick(raw, "steps") or []],
            completion_percentage=int(_pick(raw, "completion_percentage", 0) or 0),
            started_at=to_datetime(_pick(raw, "started_at")),
            completed_at=to_datetime(_pick(raw, "completed_at")),
        )
    user_id = _pick(d, "user_id")
    project_id = _pick(d, "project_id")
    if not user_id or not project_id:
        raise KeyError("user_id/project_id")
    return UserProgress(
        user_id=user_id,
        project_id=project_id,
        current_phase=Phase.coerce(_pick(d, "current_phase", Phase.VALIDATION.value)),
        phases=phases,
        created_at=to_datetime(_pick(d, "created_at")),
        updated_at=to_datetime(_pick(d, "updated_at")),
    )


def project_from_dict(d: Dict[str, Any]) -> ProjectData:
    stage = _pick(d, "stage", ProjectStage.CONCEPT.value)
    try:
        stage = ProjectStage(stage)
    except ValueError:
        pass
    return ProjectData(
        id=_pick(d, "id"),
        user_id=_pick(d, "user_id", ""),
        name=_pick(d, "name", ""),
        description=_pick(d, "description", ""),
        industry=_pick(d, "industry", ""),
        target_market=_pick(d, "target_market", ""),
        stage=stage,
        data=_pick(d, "data") or {},
        created_at=to_datetime(_pick(d, "created_at")),
        updated_at=to_datetime(_pick(d, "updated_at")),
    )


def recommendation_to_dict(rec: Recommendation) -> Dict[str, Any]:
    return {
        "id": rec.id,
        "title": rec.title,
        "description": rec.description,
        "priority": rec.priority.value,
        "phase": rec.phase.value,
        "category": rec.category,
        "type": rec.type.value,
        "action_items": list(rec.action_items),
        "estimated_time": rec.estimated_time,
    }


def risk_to_dict(risk: Risk) -> Dict[str, Any]:
    return {
        "id": risk.id,
        "title": risk.title,
        "description": risk.description,
        "category": risk.category.value,
        "probability": risk.probability.value,
        "impact": risk.impact.value,
        "priority": risk.priority,
        "mitigation": risk.mitigation,
        "status": risk.status,
    }


def resource_to_dict(resource: Resource) -> Dict[str, Any]:
    return {
        "id": resource.id,
        "title": resource.title,
        "description": resource.description,
        "type": resource.type.value,
        "category": resource.category,
        "tags": sorted(resource.tags),
        "relevance_score": resource.relevance_score,
        "url": resource.url,
    }
