"""
Recommendation engine for launchkit.

Turns a progress snapshot (plus optional project data) into next steps,
risks, resources, personalized nudges and content suggestions. Every public
entry point is total: malformed or missing input yields an empty result and
a log line, never an exception, because callers render whatever comes back.

Next-step, risk and personalization logic are lists of Rules evaluated
independently; the aggregate ordering is applied afterwards.
"""
import copy
import dataclasses
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError

from launchkit import catalog
from launchkit.behavior_store import BehaviorPatternStore, InMemoryBehaviorPatternStore
from launchkit.config_manager import SystemConfig, config as default_config
from launchkit.logger import get_logger
from launchkit.models import (
    PHASE_ORDER,
    PRIORITY_RANK,
    BehaviorPattern,
    ContentContext,
    ContentSuggestions,
    Phase,
    Priority,
    ProjectContext,
    ProjectData,
    Recommendation,
    RecommendationType,
    Resource,
    ResourceType,
    Risk,
    RiskCategory,
    RiskLevel,
    RiskRating,
    RiskScore,
    StepProgress,
    StepStatus,
    UserProgress,
    progress_from_dict,
    project_from_dict,
)
from launchkit.progress_calculator import ACTIONABLE_STATUSES, ProgressCalculator, following_phase
from launchkit.risk_scoring import (
    calculate_overall_risk_level,
    calculate_risk_score,
    prioritize_risks,
    priority_for,
)
from launchkit.rules import Rule, evaluate_rules

logger = get_logger("recommendation_engine")


def title_case(step_id: str) -> str:
    """'competitor-analysis' -> 'Competitor Analysis'."""
    return " ".join(word.capitalize() for word in re.split(r"[-_\s]+", step_id) if word)


def stored_completion(progress: UserProgress) -> Dict[Phase, int]:
    """Phase percentages as recorded on the snapshot, clamped to 0-100."""
    return {
        phase: max(0, min(100, int(progress.phases[phase].completion_percentage or 0)))
        for phase in PHASE_ORDER
    }


def sort_by_priority(recommendations: Iterable[Recommendation]) -> List[Recommendation]:
    return sorted(recommendations, key=lambda r: PRIORITY_RANK.get(Priority(r.priority), len(PRIORITY_RANK)))


def _as_progress(progress: Any) -> Optional[UserProgress]:
    if isinstance(progress, UserProgress):
        return progress
    if isinstance(progress, Mapping):
        return progress_from_dict(dict(progress))
    return None


def _as_project(project: Any) -> Optional[ProjectData]:
    if isinstance(project, ProjectData):
        return project
    if isinstance(project, Mapping):
        return project_from_dict(dict(project))
    return None


def _industry(project: Optional[ProjectData]) -> str:
    return (project.industry or "").strip().lower() if project is not None else ""


# ---------------------------------------------------------------------------
# Rule contexts
# ---------------------------------------------------------------------------

@dataclass
class ProgressView:
    """Everything a progress rule looks at, computed once per evaluation."""
    progress: UserProgress
    project: Optional[ProjectData]
    completion: Dict[Phase, int]
    overall: float
    config: SystemConfig
    now: datetime

    @property
    def current(self) -> Phase:
        return self.progress.current_phase

    @property
    def current_steps(self) -> List[StepProgress]:
        return self.progress.phases[self.current].steps

    def first_incomplete_step(self) -> Optional[StepProgress]:
        for step in self.current_steps:
            if step.status in ACTIONABLE_STATUSES:
                return step
        return None

    def days_since_update(self) -> Optional[float]:
        if self.progress.updated_at is None:
            return None
        return (self.now - self.progress.updated_at).total_seconds() / 86400


@dataclass
class PersonalView:
    progress: UserProgress
    project: Optional[ProjectData]
    pattern: BehaviorPattern
    is_new: bool
    config: SystemConfig

    def stuck_step(self) -> Optional[tuple]:
        """First in-progress step that is a recorded stuck point, with its phase."""
        for phase in PHASE_ORDER:
            for step in self.progress.phases[phase].steps:
                if step.status == StepStatus.IN_PROGRESS and step.step_id in self.pattern.common_stuck_points:
                    return phase, step
        return None


# ---------------------------------------------------------------------------
# Next-step rules
# ---------------------------------------------------------------------------

def _next_step(view: ProgressView) -> Recommendation:
    step = view.first_incomplete_step()
    title = title_case(step.step_id)
    return Recommendation(
        id=f"next-step-{step.step_id}",
        title=f"Complete {title}",
        description=f"{title} is the next open step in {view.current.display_name}",
        priority=Priority.HIGH,
        phase=view.current,
        category=view.current.value,
        type=RecommendationType.NEXT_STEP,
        action_items=[
            f"Review what {title} requires",
            f"Work through {title} and capture your findings",
            f"Mark {title} as completed",
        ],
        estimated_time="1-2 hours",
    )


def _start_phase(view: ProgressView) -> Recommendation:
    phase = view.current
    return Recommendation(
        id=f"start-{phase.value}",
        title=f"Start {phase.display_name}",
        description=f"Begin the {phase.display_name} phase of your launch plan",
        priority=Priority.HIGH,
        phase=phase,
        category=phase.value,
        type=RecommendationType.NEXT_STEP,
        action_items=[
            f"Read the {phase.display_name} overview",
            "Pick the first step to work on",
            "Set aside time this week to make progress",
        ],
        estimated_time="1-2 hours",
    )


def _phase_progression(view: ProgressView) -> Recommendation:
    nxt = following_phase(view.current)
    return Recommendation(
        id=f"phase-progression-{nxt.value}",
        title=f"Start {nxt.display_name} Phase",
        description=f"{view.current.display_name} is complete; move on to {nxt.display_name}",
        priority=Priority.HIGH,
        phase=nxt,
        category=nxt.value,
        type=RecommendationType.NEXT_STEP,
        action_items=[
            f"Review the outputs of {view.current.display_name}",
            f"Open the {nxt.display_name} phase",
            "Carry open questions forward as the first steps",
        ],
        estimated_time="3-5 hours",
    )


def _critical_phases(view: ProgressView) -> List[Phase]:
    mapping = view.config.INDUSTRY_CRITICAL_PHASES or {}
    phases = []
    for name in mapping.get(_industry(view.project), []):
        try:
            phases.append(Phase.coerce(name))
        except ValueError:
            logger.warning(f"Unknown critical phase {name!r} in config")
    return phases


def _critical_path_rule(phase: Phase) -> Rule:
    def applies(view: ProgressView) -> bool:
        return (
            view.project is not None
            and phase in _critical_phases(view)
            and view.completion[phase] < view.config.CRITICAL_PHASE_THRESHOLD
        )

    def build(view: ProgressView) -> Recommendation:
        industry = _industry(view.project)
        return Recommendation(
            id=f"critical-{phase.value}",
            title=f"Prioritize {phase.display_name}",
            description=(
                f"{phase.display_name} is critical for {industry} projects and is only "
                f"{view.completion[phase]}% complete"
            ),
            priority=Priority.HIGH,
            phase=phase,
            category=phase.value,
            type=RecommendationType.NEXT_STEP,
            action_items=[
                f"Schedule focused time for {phase.display_name}",
                f"Identify the riskiest open question in {phase.display_name}",
                "Ask an advisor with industry experience to review your plan",
            ],
            estimated_time="2-4 hours",
        )

    return Rule(f"critical-path:{phase.value}", applies, build)


def _milestone_rule(rec_id: str, title: str, low: float, high: Optional[float], priority: Priority) -> Rule:
    def applies(view: ProgressView) -> bool:
        if high is None:
            return view.overall >= low
        return low <= view.overall < high

    def build(view: ProgressView) -> Recommendation:
        return Recommendation(
            id=rec_id,
            title=title,
            description=f"You are {view.overall:.0f}% through your launch plan",
            priority=priority,
            phase=view.current,
            category="milestone",
            type=RecommendationType.OPTIMIZATION,
            action_items=[
                "Review what you have completed so far",
                "Share progress with your advisors or team",
                "Adjust the plan for the next stretch",
            ],
        )

    return Rule(f"milestone:{rec_id}", applies, build)


NEXT_STEP_RULES: List[Rule] = [
    Rule("next-step", lambda v: v.first_incomplete_step() is not None, _next_step),
    Rule("start-phase", lambda v: not v.current_steps and v.completion[v.current] < 100, _start_phase),
    Rule(
        "phase-progression",
        lambda v: v.completion[v.current] >= 100 and following_phase(v.current) is not None,
        _phase_progression,
    ),
    *[_critical_path_rule(phase) for phase in PHASE_ORDER],
    _milestone_rule("milestone-quarter", "Quarter Milestone Reached", 25, 50, Priority.LOW),
    _milestone_rule("milestone-half", "Halfway Milestone Reached", 50, 75, Priority.LOW),
    _milestone_rule("milestone-three-quarters", "Three-Quarter Milestone Reached", 75, 100, Priority.MEDIUM),
    _milestone_rule("milestone-complete", "Launch Plan Complete", 100, None, Priority.MEDIUM),
]


# ---------------------------------------------------------------------------
# Risk rules
# ---------------------------------------------------------------------------

def _risk(id, title, description, category, probability, impact, mitigation) -> Risk:
    return Risk(
        id=id,
        title=title,
        description=description,
        category=category,
        probability=probability,
        impact=impact,
        priority=priority_for(probability, impact),
        mitigation=mitigation,
    )


def _validation_risk(view: ProgressView) -> Risk:
    validation = view.completion[Phase.VALIDATION]
    return _risk(
        "insufficient-validation",
        "Insufficient Market Validation",
        (
            f"Validation is {validation}% complete while work has moved on to "
            f"{view.current.display_name}; insufficient market validation may lead "
            "to product-market fit issues"
        ),
        RiskCategory.MARKET,
        RiskRating.HIGH if validation < 50 else RiskRating.MEDIUM,
        RiskRating.HIGH,
        "Return to validation and confirm demand with target customers",
    )


def _technical_risk(view: ProgressView) -> Risk:
    return _risk(
        "technical-planning-lag",
        "Technical Planning Lag",
        (
            f"Technical planning is {view.completion[Phase.TECHNICAL]}% complete while "
            f"overall progress is {view.overall:.0f}%"
        ),
        RiskCategory.TECHNICAL,
        RiskRating.MEDIUM,
        RiskRating.HIGH,
        "Define the architecture and stack before committing to launch dates",
    )


def _financial_risk(view: ProgressView) -> Risk:
    financial = view.completion[Phase.FINANCIAL]
    return _risk(
        "financial-planning-lag",
        "Financial Planning Gap",
        (
            f"Financial planning is {financial}% complete while overall progress is "
            f"{view.overall:.0f}%"
        ),
        RiskCategory.FINANCIAL,
        RiskRating.HIGH if financial < 15 else RiskRating.MEDIUM,
        RiskRating.HIGH,
        "Build projections and a funding plan before launch spending starts",
    )


def _inactivity_risk(view: ProgressView) -> Risk:
    days = int(view.days_since_update())
    long_idle = days > 2 * view.config.INACTIVITY_DAYS
    return _risk(
        "project-inactivity",
        "Project Inactivity",
        f"The project has been inactive for {days} days",
        RiskCategory.TIMELINE,
        RiskRating.HIGH if long_idle else RiskRating.MEDIUM,
        RiskRating.MEDIUM,
        "Schedule regular working sessions and set a near-term milestone",
    )


def _is_inactive(view: ProgressView) -> bool:
    days = view.days_since_update()
    return days is not None and days > view.config.INACTIVITY_DAYS


RISK_RULES: List[Rule] = [
    Rule(
        "validation",
        lambda v: (
            v.completion[Phase.VALIDATION] < v.config.VALIDATION_RISK_THRESHOLD
            and PHASE_ORDER.index(v.current) > PHASE_ORDER.index(Phase.VALIDATION)
        ),
        _validation_risk,
    ),
    Rule(
        "technical-lag",
        lambda v: (
            v.completion[Phase.TECHNICAL] < v.config.TECHNICAL_LAG_THRESHOLD
            and v.overall > v.config.TECHNICAL_LAG_OVERALL
        ),
        _technical_risk,
    ),
    Rule(
        "financial-lag",
        lambda v: (
            v.completion[Phase.FINANCIAL] < v.config.FINANCIAL_LAG_THRESHOLD
            and v.overall > v.config.FINANCIAL_LAG_OVERALL
        ),
        _financial_risk,
    ),
    Rule("inactivity", _is_inactive, _inactivity_risk),
]


# ---------------------------------------------------------------------------
# Personalization rules
# ---------------------------------------------------------------------------

def _welcome(view: PersonalView) -> Recommendation:
    phase = view.progress.current_phase
    return Recommendation(
        id="first-time-welcome",
        title="Welcome to Your Launch Journey",
        description="Start with the essentials and build momentum one step at a time",
        priority=Priority.HIGH,
        phase=phase,
        category="onboarding",
        type=RecommendationType.PERSONALIZED,
        action_items=[
            "Skim the eight launch phases",
            f"Open {phase.display_name} and pick a first step",
            "Block out a regular weekly session",
        ],
    )


def _completion_boost(view: PersonalView) -> Recommendation:
    rate = view.pattern.completion_rate
    return Recommendation(
        id="completion-boost",
        title="Boost Your Completion Rate",
        description=f"You have finished {rate:.0%} of your steps; small wins add up quickly",
        priority=Priority.MEDIUM,
        phase=view.progress.current_phase,
        category="motivation",
        type=RecommendationType.PERSONALIZED,
        action_items=[
            "Pick the smallest open step and finish it today",
            "Skip steps that do not apply to your project",
            "Set a weekly target number of steps",
        ],
    )


def _stuck_help(view: PersonalView) -> Recommendation:
    phase, step = view.stuck_step()
    title = title_case(step.step_id)
    return Recommendation(
        id=f"stuck-help-{step.step_id}",
        title=f"Get Unstuck on {title}",
        description=f"{title} has been in progress for a while",
        priority=Priority.HIGH,
        phase=phase,
        category="support",
        type=RecommendationType.PERSONALIZED,
        action_items=[
            f"Break {title} into smaller tasks",
            "Look at the suggested resources for this phase",
            "Ask a peer or mentor for a quick review",
        ],
    )


def _resource_preference(view: PersonalView) -> Recommendation:
    preferred = view.pattern.preferred_resource_types[0]
    kind = ResourceType(preferred).value
    return Recommendation(
        id="resource-preference",
        title=f"More {kind.capitalize()} Resources for You",
        description=f"You tend to use {kind} resources; here are more for {view.progress.current_phase.display_name}",
        priority=Priority.LOW,
        phase=view.progress.current_phase,
        category="resources",
        type=RecommendationType.PERSONALIZED,
        action_items=[
            f"Browse {kind} resources for the current phase",
            "Bookmark the ones worth revisiting",
        ],
    )


PERSONAL_RULES: List[Rule] = [
    Rule("first-time-welcome", lambda v: v.is_new, _welcome),
    Rule("completion-boost", lambda v: v.pattern.completion_rate < v.config.LOW_COMPLETION_RATE, _completion_boost),
    Rule("stuck-help", lambda v: v.stuck_step() is not None, _stuck_help),
    Rule("resource-preference", lambda v: bool(v.pattern.preferred_resource_types), _resource_preference),
]


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class RecommendationEngine:
    """
    Rule-based recommendation engine.

    Usage:
        engine = RecommendationEngine()
        recs = engine.calculate_next_steps(progress, project)

    The only state is the injected BehaviorPatternStore.
    """

    def __init__(
        self,
        behavior_store: Optional[BehaviorPatternStore] = None,
        resources: Optional[Iterable[Resource]] = None,
        config: Optional[SystemConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config if config is not None else default_config
        self.behavior_store = behavior_store if behavior_store is not None else InMemoryBehaviorPatternStore()
        self.resources: List[Resource] = list(resources) if resources is not None else list(catalog.DEFAULT_RESOURCES)
        self.calculator = ProgressCalculator(self._config)
        self._clock = clock
        self.next_step_rules = list(NEXT_STEP_RULES)
        self.risk_rules = list(RISK_RULES)
        self.personal_rules = list(PERSONAL_RULES)

    def _view(self, progress: Any, project: Any = None) -> Optional[ProgressView]:
        progress = _as_progress(progress)
        if progress is None:
            return None
        completion = stored_completion(progress)
        return ProgressView(
            progress=progress,
            project=_as_project(project),
            completion=completion,
            overall=self.calculator.overall_completion(completion),
            config=self._config,
            now=self._clock(),
        )

    # ------------------------------------------------------------------
    # Next steps
    # ------------------------------------------------------------------
    def calculate_next_steps(self, progress: Any, project_data: Any = None) -> List[Recommendation]:
        """All matching next-step rules, high priority first."""
        try:
            view = self._view(progress, project_data)
            if view is None:
                return []
            return sort_by_priority(evaluate_rules(self.next_step_rules, view))
        except Exception:
            logger.exception("calculate_next_steps failed")
            return []

    def get_next_steps(self, progress: Any) -> List[Recommendation]:
        return self.calculate_next_steps(progress)

    # ------------------------------------------------------------------
    # Risks
    # ------------------------------------------------------------------
    def identify_risks(self, project_data: Any, progress: Any) -> List[Risk]:
        try:
            if project_data is None:
                return []
            view = self._view(progress, project_data)
            if view is None or view.project is None:
                return []
            risks = evaluate_rules(self.risk_rules, view)
            return sorted(risks, key=lambda r: r.priority, reverse=True)
        except Exception:
            logger.exception("identify_risks failed")
            return []

    def calculate_risk_score(self, probability: Any, impact: Any) -> Optional[RiskScore]:
        """Score lookup; None for ratings other than low / medium / high."""
        try:
            return calculate_risk_score(probability, impact)
        except ValueError:
            logger.warning(f"Cannot score risk with probability={probability!r} impact={impact!r}")
            return None

    def calculate_overall_risk_level(self, risks: Optional[Iterable[Risk]]) -> RiskLevel:
        return calculate_overall_risk_level(risks or [])

    def prioritize_risks(self, risks: Optional[Iterable[Risk]]) -> List[Risk]:
        return prioritize_risks(risks or [])

    # ------------------------------------------------------------------
    # Resources
    # ------------------------------------------------------------------
    def _context_tags(self, context: ProjectContext, progress: Optional[UserProgress]) -> set:
        tags = {catalog.GENERAL_TAG, context.industry.strip().lower(), context.stage.strip().lower()}
        phase = context.current_phase or (progress.current_phase.value if progress is not None else None)
        if phase:
            tags.add(str(phase).strip().lower())
        if context.budget < self._config.LOW_BUDGET_THRESHOLD:
            tags.add(catalog.BUDGET_TAG)
        if context.team_size == 1:
            tags.add(catalog.SOLO_TAG)
        tags.discard("")
        return tags

    def suggest_resources(
        self,
        context: Any,
        progress: Any = None,
        limit: Optional[int] = None,
    ) -> List[Resource]:
        """
        Catalog resources sharing a tag with the project context.

        Args:
            context: ProjectContext or a dict with the same (snake or camel) keys
            progress: optional snapshot; its current phase is used when the
                context names none
            limit: maximum number of resources to return
        """
        try:
            if context is None:
                return []
            if not isinstance(context, ProjectContext):
                context = ProjectContext.model_validate(dict(context))
            tags = self._context_tags(context, _as_progress(progress))

            seen = set()
            matched = []
            for resource in self.resources:
                if resource.id in seen or not (resource.tags & tags):
                    continue
                seen.add(resource.id)
                matched.append(dataclasses.replace(resource, tags=set(resource.tags)))

            matched.sort(key=lambda r: r.relevance_score, reverse=True)
            if limit is not None:
                matched = matched[:max(0, int(limit))]
            return matched
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"suggest_resources: unusable context: {e}")
            return []
        except Exception:
            logger.exception("suggest_resources failed")
            return []

    # ------------------------------------------------------------------
    # Behavior and personalization
    # ------------------------------------------------------------------
    def _observe(self, pattern: BehaviorPattern, progress: UserProgress) -> None:
        steps = [step for phase in PHASE_ORDER for step in progress.phases[phase].steps]
        done = sum(1 for step in steps if step.status.is_terminal)
        pattern.completion_rate = done / len(steps) if steps else 0.0

        now = self._clock()
        threshold = self._config.STUCK_STEP_DAYS * 86400
        for step in steps:
            if step.status != StepStatus.IN_PROGRESS or step.started_at is None:
                continue
            if (now - step.started_at).total_seconds() > threshold and step.step_id not in pattern.common_stuck_points:
                pattern.common_stuck_points.append(step.step_id)

    @staticmethod
    def _phase_of_step(progress: UserProgress, step_id: str) -> Optional[Phase]:
        for phase in PHASE_ORDER:
            if progress.phases[phase].find_step(step_id) is not None:
                return phase
        return None

    def update_user_behavior_pattern(
        self,
        user_id: str,
        progress: Any,
        step_id: Optional[str] = None,
        time_spent_ms: Optional[float] = None,
    ) -> Optional[BehaviorPattern]:
        """
        Fold a progress snapshot into the user's pattern and store it.

        Time spent is averaged per phase in minutes; the phase is the one
        holding `step_id`, else the snapshot's current phase.
        """
        try:
            progress = _as_progress(progress)
            if not user_id or progress is None:
                return None
            pattern = self.behavior_store.get(user_id) or BehaviorPattern(user_id=user_id)
            self._observe(pattern, progress)

            if time_spent_ms is not None and time_spent_ms >= 0:
                phase = self._phase_of_step(progress, step_id) if step_id else None
                if phase is None:
                    phase = progress.current_phase
                if phase is not None:
                    minutes = time_spent_ms / 60000
                    sessions = pattern.sessions_recorded.get(phase, 0)
                    average = pattern.average_time_per_phase.get(phase, 0.0)
                    pattern.average_time_per_phase[phase] = (average * sessions + minutes) / (sessions + 1)
                    pattern.sessions_recorded[phase] = sessions + 1

            pattern.last_active_date = self._clock()
            self.behavior_store.save(pattern)
            return copy.deepcopy(pattern)
        except Exception:
            logger.exception(f"update_user_behavior_pattern failed for {user_id}")
            return None

    def record_resource_interaction(self, user_id: str, resource_type: Union[ResourceType, str]) -> None:
        """Move `resource_type` to the front of the user's preferred types."""
        try:
            kind = ResourceType(resource_type)
        except ValueError:
            logger.warning(f"Unknown resource type {resource_type!r}")
            return
        pattern = self.behavior_store.get(user_id) or BehaviorPattern(user_id=user_id)
        pattern.preferred_resource_types = [kind] + [t for t in pattern.preferred_resource_types if t != kind]
        self.behavior_store.save(pattern)

    def generate_personalized_recommendations(
        self,
        user_id: str,
        progress: Any,
        project_data: Any = None,
    ) -> List[Recommendation]:
        try:
            progress = _as_progress(progress)
            if not user_id or progress is None:
                return []
            is_new = not self.behavior_store.exists(user_id)
            if is_new:
                pattern = BehaviorPattern(user_id=user_id, last_active_date=self._clock())
                self._observe(pattern, progress)
                self.behavior_store.save(pattern)
            else:
                pattern = self.behavior_store.get(user_id)

            view = PersonalView(
                progress=progress,
                project=_as_project(project_data),
                pattern=pattern,
                is_new=is_new,
                config=self._config,
            )
            return sort_by_priority(evaluate_rules(self.personal_rules, view))
        except Exception:
            logger.exception(f"generate_personalized_recommendations failed for {user_id}")
            return []

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------
    @staticmethod
    def _preview(value: Any, width: int = 60) -> str:
        if isinstance(value, (list, tuple, set)):
            text = ", ".join(str(v) for v in value)
        elif isinstance(value, Mapping):
            text = ", ".join(str(k) for k in value)
        else:
            text = str(value)
        return text if len(text) <= width else text[: width - 3] + "..."

    def suggest_content(self, context: Any) -> ContentSuggestions:
        """Templates, framework adjustments and content ideas for a phase."""
        try:
            if context is None:
                return ContentSuggestions()
            if not isinstance(context, ContentContext):
                context = ContentContext.model_validate(dict(context))
        except (ValidationError, TypeError, ValueError) as e:
            logger.warning(f"suggest_content: unusable context: {e}")
            return ContentSuggestions()

        industry = context.industry.strip().lower()
        phase = context.current_phase

        adjustments = catalog.industry_adjustments(industry, phase)
        if context.budget < self._config.LOW_BUDGET_THRESHOLD:
            adjustments.extend(catalog.LOW_BUDGET_ADJUSTMENTS)
        if context.team_size == 1:
            adjustments.extend(catalog.SOLO_ADJUSTMENTS)

        ideas = []
        for key, value in context.user_input.items():
            if value in (None, "", [], {}):
                continue
            ideas.append(f"Develop your {key} further: {self._preview(value)}")
        for step_id in context.completed_steps:
            ideas.append(f"Reuse insights from {title_case(step_id)} in {phase.display_name}")

        return ContentSuggestions(
            template_suggestions=catalog.templates_for(phase, industry),
            framework_adjustments=adjustments,
            content_ideas=ideas,
        )

    # ------------------------------------------------------------------
    # Scoring
    # ------------------------------------------------------------------
    def calculate_recommendation_score(self, recommendation: Recommendation, context: Any) -> int:
        """
        Relevance score 0-100: base 50, +30 high / +15 medium priority,
        +20 when in the current phase, +25 for an urgent area.
        """
        try:
            if isinstance(context, Mapping):
                current = context.get("current_phase", context.get("currentPhase"))
                urgent = context.get("urgent_areas", context.get("urgentAreas")) or []
            else:
                current = getattr(context, "current_phase", None)
                urgent = getattr(context, "urgent_areas", None) or []

            score = 50
            priority = Priority(recommendation.priority)
            if priority == Priority.HIGH:
                score += 30
            elif priority == Priority.MEDIUM:
                score += 15

            phase = Phase.coerce(recommendation.phase)
            if current is not None and Phase.coerce(current) == phase:
                score += 20
            if phase in {Phase.coerce(p) for p in urgent}:
                score += 25
            return min(score, 100)
        except (ValueError, AttributeError, TypeError) as e:
            logger.warning(f"calculate_recommendation_score: {e}")
            return 0
