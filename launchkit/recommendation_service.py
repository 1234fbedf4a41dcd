"""
Recommendation service for launchkit.

Joins the progress tracker, the project-data store and the recommendation
engine into the views a UI asks for: full recommendations, a single phase,
risk analysis, content help and progress insights.

Missing progress or project data is fatal for a view and raised as
ValueError with a fixed message callers can branch on.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from launchkit.config_manager import SystemConfig, config as default_config
from launchkit.logger import get_logger
from launchkit.models import (
    ContentContext,
    ContentSuggestions,
    Momentum,
    Phase,
    Priority,
    ProjectContext,
    ProjectData,
    ProjectStage,
    Recommendation,
    RecommendationType,
    Resource,
    Risk,
    RiskCategory,
    RiskLevel,
    StepStatus,
    UserProgress,
)
from launchkit.persistence import ProjectDataStore
from launchkit.progress_tracker import ProgressTracker
from launchkit.recommendation_engine import RecommendationEngine
from launchkit.risk_scoring import get_mitigation_actions

logger = get_logger("recommendation_service")

PROGRESS_OR_PROJECT_MISSING = "Progress or project data not found"
PROGRESS_MISSING = "Progress not found"
PROJECT_MISSING = "Project data not found"

STAGE_TIMELINES = {
    ProjectStage.CONCEPT.value: "1-2 months",
    ProjectStage.VALIDATION.value: "2-3 months",
    ProjectStage.DEVELOPMENT.value: "3-6 months",
    ProjectStage.TESTING.value: "1-2 months",
    ProjectStage.LAUNCH.value: "1 month",
    ProjectStage.GROWTH.value: "ongoing",
}
DEFAULT_TIMELINE = "3-6 months"

RISK_CATEGORY_PHASE = {
    RiskCategory.TECHNICAL: Phase.TECHNICAL,
    RiskCategory.MARKET: Phase.VALIDATION,
    RiskCategory.FINANCIAL: Phase.FINANCIAL,
    RiskCategory.OPERATIONAL: Phase.OPERATIONS,
}


@dataclass
class RecommendationBundle:
    next_steps: List[Recommendation]
    resources: List[Resource]
    risks: List[Risk]
    personalized_recommendations: List[Recommendation]


@dataclass
class PhaseRecommendations:
    recommendations: List[Recommendation]
    resources: List[Resource]
    content_suggestions: ContentSuggestions


@dataclass
class RiskSummary:
    total_risks: int
    high_priority_risks: int
    critical_categories: List[RiskCategory]
    overall_risk_level: RiskLevel


@dataclass
class RiskAnalysis:
    risks: List[Risk]
    risk_summary: RiskSummary
    mitigation_recommendations: List[Recommendation]


@dataclass
class ContentSuggestionResult:
    template_suggestions: List[str] = field(default_factory=list)
    framework_adjustments: List[str] = field(default_factory=list)
    content_ideas: List[str] = field(default_factory=list)
    related_resources: List[Resource] = field(default_factory=list)


@dataclass
class InsightSummary:
    overall_completion: float
    current_phase: Phase
    completed_phases: int
    stuck_areas: List[Phase]
    momentum: Momentum


@dataclass
class ProgressInsights:
    progress_summary: InsightSummary
    insights: List[str]
    recommendations: List[Recommendation]


def _dig(data: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(data, Mapping):
            return None
        data = data.get(key)
    return data


def _stage_value(project: ProjectData) -> str:
    return str(getattr(project.stage, "value", project.stage) or "")


class RecommendationService:
    """
    Orchestrates tracker, project store and engine.

    Usage:
        service = RecommendationService(tracker, store)
        bundle = await service.get_recommendations("u1", "p1")
    """

    def __init__(
        self,
        tracker: ProgressTracker,
        project_store: ProjectDataStore,
        engine: Optional[RecommendationEngine] = None,
        config: Optional[SystemConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self._config = config if config is not None else default_config
        self.tracker = tracker
        self.project_store = project_store
        self.engine = engine if engine is not None else RecommendationEngine(config=self._config, clock=clock)
        self._clock = clock

    # ------------------------------------------------------------------
    # Project context estimation
    # ------------------------------------------------------------------
    def estimate_team_size(self, project: ProjectData) -> int:
        structure = _dig(project.data, "operations", "team", "structure")
        if isinstance(structure, (list, tuple)) and structure:
            return len(structure)
        return self._config.DEFAULT_TEAM_SIZE

    def estimate_budget(self, project: ProjectData) -> float:
        requirements = _dig(project.data, "financial", "funding", "requirements")
        if isinstance(requirements, (int, float)) and not isinstance(requirements, bool) and requirements:
            return float(requirements)
        return float(self._config.DEFAULT_BUDGET)

    @staticmethod
    def estimate_timeline(project: ProjectData) -> str:
        return STAGE_TIMELINES.get(_stage_value(project), DEFAULT_TIMELINE)

    def build_project_context(self, project: ProjectData, current_phase: Optional[Phase] = None) -> ProjectContext:
        return ProjectContext(
            project_id=project.id,
            industry=project.industry or "",
            stage=_stage_value(project),
            team_size=self.estimate_team_size(project),
            budget=self.estimate_budget(project),
            timeline=self.estimate_timeline(project),
            current_phase=current_phase.value if current_phase else None,
        )

    def _content_context(
        self,
        project: ProjectData,
        progress: UserProgress,
        phase: Phase,
        user_input: Mapping[str, Any],
    ) -> ContentContext:
        completed = [
            step.step_id for step in progress.phases[phase].steps if step.status == StepStatus.COMPLETED
        ]
        return ContentContext(
            current_phase=phase,
            project_stage=_stage_value(project),
            industry=project.industry or "",
            team_size=self.estimate_team_size(project),
            budget=self.estimate_budget(project),
            completed_steps=completed,
            user_input=dict(user_input or {}),
        )

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    async def _load(self, user_id: str, project_id: str) -> Tuple[Optional[UserProgress], Optional[ProjectData]]:
        progress, project = await asyncio.gather(
            self.tracker.get_progress(user_id, project_id),
            self.project_store.get_project_data(project_id),
        )
        return progress, project

    async def _load_both(self, user_id: str, project_id: str) -> Tuple[UserProgress, ProjectData]:
        progress, project = await self._load(user_id, project_id)
        if progress is None or project is None:
            logger.error(f"{PROGRESS_OR_PROJECT_MISSING}: user={user_id} project={project_id}")
            raise ValueError(PROGRESS_OR_PROJECT_MISSING)
        return progress, project

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------
    async def get_recommendations(self, user_id: str, project_id: str) -> RecommendationBundle:
        progress, project = await self._load_both(user_id, project_id)
        context = self.build_project_context(project)
        return RecommendationBundle(
            next_steps=self.engine.calculate_next_steps(progress, project),
            resources=self.engine.suggest_resources(context, progress),
            risks=self.engine.identify_risks(project, progress),
            personalized_recommendations=self.engine.generate_personalized_recommendations(
                user_id, progress, project
            ),
        )

    async def get_phase_recommendations(
        self,
        user_id: str,
        project_id: str,
        phase: Union[Phase, str],
    ) -> PhaseRecommendations:
        phase = Phase.coerce(phase)
        progress, project = await self._load_both(user_id, project_id)

        recommendations = [
            rec for rec in self.engine.calculate_next_steps(progress, project)
            if rec.category == phase.value
        ]
        resources = [
            r for r in self.engine.suggest_resources(self.build_project_context(project), progress)
            if phase.value in r.tags
        ]
        phase_data = project.data.get(phase.value) if isinstance(project.data, Mapping) else None
        if not isinstance(phase_data, Mapping):
            phase_data = {}
        content = self.engine.suggest_content(self._content_context(project, progress, phase, phase_data))
        return PhaseRecommendations(
            recommendations=recommendations,
            resources=resources,
            content_suggestions=content,
        )

    def _mitigation(self, risk: Risk, progress: UserProgress) -> Recommendation:
        category = RiskCategory(risk.category)
        return Recommendation(
            id=f"mitigation-{risk.id}",
            title=f"Mitigate {risk.title}",
            description=f"Address the {category.value} risk: {risk.description}",
            priority=Priority.HIGH if risk.priority >= 3 else Priority.MEDIUM,
            phase=RISK_CATEGORY_PHASE.get(category, progress.current_phase),
            category=category.value,
            type=RecommendationType.RISK,
            action_items=get_mitigation_actions(risk),
        )

    async def get_risk_analysis(self, user_id: str, project_id: str) -> RiskAnalysis:
        progress, project = await self._load_both(user_id, project_id)
        risks = self.engine.identify_risks(project, progress)
        threshold = self._config.MITIGATION_PRIORITY_THRESHOLD

        critical_categories: List[RiskCategory] = []
        for risk in risks:
            if risk.priority >= threshold and risk.category not in critical_categories:
                critical_categories.append(risk.category)

        summary = RiskSummary(
            total_risks=len(risks),
            high_priority_risks=sum(1 for r in risks if r.priority >= 3),
            critical_categories=critical_categories,
            overall_risk_level=self.engine.calculate_overall_risk_level(risks),
        )
        return RiskAnalysis(
            risks=risks,
            risk_summary=summary,
            mitigation_recommendations=[
                self._mitigation(r, progress) for r in risks if r.priority >= threshold
            ],
        )

    async def update_user_activity(
        self,
        user_id: str,
        project_id: str,
        step_id: Optional[str] = None,
        time_spent_ms: Optional[float] = None,
    ) -> List[Recommendation]:
        progress, project = await self._load(user_id, project_id)
        if progress is None:
            raise ValueError(PROGRESS_MISSING)
        if project is None:
            raise ValueError(PROJECT_MISSING)

        self.engine.update_user_behavior_pattern(user_id, progress, step_id, time_spent_ms)
        return self.engine.generate_personalized_recommendations(user_id, progress, project)

    @staticmethod
    def _input_tokens(user_input: Mapping[str, Any]) -> List[str]:
        tokens = []
        for key, value in user_input.items():
            tokens.append(str(key).lower())
            values = value if isinstance(value, (list, tuple, set)) else [value]
            tokens.extend(str(v).lower() for v in values if isinstance(v, str))
        return tokens

    async def get_content_suggestions(
        self,
        user_id: str,
        project_id: str,
        phase: Union[Phase, str],
        user_input: Optional[Mapping[str, Any]] = None,
    ) -> ContentSuggestionResult:
        phase = Phase.coerce(phase)
        user_input = dict(user_input or {})
        progress, project = await self._load_both(user_id, project_id)

        content = self.engine.suggest_content(self._content_context(project, progress, phase, user_input))
        tokens = self._input_tokens(user_input)
        related = [
            r for r in self.engine.suggest_resources(self.build_project_context(project), progress)
            if phase.value in r.tags or any(tag in token for tag in r.tags for token in tokens)
        ]
        return ContentSuggestionResult(
            template_suggestions=content.template_suggestions,
            framework_adjustments=content.framework_adjustments,
            content_ideas=content.content_ideas,
            related_resources=related,
        )

    def _insights(self, progress: UserProgress, phase_completion: Dict[Phase, int], overall: float) -> List[str]:
        insights = []
        if overall < 25:
            insights.append("You're in the early stages - focus on validation to build a strong foundation")
        elif overall < 50:
            insights.append("Good progress! Make sure to define your product clearly before moving forward")
        elif overall < 75:
            insights.append("You're making solid progress - start thinking about go-to-market strategy")
        else:
            insights.append("Excellent progress! You're almost ready for launch")

        if phase_completion.get(progress.current_phase, 0) < self._config.LOW_PHASE_COMPLETION:
            insights.append(
                f"Focus on completing the {progress.current_phase.value} phase - it's critical for your success"
            )

        if progress.updated_at is not None:
            days = (self._clock() - progress.updated_at).total_seconds() / 86400
            if days > self._config.MOMENTUM_MEDIUM_DAYS:
                insights.append("Consider setting aside regular time for project work to maintain momentum")
            elif days < self._config.MOMENTUM_HIGH_DAYS:
                insights.append("Great momentum! Keep up the consistent progress")
        return insights

    async def get_progress_insights(self, user_id: str, project_id: str) -> ProgressInsights:
        progress, project = await self._load(user_id, project_id)
        if progress is None:
            raise ValueError(PROGRESS_MISSING)

        calculation = self.tracker.calculate_progress(progress)
        overall = calculation.overall_completion
        calculator = self.tracker.calculator
        summary = InsightSummary(
            overall_completion=overall,
            current_phase=progress.current_phase,
            completed_phases=sum(1 for v in calculation.phase_completion.values() if v == 100),
            stuck_areas=calculator.find_stuck_areas(calculation.phase_completion, overall),
            momentum=calculator.calculate_momentum(progress.updated_at, self._clock()),
        )
        recommendations = self.engine.calculate_next_steps(progress, project)
        return ProgressInsights(
            progress_summary=summary,
            insights=self._insights(progress, calculation.phase_completion, overall),
            recommendations=recommendations[: self._config.MAX_INSIGHT_RECOMMENDATIONS],
        )
