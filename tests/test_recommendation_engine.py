from datetime import timedelta

from helpers import NOW, phase, progress, sample_progress, sample_project, set_completion, step

from launchkit.behavior_store import InMemoryBehaviorPatternStore
from launchkit.models import (
    Phase,
    PhaseProgress,
    Priority,
    ProjectContext,
    Recommendation,
    RecommendationType,
    ResourceType,
    RiskCategory,
    RiskLevel,
    StepProgress,
    StepStatus,
    UserProgress,
)
from launchkit.recommendation_engine import (
    NEXT_STEP_RULES,
    RISK_RULES,
    ProgressView,
    RecommendationEngine,
    title_case,
)
from launchkit.config_manager import SystemConfig
from launchkit.rules import evaluate_rule

CONTEXT = {
    "project_id": "test-project",
    "industry": "saas",
    "stage": "validation",
    "team_size": 2,
    "budget": 50000,
    "timeline": "6 months",
}


def _engine(**kwargs):
    return RecommendationEngine(behavior_store=InMemoryBehaviorPatternStore(), clock=lambda: NOW, **kwargs)


def _ids(items):
    return [item.id for item in items]


# ---------------------------------------------------------------------------
# Next steps
# ---------------------------------------------------------------------------

def test_next_step_for_first_incomplete_step():
    recs = _engine().calculate_next_steps(sample_progress(), sample_project())

    rec = next(r for r in recs if r.id == "next-step-competitor-analysis")
    assert rec.type == RecommendationType.NEXT_STEP
    assert "Competitor Analysis" in rec.title
    assert rec.priority == Priority.HIGH
    assert rec.category == "validation"
    assert len(rec.action_items) == 3


def test_empty_progress_starts_validation():
    recs = _engine().calculate_next_steps(progress())

    assert len(recs) == 1
    assert recs[0].id == "start-validation"
    assert recs[0].priority == Priority.HIGH
    assert recs[0].phase == Phase.VALIDATION


def test_phase_progression_names_next_phase():
    p = progress(phases={"validation": phase("validation", [step("a", "completed"), step("b", "completed")])})

    recs = _engine().calculate_next_steps(p)

    rec = next(r for r in recs if "phase-progression" in r.id)
    assert rec.id == "phase-progression-definition"
    assert "Definition Phase" in rec.title


def test_critical_path_for_industry_phases():
    p = set_completion(sample_progress(), technical=30)

    recs = _engine().calculate_next_steps(p, sample_project())

    assert "critical-technical" in _ids(recs)
    assert "critical-marketing" in _ids(recs)
    assert all(r.priority == Priority.HIGH for r in recs if r.id.startswith("critical-"))
    # No project data, no critical path
    assert not [r for r in _engine().calculate_next_steps(p) if r.id.startswith("critical-")]


def test_quarter_milestone():
    p = sample_progress()
    for name in ("validation", "definition", "technical"):
        for s in p.phases[Phase(name)].steps:
            s.status = StepStatus.COMPLETED
    set_completion(p, validation=100, definition=100, technical=100)

    recs = _engine().calculate_next_steps(p, sample_project())

    milestone = next(r for r in recs if r.id == "milestone-quarter")
    assert "Quarter Milestone" in milestone.title


def test_all_matching_rules_emitted_high_priority_first():
    p = sample_progress()
    for name in ("validation", "definition", "technical"):
        for s in p.phases[Phase(name)].steps:
            s.status = StepStatus.COMPLETED
    set_completion(p, validation=100, definition=100, technical=100)

    recs = _engine().calculate_next_steps(p, sample_project())

    assert {"phase-progression-definition", "critical-marketing", "milestone-quarter"} <= set(_ids(recs))
    ranks = [{"high": 0, "medium": 1, "low": 2}[r.priority.value] for r in recs]
    assert ranks == sorted(ranks)
    for rec in recs:
        assert rec.title and rec.description and rec.action_items


def test_rules_can_be_evaluated_in_isolation():
    view = ProgressView(
        progress=set_completion(sample_progress(), validation=30),
        project=sample_project(),
        completion={p: 0 for p in Phase},
        overall=0.0,
        config=SystemConfig(),
        now=NOW,
    )
    by_name = {rule.name: rule for rule in NEXT_STEP_RULES + RISK_RULES}

    assert evaluate_rule(by_name["phase-progression"], view) == []
    assert evaluate_rule(by_name["next-step"], view)[0].id == "next-step-competitor-analysis"
    assert evaluate_rule(by_name["inactivity"], view) == []


def test_next_steps_total_on_bad_input():
    engine = _engine()
    assert engine.get_next_steps(None) == []
    assert engine.calculate_next_steps("not progress") == []
    assert engine.calculate_next_steps({"phases": {"nowhere": {}}}) == []


def test_next_steps_accept_document_dicts():
    doc = {
        "userId": "u1",
        "projectId": "p1",
        "currentPhase": "validation",
        "phases": {"validation": {"steps": [{"stepId": "interviews", "status": "in_progress"}]}},
    }
    assert _ids(_engine().get_next_steps(doc)) == ["next-step-interviews"]


def test_title_case():
    assert title_case("competitor-analysis") == "Competitor Analysis"
    assert title_case("go_to_market") == "Go To Market"


# ---------------------------------------------------------------------------
# Risks
# ---------------------------------------------------------------------------

def test_validation_risk_when_moved_on_too_early():
    p = set_completion(sample_progress(), validation=30)
    p.current_phase = Phase.DEFINITION

    risks = _engine().identify_risks(sample_project(), p)

    risk = next(r for r in risks if r.category == RiskCategory.MARKET)
    assert "market validation" in risk.description


def test_technical_lag_risk():
    p = set_completion(
        sample_progress(), technical=30, validation=100, definition=100, marketing=100,
        operations=100, financial=100, risk=100, optimization=100,
    )

    risks = _engine().identify_risks(sample_project(), p)

    risk = next(r for r in risks if "Technical planning" in r.description)
    assert risk.category == RiskCategory.TECHNICAL


def test_financial_lag_risk():
    p = set_completion(
        sample_progress(), financial=20, validation=100, definition=100, technical=100,
        marketing=100, operations=100, risk=100, optimization=100,
    )

    risks = _engine().identify_risks(sample_project(), p)

    risk = next(r for r in risks if "Financial planning" in r.description)
    assert risk.category == RiskCategory.FINANCIAL


def test_inactivity_risk():
    p = sample_progress(updated_at=NOW - timedelta(days=35))

    risks = _engine().identify_risks(sample_project(), p)

    risk = next(r for r in risks if r.category == RiskCategory.TIMELINE)
    assert "inactive" in risk.description
    assert not [r for r in _engine().identify_risks(sample_project(), sample_progress()) if r.category == RiskCategory.TIMELINE]


def test_risks_sorted_by_priority_with_valid_ratings():
    p = set_completion(sample_progress(updated_at=NOW - timedelta(days=40)), validation=30, financial=20)
    p.current_phase = Phase.DEFINITION

    risks = _engine().identify_risks(sample_project(), p)

    assert len(risks) >= 2
    priorities = [r.priority for r in risks]
    assert priorities == sorted(priorities, reverse=True)
    for risk in risks:
        assert risk.probability.value in ("low", "medium", "high")
        assert risk.impact.value in ("low", "medium", "high")
        assert 1 <= risk.priority <= 3


def test_identify_risks_total_on_bad_input():
    engine = _engine()
    assert engine.identify_risks(None, None) == []
    assert engine.identify_risks(sample_project(), None) == []
    assert engine.identify_risks(None, sample_progress()) == []


def test_engine_risk_helpers():
    engine = _engine()
    assert engine.calculate_risk_score("high", "high").level == RiskLevel.CRITICAL
    assert engine.calculate_risk_score("huge", "high") is None
    assert engine.calculate_overall_risk_level(None) == RiskLevel.LOW
    assert engine.prioritize_risks(None) == []


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------

def test_resources_match_industry_stage_and_phase():
    resources = _engine().suggest_resources(CONTEXT, sample_progress())

    assert [r for r in resources if "saas" in r.tags]
    assert [r for r in resources if "validation" in r.tags]
    scores = [r.relevance_score for r in resources]
    assert scores == sorted(scores, reverse=True)
    assert len(_ids(resources)) == len(set(_ids(resources)))


def test_budget_and_solo_tiers():
    engine = _engine()
    low_budget = engine.suggest_resources({**CONTEXT, "budget": 5000})
    solo = engine.suggest_resources(ProjectContext(**{**CONTEXT, "team_size": 1}))

    assert [r for r in low_budget if "budget" in r.tags]
    assert [r for r in solo if "solo" in r.tags]
    assert "content-marketing-budget" in _ids(low_budget)
    assert "content-marketing-budget" not in _ids(engine.suggest_resources(CONTEXT))


def test_unknown_industry_still_gets_general_resources():
    resources = _engine().suggest_resources({"industry": "unknown-industry", "stage": "nowhere", "teamSize": 3})

    assert resources
    assert all("general" in r.tags for r in resources)


def test_resource_limit_and_bad_input():
    engine = _engine()
    assert len(engine.suggest_resources(CONTEXT, limit=3)) == 3
    assert engine.suggest_resources(None) == []
    assert engine.suggest_resources({"team_size": "many"}) == []
    assert engine.suggest_resources(42) == []


def test_camel_case_context_keys():
    resources = _engine().suggest_resources({"industry": "saas", "teamSize": 1, "budget": 50000})
    assert [r for r in resources if "solo" in r.tags]


# ---------------------------------------------------------------------------
# Personalization
# ---------------------------------------------------------------------------

def test_first_time_user_gets_welcome():
    engine = _engine()
    recs = engine.generate_personalized_recommendations("new-user", sample_progress(), sample_project())

    welcome = next(r for r in recs if r.id == "first-time-welcome")
    assert "Welcome" in welcome.title
    assert welcome.type == RecommendationType.PERSONALIZED
    assert engine.behavior_store.exists("new-user")

    again = engine.generate_personalized_recommendations("new-user", sample_progress(), sample_project())
    assert "first-time-welcome" not in _ids(again)


def test_low_completion_rate_gets_boost():
    engine = _engine()
    engine.update_user_behavior_pattern("test-user", sample_progress())

    recs = engine.generate_personalized_recommendations("test-user", sample_progress(), sample_project())

    boost = next(r for r in recs if r.id == "completion-boost")
    assert "Completion Rate" in boost.title


def test_stuck_step_gets_help():
    engine = _engine()
    p = sample_progress()
    stuck = p.phases[Phase.VALIDATION].find_step("competitor-analysis")
    stuck.started_at = NOW - timedelta(days=10)

    pattern = engine.update_user_behavior_pattern("test-user", p)
    recs = engine.generate_personalized_recommendations("test-user", p, sample_project())

    assert pattern.common_stuck_points == ["competitor-analysis"]
    assert "stuck-help-competitor-analysis" in _ids(recs)


def test_recent_in_progress_step_is_not_stuck():
    engine = _engine()
    pattern = engine.update_user_behavior_pattern("test-user", sample_progress())
    assert pattern.common_stuck_points == []


def test_behavior_pattern_completion_rate_and_time():
    engine = _engine()
    p = sample_progress()
    p.phases[Phase.VALIDATION].steps[1].status = StepStatus.COMPLETED

    engine.update_user_behavior_pattern("test-user", p, "market-research", 3600000)
    pattern = engine.update_user_behavior_pattern("test-user", p, "competitor-analysis", 1800000)

    assert pattern.completion_rate == 2 / 11
    assert pattern.average_time_per_phase[Phase.VALIDATION] == 45.0
    assert pattern.sessions_recorded[Phase.VALIDATION] == 2
    assert pattern.last_active_date == NOW


def test_behavior_patterns_are_isolated_per_engine():
    first = _engine()
    first.update_user_behavior_pattern("test-user", sample_progress())

    second = _engine()
    recs = second.generate_personalized_recommendations("test-user", sample_progress(), sample_project())
    assert "first-time-welcome" in _ids(recs)


def test_resource_preference_recommendation():
    engine = _engine()
    engine.update_user_behavior_pattern("test-user", sample_progress())
    engine.record_resource_interaction("test-user", "article")
    engine.record_resource_interaction("test-user", ResourceType.VIDEO)

    pattern = engine.behavior_store.get("test-user")
    assert pattern.preferred_resource_types == [ResourceType.VIDEO, ResourceType.ARTICLE]
    recs = engine.generate_personalized_recommendations("test-user", sample_progress(), sample_project())
    assert "resource-preference" in _ids(recs)


def test_personalization_total_on_bad_input():
    engine = _engine()
    assert engine.generate_personalized_recommendations("", sample_progress(), None) == []
    assert engine.generate_personalized_recommendations("u", None, None) == []
    assert engine.update_user_behavior_pattern("u", None) is None


# ---------------------------------------------------------------------------
# Content
# ---------------------------------------------------------------------------

def _content(**overrides):
    context = {
        "currentPhase": "validation",
        "projectStage": "validation",
        "industry": "saas",
        "teamSize": 2,
        "budget": 50000,
        "completedSteps": [],
        "userInput": {},
    }
    context.update(overrides)
    return _engine().suggest_content(context)


def test_templates_for_phase():
    suggestions = _content(completedSteps=["market-research"], userInput={"targetAudience": "small businesses"})

    assert "Customer Interview Script" in suggestions.template_suggestions


def test_industry_adjustments():
    suggestions = _content()
    assert any("saas" in adj for adj in suggestions.framework_adjustments)


def test_low_budget_adjustments():
    suggestions = _content(budget=5000)
    assert "Focus on lean validation methods" in suggestions.framework_adjustments
    assert "Prioritize free and low-cost tools" in suggestions.framework_adjustments


def test_solo_adjustments():
    suggestions = _content(teamSize=1)
    assert "Adapt processes for solo founder" in suggestions.framework_adjustments
    assert "Consider outsourcing non-core activities" in suggestions.framework_adjustments


def test_content_ideas_echo_user_input_keys():
    suggestions = _content(userInput={
        "targetAudience": "small business owners who struggle with inventory management",
        "problemStatement": "Current solutions are too complex and expensive",
        "empty": "",
    })

    assert any("targetAudience" in idea for idea in suggestions.content_ideas)
    assert not any("empty" in idea for idea in suggestions.content_ideas)


def test_marketing_content_for_ecommerce():
    suggestions = _content(
        currentPhase="marketing",
        projectStage="development",
        industry="ecommerce",
        teamSize=5,
        budget=100000,
        completedSteps=["market-research", "competitor-analysis"],
        userInput={"channels": ["social-media", "email"], "budget": 10000},
    )

    assert any("Marketing" in t for t in suggestions.template_suggestions)
    assert suggestions.framework_adjustments
    assert suggestions.content_ideas


def test_suggest_content_total_on_bad_input():
    engine = _engine()
    assert engine.suggest_content(None).template_suggestions == []
    assert engine.suggest_content({"currentPhase": "nowhere"}).content_ideas == []


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------

def test_recommendation_score():
    engine = _engine()
    rec = Recommendation(
        id="r", title="t", description="d", priority=Priority.HIGH, phase=Phase.TECHNICAL,
        category="technical", type=RecommendationType.NEXT_STEP,
    )

    assert engine.calculate_recommendation_score(rec, {}) == 80
    assert engine.calculate_recommendation_score(rec, {"currentPhase": "technical"}) == 100
    rec.priority = Priority.MEDIUM
    assert engine.calculate_recommendation_score(rec, {"current_phase": "marketing", "urgent_areas": ["technical"]}) == 90
    rec.priority = Priority.LOW
    assert engine.calculate_recommendation_score(rec, {}) == 50


def test_behavior_store_hands_out_copies():
    store = InMemoryBehaviorPatternStore()
    engine = RecommendationEngine(behavior_store=store, clock=lambda: NOW)
    engine.update_user_behavior_pattern("a", sample_progress())
    engine.update_user_behavior_pattern("b", sample_progress())

    store.get("a").common_stuck_points.append("tampered")

    assert store.get("a").common_stuck_points == []
    assert store.exists("a") and store.exists("b")
    assert not store.exists("c")


def test_step_only_snapshot_reads_the_same_to_engine_and_calculator():
    validation = PhaseProgress(
        phase="validation",
        steps=[StepProgress("market-research", "completed"), StepProgress("interviews", "completed")],
    )
    p = UserProgress(user_id="u", project_id="p", phases={Phase.VALIDATION: validation})

    engine = _engine()
    recs = engine.calculate_next_steps(p)

    assert validation.completion_percentage == 100
    assert engine.calculator.calculate_progress(p).phase_completion[Phase.VALIDATION] == 100
    assert "phase-progression-definition" in _ids(recs)


def test_empty_injected_store_is_kept():
    store = InMemoryBehaviorPatternStore()
    engine = RecommendationEngine(behavior_store=store, clock=lambda: NOW)

    assert engine.behavior_store is store
    engine.update_user_behavior_pattern("u", sample_progress())
    assert store.exists("u")


def test_time_without_step_counts_toward_current_phase():
    engine = _engine()
    p = sample_progress()

    engine.update_user_behavior_pattern("u", p, None, 3_600_000)
    pattern = engine.update_user_behavior_pattern("u", p, "", 1_800_000)

    assert pattern.average_time_per_phase[Phase.VALIDATION] == 45.0
    assert pattern.sessions_recorded[Phase.VALIDATION] == 2

    p.current_phase = Phase.TECHNICAL
    pattern = engine.update_user_behavior_pattern("u", p, "market-research", 900_000)
    assert pattern.average_time_per_phase[Phase.VALIDATION] == 35.0
    assert Phase.TECHNICAL not in pattern.average_time_per_phase
