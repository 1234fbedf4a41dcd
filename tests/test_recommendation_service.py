import asyncio
from datetime import timedelta

import pytest

from helpers import NOW, make_tracker, phase, progress, sample_progress, sample_project, set_completion, step

from launchkit.models import Momentum, Phase, Priority, RiskCategory, RiskLevel
from launchkit.persistence import LocalDocumentStore
from launchkit.recommendation_service import (
    PROGRESS_MISSING,
    PROGRESS_OR_PROJECT_MISSING,
    PROJECT_MISSING,
    RecommendationService,
)
from launchkit.risk_scoring import MITIGATION_ACTIONS


def _service(user_progress=None, project=None):
    store = LocalDocumentStore()
    if user_progress is not None:
        store.put_progress(user_progress)
    if project is not None:
        store.put_project(project)
    return RecommendationService(make_tracker(store), store, clock=lambda: NOW)


def _ids(items):
    return [item.id for item in items]


def test_full_recommendations():
    service = _service(sample_progress(), sample_project())

    bundle = asyncio.run(service.get_recommendations("test-user", "test-project"))

    assert "next-step-competitor-analysis" in _ids(bundle.next_steps)
    assert "critical-technical" in _ids(bundle.next_steps)
    assert bundle.resources
    assert bundle.risks == []
    assert "first-time-welcome" in _ids(bundle.personalized_recommendations)


def test_missing_data_raises_fixed_message():
    for service in (_service(sample_progress()), _service(project=sample_project())):
        with pytest.raises(ValueError) as info:
            asyncio.run(service.get_recommendations("test-user", "test-project"))
        assert str(info.value) == PROGRESS_OR_PROJECT_MISSING


def test_phase_recommendations_stay_in_phase():
    service = _service(sample_progress(), sample_project())

    result = asyncio.run(service.get_phase_recommendations("test-user", "test-project", "validation"))

    assert "next-step-competitor-analysis" in _ids(result.recommendations)
    assert all(r.category == "validation" for r in result.recommendations)
    assert result.resources
    assert all("validation" in r.tags for r in result.resources)

    content = result.content_suggestions
    assert "SaaS Problem Validation Survey" in content.template_suggestions
    assert any("targetAudience" in idea for idea in content.content_ideas)
    assert any("Market Research" in idea for idea in content.content_ideas)


def test_phase_recommendations_reject_unknown_phase():
    service = _service(sample_progress(), sample_project())

    with pytest.raises(ValueError):
        asyncio.run(service.get_phase_recommendations("test-user", "test-project", "launchpad"))


def test_risk_analysis_with_mitigations():
    p = set_completion(sample_progress(updated_at=NOW - timedelta(days=40)), validation=30)
    p.current_phase = Phase.DEFINITION
    service = _service(p, sample_project())

    analysis = asyncio.run(service.get_risk_analysis("test-user", "test-project"))

    assert _ids(analysis.risks) == ["insufficient-validation", "project-inactivity"]
    summary = analysis.risk_summary
    assert summary.total_risks == 2
    assert summary.high_priority_risks == 1
    assert summary.critical_categories == [RiskCategory.MARKET, RiskCategory.TIMELINE]
    assert summary.overall_risk_level == RiskLevel.MEDIUM

    market, timeline = analysis.mitigation_recommendations
    assert market.id == "mitigation-insufficient-validation"
    assert market.title == "Mitigate Insufficient Market Validation"
    assert market.priority == Priority.HIGH
    assert market.phase == Phase.VALIDATION
    assert market.action_items == MITIGATION_ACTIONS[RiskCategory.MARKET]
    assert timeline.priority == Priority.MEDIUM
    assert timeline.phase == Phase.DEFINITION
    assert timeline.action_items


def test_risk_analysis_without_risks():
    service = _service(sample_progress(), sample_project())

    analysis = asyncio.run(service.get_risk_analysis("test-user", "test-project"))

    assert analysis.risks == []
    assert analysis.mitigation_recommendations == []
    assert analysis.risk_summary.overall_risk_level == RiskLevel.LOW


def test_update_user_activity_records_time():
    service = _service(sample_progress(), sample_project())

    recs = asyncio.run(service.update_user_activity("test-user", "test-project", "market-research", 3600000))

    pattern = service.engine.behavior_store.get("test-user")
    assert pattern.average_time_per_phase[Phase.VALIDATION] == 60.0
    assert "completion-boost" in _ids(recs)
    assert "first-time-welcome" not in _ids(recs)


def test_update_user_activity_reports_what_is_missing():
    cases = [
        (_service(project=sample_project()), PROGRESS_MISSING),
        (_service(sample_progress()), PROJECT_MISSING),
    ]
    for service, message in cases:
        with pytest.raises(ValueError) as info:
            asyncio.run(service.update_user_activity("test-user", "test-project"))
        assert str(info.value) == message


def test_content_suggestions_with_related_resources():
    service = _service(sample_progress(), sample_project())

    result = asyncio.run(service.get_content_suggestions(
        "test-user", "test-project", "marketing",
        {"channels": ["social-media", "email"], "notes": "growth loops"},
    ))

    assert "Marketing Plan Template" in result.template_suggestions
    assert "SaaS Marketing Funnel Template" in result.template_suggestions
    assert any("channels" in idea for idea in result.content_ideas)
    assert any("saas" in adj for adj in result.framework_adjustments)
    assert "saas-pricing" in _ids(result.related_resources)
    assert "analytics-setup" not in _ids(result.related_resources)


def test_progress_insights():
    service = _service(sample_progress(), sample_project())

    insights = asyncio.run(service.get_progress_insights("test-user", "test-project"))

    summary = insights.progress_summary
    assert summary.current_phase == Phase.VALIDATION
    assert summary.completed_phases == 0
    assert summary.momentum == Momentum.HIGH
    assert summary.stuck_areas == []
    assert "You're in the early stages - focus on validation to build a strong foundation" in insights.insights
    assert "Focus on completing the validation phase - it's critical for your success" in insights.insights
    assert "Great momentum! Keep up the consistent progress" in insights.insights
    assert 0 < len(insights.recommendations) <= 5


def test_progress_insights_flag_stuck_phase_and_stale_project():
    p = progress(
        phases={
            "validation": phase("validation", [step("a", "completed"), step("b", "completed")]),
            "definition": phase("definition", [step("c", "completed")] + [step(f"d{i}") for i in range(4)]),
        },
        updated_at=NOW - timedelta(days=10),
    )
    service = _service(p)

    insights = asyncio.run(service.get_progress_insights("test-user", "test-project"))

    assert insights.progress_summary.stuck_areas == [Phase.DEFINITION]
    assert insights.progress_summary.completed_phases == 1
    assert insights.progress_summary.momentum == Momentum.LOW
    assert "Consider setting aside regular time for project work to maintain momentum" in insights.insights
    assert not [r for r in insights.recommendations if r.id.startswith("critical-")]


def test_progress_insights_need_progress():
    service = _service(project=sample_project())

    with pytest.raises(ValueError) as info:
        asyncio.run(service.get_progress_insights("test-user", "test-project"))

    assert str(info.value) == PROGRESS_MISSING


def test_project_context_estimation():
    service = _service()
    rich = sample_project(
        stage="development",
        data={
            "operations": {"team": {"structure": ["ceo", "cto", "designer"]}},
            "financial": {"funding": {"requirements": 250000}},
        },
    )
    bare = sample_project(stage="whatever", data={})

    context = service.build_project_context(rich, Phase.TECHNICAL)
    assert context.team_size == 3
    assert context.budget == 250000.0
    assert context.timeline == "3-6 months"
    assert context.current_phase == "technical"

    assert service.estimate_team_size(bare) == 1
    assert service.estimate_budget(bare) == 10000.0
    assert service.estimate_timeline(bare) == "3-6 months"
    assert service.estimate_timeline(sample_project()) == "2-3 months"
