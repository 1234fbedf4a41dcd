"""Builders shared by the launchkit tests."""
import asyncio
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from launchkit.models import Phase, PhaseProgress, ProjectData, StepProgress, StepStatus, UserProgress
from launchkit.persistence import LocalDocumentStore
from launchkit.progress_tracker import AutoSaveConfig, ProgressTracker

NOW = datetime(2024, 6, 1, 12, 0, 0)


def step(step_id: str, status: str = "not_started", **kwargs) -> StepProgress:
    return StepProgress(step_id=step_id, status=StepStatus(status), **kwargs)


def phase(name: str, steps: List[StepProgress]) -> PhaseProgress:
    return PhaseProgress(phase=Phase(name), steps=steps, started_at=NOW)


def progress(
    current: str = "validation",
    phases: Optional[Dict[str, PhaseProgress]] = None,
    updated_at: datetime = NOW,
) -> UserProgress:
    return UserProgress(
        user_id="test-user",
        project_id="test-project",
        current_phase=Phase(current),
        phases={Phase(k): v for k, v in (phases or {}).items()},
        created_at=NOW - timedelta(days=10),
        updated_at=updated_at,
    )


def sample_progress(updated_at: datetime = NOW) -> UserProgress:
    """Validation under way, one open step in every other phase."""
    return progress(
        phases={
            "validation": phase("validation", [
                step("market-research", "completed", completed_at=NOW),
                step("competitor-analysis", "in_progress", started_at=NOW - timedelta(days=1)),
                step("target-audience"),
            ]),
            "definition": phase("definition", [step("value-proposition"), step("feature-prioritization")]),
            "technical": phase("technical", [step("technical-stack")]),
            "marketing": phase("marketing", [step("pricing-strategy")]),
            "operations": phase("operations", [step("team-structure")]),
            "financial": phase("financial", [step("financial-projections")]),
            "risk": phase("risk", [step("risk-assessment")]),
            "optimization": phase("optimization", [step("analytics-setup")]),
        },
        updated_at=updated_at,
    )


def set_completion(p: UserProgress, **completion: int) -> UserProgress:
    for name, value in completion.items():
        p.phases[Phase(name)].completion_percentage = value
    return p


def sample_project(**overrides) -> ProjectData:
    fields = dict(
        id="test-project",
        user_id="test-user",
        name="Test Project",
        description="A test project",
        industry="saas",
        target_market="small-business",
        stage="validation",
        data={"validation": {"targetAudience": {"personas": [], "validationScore": 75}}},
        created_at=NOW,
        updated_at=NOW,
    )
    fields.update(overrides)
    return ProjectData(**fields)


def make_tracker(store: Optional[LocalDocumentStore] = None, clock=lambda: NOW, **auto_save) -> ProgressTracker:
    settings = dict(enabled=True, debounce_ms=0, max_retries=2, retry_delay_ms=0, backoff="fixed")
    settings.update(auto_save)
    return ProgressTracker(
        store if store is not None else LocalDocumentStore(),
        auto_save=AutoSaveConfig(**settings),
        clock=clock,
    )


async def drain(tracker: ProgressTracker, user_id: str = "u1", project_id: str = "p1") -> None:
    """Let background writes for a key finish."""
    for _ in range(1000):
        if not tracker.has_pending_writes(user_id, project_id):
            return
        await asyncio.sleep(0)
    raise AssertionError("background writes did not settle")
