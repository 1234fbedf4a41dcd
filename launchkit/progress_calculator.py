"""
Progress calculator for launchkit.

Pure functions over UserProgress snapshots: completion metrics, the next
actionable step, stuck phases and momentum. Nothing here mutates its input
or touches the store.
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from launchkit.config_manager import SystemConfig, config as default_config
from launchkit.models import (
    PHASE_ORDER,
    Momentum,
    Phase,
    PhaseProgress,
    ProgressCalculation,
    StepProgress,
    StepStatus,
    UserProgress,
)

ACTIONABLE_STATUSES = (StepStatus.NOT_STARTED, StepStatus.IN_PROGRESS)


def calculate_phase_completion(steps: List[StepProgress]) -> int:
    """Percentage of completed or skipped steps, rounded; 0 for no steps."""
    if not steps:
        return 0
    done = sum(1 for step in steps if step.status.is_terminal)
    return round(100 * done / len(steps))


def phase_completion_of(phase_progress: PhaseProgress) -> int:
    """Completion of a phase: derived from its steps, else the stored figure."""
    if phase_progress.steps:
        return calculate_phase_completion(phase_progress.steps)
    return max(0, min(100, int(phase_progress.completion_percentage or 0)))


def is_phase_complete(phase_progress: PhaseProgress) -> bool:
    """A phase is complete once it has steps and all of them are terminal."""
    return bool(phase_progress.steps) and all(s.status.is_terminal for s in phase_progress.steps)


def refresh_phase(phase_progress: PhaseProgress, now: Optional[datetime] = None) -> None:
    """Recompute completion_percentage and completed_at in place."""
    phase_progress.completion_percentage = calculate_phase_completion(phase_progress.steps)
    if is_phase_complete(phase_progress):
        if phase_progress.completed_at is None:
            phase_progress.completed_at = now or datetime.now()
    else:
        phase_progress.completed_at = None


def get_incomplete_steps(progress: UserProgress) -> List[StepProgress]:
    """All actionable steps in canonical phase order, then step order."""
    steps: List[StepProgress] = []
    for phase in PHASE_ORDER:
        steps.extend(s for s in progress.phases[phase].steps if s.status in ACTIONABLE_STATUSES)
    return steps


def get_next_phase(progress: UserProgress) -> Optional[Phase]:
    """First phase at or after the current one that is not yet complete."""
    start = PHASE_ORDER.index(progress.current_phase)
    for phase in PHASE_ORDER[start:]:
        if not is_phase_complete(progress.phases[phase]):
            return phase
    return None


def following_phase(phase: Phase) -> Optional[Phase]:
    """The canonical phase after `phase`, or None for the last one."""
    index = PHASE_ORDER.index(phase)
    if index + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[index + 1]
    return None


class ProgressCalculator:
    """Derives metrics from a progress snapshot.

    Thresholds for stuck areas and momentum come from SystemConfig so they
    can be tuned without code changes.
    """

    def __init__(self, config: Optional[SystemConfig] = None):
        self._config = config if config is not None else default_config

    def calculate_progress(self, progress: UserProgress) -> ProgressCalculation:
        phase_completion: Dict[Phase, int] = {}
        total_steps = 0
        completed_steps = 0

        for phase in PHASE_ORDER:
            steps = progress.phases[phase].steps
            phase_completion[phase] = phase_completion_of(progress.phases[phase])
            total_steps += len(steps)
            completed_steps += sum(1 for s in steps if s.status.is_terminal)

        next_step: Optional[StepProgress] = None
        next_phase: Optional[Phase] = None
        for phase in PHASE_ORDER:
            for step in progress.phases[phase].steps:
                if step.status in ACTIONABLE_STATUSES:
                    next_step, next_phase = step, phase
                    break
            if next_step is not None:
                break

        return ProgressCalculation(
            phase_completion=phase_completion,
            overall_completion=self.overall_completion(phase_completion),
            total_steps=total_steps,
            completed_steps=completed_steps,
            next_step=next_step,
            next_phase=next_phase,
        )

    @staticmethod
    def overall_completion(phase_completion: Dict[Phase, Union[int, float]]) -> float:
        """Mean of the eight phase percentages; missing phases count as 0."""
        total = sum(phase_completion.get(phase, 0) or 0 for phase in PHASE_ORDER)
        return total / len(PHASE_ORDER)

    def find_stuck_areas(
        self,
        phase_completion: Dict[Any, Union[int, float]],
        overall_completion: float,
    ) -> List[Phase]:
        """
        Started phases trailing the user's pace by more than STUCK_AREA_DELTA.

        The pace is the larger of overall completion and the mean of the
        started phases, so untouched phases do not hide a lagging one.

        Args:
            phase_completion: phase (member or string) -> percentage
            overall_completion: mean completion across all phases
        """
        delta = self._config.STUCK_AREA_DELTA
        normalized = {Phase.coerce(k): v or 0 for k, v in phase_completion.items()}
        started = [v for v in normalized.values() if v > 0]
        if not started:
            return []
        pace = max(overall_completion or 0, sum(started) / len(started))

        stuck = []
        for phase in PHASE_ORDER:
            completion = normalized.get(phase, 0)
            if 0 < completion < pace - delta:
                stuck.append(phase)
        return stuck

    def calculate_momentum(self, updated_at: Optional[datetime], now: Optional[datetime] = None) -> Momentum:
        if updated_at is None:
            return Momentum.LOW
        now = now or datetime.now()
        days = (now - updated_at).total_seconds() / 86400
        if days <= self._config.MOMENTUM_HIGH_DAYS:
            return Momentum.HIGH
        if days <= self._config.MOMENTUM_MEDIUM_DAYS:
            return Momentum.MEDIUM
        return Momentum.LOW

    def completed_phase_count(self, progress: UserProgress) -> int:
        return sum(1 for phase in PHASE_ORDER if is_phase_complete(progress.phases[phase]))

    def create_progress_summary(self, progress: UserProgress) -> Dict[str, Any]:
        calculation = self.calculate_progress(progress)
        return {
            "overall_completion": calculation.overall_completion,
            "completed_phases": self.completed_phase_count(progress),
            "total_steps": calculation.total_steps,
            "completed_steps": calculation.completed_steps,
            "current_phase": progress.current_phase,
            "next_steps": [s.step_id for s in get_incomplete_steps(progress)[:3]],
        }
