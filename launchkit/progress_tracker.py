"""
Progress tracker for launchkit.

Keeps an optimistic in-memory copy of every (user, project) progress
document. Mutations are applied to the cache and returned straight away;
persistence goes through a WriteQueue (debounced and retried) or, with
auto_save disabled, is awaited inline. Real-time pushes from the store
replace the cached copy unconditionally.
"""
import asyncio
import copy
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Set, Union

from launchkit.config_manager import SystemConfig, config as default_config
from launchkit.exceptions import PersistenceError, ProgressTrackingError, StepDataValidationError
from launchkit.logger import get_logger
from launchkit.models import (
    Phase,
    ProgressCalculation,
    ProgressSummary,
    StepProgress,
    StepStatus,
    UserProgress,
    progress_from_dict,
)
from launchkit.persistence import ProgressStore, Subscription, progress_key
from launchkit.progress_calculator import ProgressCalculator, get_next_phase, refresh_phase
from launchkit.write_queue import RetryPolicy, Sleep, WriteQueue

logger = get_logger("progress_tracker")

_UNSET: Any = object()


@dataclass
class AutoSaveConfig:
    enabled: bool = True
    debounce_ms: int = 2000
    max_retries: int = 3
    retry_delay_ms: int = 1000
    backoff: str = "exponential"

    @classmethod
    def from_config(cls, config: SystemConfig) -> "AutoSaveConfig":
        return cls(
            enabled=config.AUTO_SAVE_ENABLED,
            debounce_ms=config.AUTO_SAVE_DEBOUNCE_MS,
            max_retries=config.MAX_RETRIES,
            retry_delay_ms=config.RETRY_DELAY_MS,
            backoff=config.RETRY_BACKOFF,
        )

    @property
    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(max_retries=self.max_retries, delay_ms=self.retry_delay_ms, backoff=self.backoff)


@dataclass
class UpdateOptions:
    """Per-call persistence options. auto_save=None means use AutoSaveConfig.enabled."""
    auto_save: Optional[bool] = None
    optimistic: bool = True
    validate_data: bool = True
    retry_on_failure: bool = True


OptionsLike = Union[UpdateOptions, Mapping[str, Any], None]


def _coerce_options(options: OptionsLike) -> UpdateOptions:
    if options is None:
        return UpdateOptions()
    if isinstance(options, UpdateOptions):
        return options
    return UpdateOptions(**dict(options))


def step_payload(data: Any) -> Dict[str, Any]:
    """Step data as stored: mappings as-is, other values under "value"."""
    if data is _UNSET or data is None:
        return {}
    if isinstance(data, Mapping):
        return dict(data)
    return {"value": data}


class ProgressTracker:
    """Optimistic progress cache in front of a ProgressStore."""

    def __init__(
        self,
        store: ProgressStore,
        auto_save: Optional[AutoSaveConfig] = None,
        calculator: Optional[ProgressCalculator] = None,
        config: Optional[SystemConfig] = None,
        clock: Callable[[], datetime] = datetime.now,
        sleep: Sleep = asyncio.sleep,
    ):
        self._config = config if config is not None else default_config
        self.store = store
        self.auto_save = auto_save if auto_save is not None else AutoSaveConfig.from_config(self._config)
        self.calculator = calculator if calculator is not None else ProgressCalculator(self._config)
        self._clock = clock
        self._cache: Dict[str, UserProgress] = {}
        self._init_locks: Dict[str, asyncio.Lock] = {}
        self._init_waiters: Dict[str, int] = {}
        self._subscriptions: Set[Subscription] = set()
        self._queue = WriteQueue(self.auto_save.debounce_ms, self.auto_save.retry_policy, sleep=sleep)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def initialize_progress(
        self,
        user_id: str,
        project_id: str,
        initial_phase: Union[Phase, str] = Phase.VALIDATION,
    ) -> UserProgress:
        """Return existing progress or create it in the store. Idempotent."""
        key = progress_key(user_id, project_id)
        if key in self._cache:
            return self._cache[key]
        lock = self._init_locks.setdefault(key, asyncio.Lock())
        self._init_waiters[key] = self._init_waiters.get(key, 0) + 1
        try:
            phase = Phase.coerce(initial_phase)
            async with lock:
                if key in self._cache:
                    return self._cache[key]
                existing = await self.store.get_user_progress(user_id, project_id)
                if existing is None:
                    existing = await self.store.create_user_progress(user_id, project_id, phase)
                    logger.info(f"Created progress for {key} starting at {phase.value}")
                return self._cache.setdefault(key, existing)
        except ProgressTrackingError:
            raise
        except Exception as e:
            raise ProgressTrackingError("initialize", user_id, project_id, e) from e
        finally:
            self._init_waiters[key] -= 1
            if not self._init_waiters[key]:
                del self._init_waiters[key]
                del self._init_locks[key]

    async def get_progress(self, user_id: str, project_id: str) -> Optional[UserProgress]:
        """Cached optimistic copy, else the store's copy (which seeds the cache)."""
        key = progress_key(user_id, project_id)
        if key in self._cache:
            return self._cache[key]
        try:
            progress = await self.store.get_user_progress(user_id, project_id)
        except Exception as e:
            raise ProgressTrackingError("get", user_id, project_id, e) from e
        if progress is None:
            return None
        # Another caller may have seeded (and mutated) the cache meanwhile
        return self._cache.setdefault(key, progress)

    async def refresh_progress(self, user_id: str, project_id: str) -> Optional[UserProgress]:
        """Drop the optimistic copy and reload from the store."""
        key = progress_key(user_id, project_id)
        self._cache.pop(key, None)
        return await self.get_progress(user_id, project_id)

    def cached(self, user_id: str, project_id: str) -> Optional[UserProgress]:
        return self._cache.get(progress_key(user_id, project_id))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------
    @staticmethod
    def _validate_step_data(step_id: str, data: Any) -> None:
        if data is None:
            raise StepDataValidationError(step_id, "Step data cannot be null", "REQUIRED")

    async def update_step_progress(
        self,
        user_id: str,
        project_id: str,
        phase: Union[Phase, str],
        step_id: str,
        status: Union[StepStatus, str],
        data: Any = _UNSET,
        notes: Optional[str] = None,
        options: OptionsLike = None,
    ) -> UserProgress:
        """
        Upsert a step and return the new snapshot without waiting for the store.

        Raises:
            ProgressTrackingError: unknown phase or status, rejected data, or
                (auto_save disabled) the write failed after all retries.
        """
        context = {"phase": phase, "step_id": step_id, "status": status}
        try:
            opts = _coerce_options(options)
            phase = Phase.coerce(phase)
            status = StepStatus(status)
            if opts.validate_data and data is not _UNSET:
                self._validate_step_data(step_id, data)
            payload = step_payload(data)

            current = await self.get_progress(user_id, project_id)
            if current is None:
                current = await self.initialize_progress(user_id, project_id, phase)

            updated = self._apply_step(current, phase, step_id, status, payload, notes)
            key = progress_key(user_id, project_id)
            if opts.optimistic:
                self._cache[key] = updated

            async def persist() -> None:
                await self.store.update_step_progress(
                    user_id, project_id, phase, step_id, status, payload, notes
                )

            await self._persist(key, f"step:{phase.value}:{step_id}", persist, opts)
            return updated
        except ProgressTrackingError:
            raise
        except Exception as e:
            raise ProgressTrackingError("update_step", user_id, project_id, e, context) from e

    def _apply_step(
        self,
        current: UserProgress,
        phase: Phase,
        step_id: str,
        status: StepStatus,
        data: Dict[str, Any],
        notes: Optional[str],
    ) -> UserProgress:
        now = self._clock()
        updated = copy.deepcopy(current)
        phase_progress = updated.phases[phase]
        existing = phase_progress.find_step(step_id)

        completed_at = None
        if status == StepStatus.COMPLETED:
            keep = existing is not None and existing.status == StepStatus.COMPLETED and existing.completed_at
            completed_at = existing.completed_at if keep else now
        started_at = existing.started_at if existing is not None else None
        if status == StepStatus.IN_PROGRESS and started_at is None:
            started_at = now

        step = StepProgress(
            step_id=step_id,
            status=status,
            data=data,
            completed_at=completed_at,
            notes=notes,
            started_at=started_at,
        )
        if existing is not None:
            phase_progress.steps[phase_progress.steps.index(existing)] = step
        else:
            phase_progress.steps.append(step)

        if phase_progress.started_at is None:
            phase_progress.started_at = now
        refresh_phase(phase_progress, now)
        updated.updated_at = now
        return updated

    async def update_current_phase(
        self,
        user_id: str,
        project_id: str,
        phase: Union[Phase, str],
        options: OptionsLike = None,
    ) -> UserProgress:
        """Move the user to `phase`.

        Raises:
            ProgressTrackingError: unknown phase, no progress, or a failed
                inline write.
        """
        try:
            opts = _coerce_options(options)
            phase = Phase.coerce(phase)
            current = await self.get_progress(user_id, project_id)
            if current is None:
                raise LookupError("Progress not found")

            updated = copy.deepcopy(current)
            updated.current_phase = phase
            updated.updated_at = self._clock()
            key = progress_key(user_id, project_id)
            if opts.optimistic:
                self._cache[key] = updated

            async def persist() -> None:
                await self.store.update_current_phase(user_id, project_id, phase)

            await self._persist(key, "current_phase", persist, opts)
            return updated
        except ProgressTrackingError:
            raise
        except Exception as e:
            raise ProgressTrackingError("update_phase", user_id, project_id, e, {"phase": phase}) from e

    async def _persist(self, key: str, patch_field: str, operation, opts: UpdateOptions) -> None:
        auto_save = self.auto_save.enabled if opts.auto_save is None else opts.auto_save
        if auto_save:
            self._queue.schedule(key, patch_field, operation)
            return
        if opts.retry_on_failure:
            await self._queue.execute(key, patch_field, operation)
            return
        try:
            await operation()
        except Exception as e:
            raise PersistenceError(f"{key}:{patch_field}", 1, e) from e

    # ------------------------------------------------------------------
    # Pending writes
    # ------------------------------------------------------------------
    async def flush(self, user_id: str, project_id: str) -> None:
        """Write anything pending for this key now and wait for it.

        Raises:
            ProgressTrackingError: a pending write failed after all retries.
        """
        try:
            await self._queue.flush(progress_key(user_id, project_id))
        except PersistenceError as e:
            raise ProgressTrackingError("flush", user_id, project_id, e) from e

    async def flush_all(self) -> List[PersistenceError]:
        return await self._queue.flush_all()

    def has_pending_writes(self, user_id: str, project_id: str) -> bool:
        return self._queue.has_pending(progress_key(user_id, project_id))

    async def close(self) -> None:
        """Flush every pending write and cancel all subscriptions."""
        errors = await self.flush_all()
        for error in errors:
            logger.error(f"Unsaved progress on close: {error.message}")
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()
        self._subscriptions.clear()

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------
    def calculate_progress(self, progress: UserProgress) -> ProgressCalculation:
        return self.calculator.calculate_progress(progress)

    async def get_progress_summary(self, user_id: str, project_id: str) -> ProgressSummary:
        try:
            progress = await self.get_progress(user_id, project_id)
            if progress is None:
                raise LookupError("Progress not found")
        except ProgressTrackingError:
            raise
        except Exception as e:
            raise ProgressTrackingError("get_summary", user_id, project_id, e) from e

        calculation = self.calculate_progress(progress)
        return ProgressSummary(
            progress=progress,
            calculation=calculation,
            recommendations=self._summary_recommendations(progress, calculation),
            risks=self._summary_risks(progress, calculation),
        )

    def _summary_recommendations(self, progress: UserProgress, calculation: ProgressCalculation) -> List[str]:
        recommendations = []
        if calculation.next_step is not None:
            recommendations.append(f"Complete step: {calculation.next_step.step_id}")

        next_phase = get_next_phase(progress)
        if next_phase is not None and next_phase != progress.current_phase:
            recommendations.append(f"Consider moving to {next_phase.value} phase")

        current_completion = calculation.phase_completion[progress.current_phase]
        if current_completion < self._config.LOW_PHASE_COMPLETION:
            recommendations.append(f"Focus on completing {progress.current_phase.value} phase first")

        overall = calculation.overall_completion
        if overall < 25:
            if progress.current_phase != Phase.VALIDATION:
                recommendations.append("Focus on completing validation phase first")
        elif overall < 50:
            recommendations.append("Define your product clearly before moving to technical planning")
        elif overall < 75:
            recommendations.append("Start planning your go-to-market strategy")
        else:
            recommendations.append("Prepare for launch - review all phases for completeness")
        return recommendations

    def _summary_risks(self, progress: UserProgress, calculation: ProgressCalculation) -> List[str]:
        cfg = self._config
        completion = calculation.phase_completion
        overall = calculation.overall_completion
        risks = []
        if completion[Phase.VALIDATION] < cfg.VALIDATION_RISK_THRESHOLD and progress.current_phase != Phase.VALIDATION:
            risks.append("Insufficient market validation may lead to product-market fit issues")
        if completion[Phase.TECHNICAL] < cfg.TECHNICAL_LAG_THRESHOLD and overall > cfg.TECHNICAL_LAG_OVERALL:
            risks.append("Technical architecture planning is lagging behind other phases")
        if completion[Phase.FINANCIAL] < cfg.FINANCIAL_LAG_THRESHOLD and overall > cfg.FINANCIAL_LAG_OVERALL:
            risks.append("Financial planning needs attention before launch")
        return risks

    # ------------------------------------------------------------------
    # Real-time updates
    # ------------------------------------------------------------------
    def subscribe_to_progress(
        self,
        user_id: str,
        project_id: str,
        callback: Callable[[Optional[UserProgress]], None],
    ) -> Subscription:
        """Forward store pushes to `callback`, replacing the cached copy first."""
        key = progress_key(user_id, project_id)

        def on_push(payload: Any) -> None:
            try:
                if payload is None or isinstance(payload, UserProgress):
                    progress = copy.deepcopy(payload)
                else:
                    progress = progress_from_dict(payload)
            except (KeyError, ValueError, TypeError, AttributeError) as e:
                logger.warning(f"Ignoring malformed progress push for {key}: {e}")
                return

            if progress is not None:
                self._cache[key] = progress
            try:
                callback(progress)
            except Exception:
                logger.exception(f"Progress subscriber for {key} failed")

        subscription = self.store.subscribe_to_user_progress(user_id, project_id, on_push)
        self._subscriptions.add(subscription)
        return subscription
