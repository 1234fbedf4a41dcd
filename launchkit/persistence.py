"""
Document-store collaborators for launchkit.

ProgressStore / ProjectDataStore describe what the tracker and the
recommendation service need from the remote store. LocalDocumentStore is an
in-process implementation with optional JSON persistence, used for local
runs and tests; it also lets callers simulate pushes and transient failures.
"""
import copy
import json
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from launchkit.logger import get_logger
from launchkit.models import (
    Phase,
    ProjectData,
    StepProgress,
    StepStatus,
    UserProgress,
    progress_from_dict,
    progress_to_dict,
    project_from_dict,
)
from launchkit.progress_calculator import refresh_phase

logger = get_logger("persistence")

ProgressCallback = Callable[[Union[UserProgress, Dict[str, Any], None]], None]


class Subscription:
    """Cancellable handle for a real-time progress channel.

    Calling the handle is the same as calling unsubscribe(); both are
    idempotent.
    """

    def __init__(self, key: str, on_cancel: Optional[Callable[[], None]] = None):
        self.key = key
        self._on_cancel = on_cancel
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        if self._on_cancel is not None:
            self._on_cancel()
            self._on_cancel = None

    def __call__(self) -> None:
        self.unsubscribe()


class ProgressStore(ABC):
    """Remote store holding one progress document per (user, project)."""

    @abstractmethod
    async def get_user_progress(self, user_id: str, project_id: str) -> Optional[UserProgress]:
        pass

    @abstractmethod
    async def create_user_progress(
        self, user_id: str, project_id: str, initial_phase: Phase = Phase.VALIDATION
    ) -> UserProgress:
        pass

    @abstractmethod
    async def update_step_progress(
        self,
        user_id: str,
        project_id: str,
        phase: Phase,
        step_id: str,
        status: StepStatus,
        data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> None:
        pass

    @abstractmethod
    async def update_current_phase(self, user_id: str, project_id: str, phase: Phase) -> None:
        pass

    @abstractmethod
    def subscribe_to_user_progress(
        self, user_id: str, project_id: str, callback: ProgressCallback
    ) -> Subscription:
        """Register for pushes. The callback receives a UserProgress, a raw
        document dict, or None when the document was removed."""
        pass


class ProjectDataStore(ABC):
    """Read-only access to project descriptions."""

    @abstractmethod
    async def get_project_data(self, project_id: str) -> Optional[ProjectData]:
        pass


def progress_key(user_id: str, project_id: str) -> str:
    return f"{user_id}_{project_id}"


class LocalDocumentStore(ProgressStore, ProjectDataStore):
    """In-process document store with optional JSON file persistence.

    Documents are held as plain dicts, the same shape a remote store would
    return. Every write notifies the subscribers of that document.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path is not None else None
        self._progress: Dict[str, Dict[str, Any]] = {}
        self._projects: Dict[str, Dict[str, Any]] = {}
        self._subscribers: Dict[str, List[Tuple[Subscription, ProgressCallback]]] = {}
        self._failures: List[BaseException] = []
        self.calls: List[Tuple[str, tuple]] = []
        self._load()

    # ------------------------------------------------------------------
    # File persistence
    # ------------------------------------------------------------------
    def _load(self) -> None:
        if self._path is None or not self._path.exists():
            return
        try:
            with open(self._path, "r", encoding="utf-8") as f:
                payload = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning(f"Could not read document store {self._path}: {e}")
            return
        self._progress = payload.get("progress", {}) if isinstance(payload, dict) else {}
        self._projects = payload.get("projects", {}) if isinstance(payload, dict) else {}

    def save(self) -> None:
        if self._path is None:
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = {"progress": self._progress, "projects": self._projects}
        with open(self._path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

    # ------------------------------------------------------------------
    # Test hooks
    # ------------------------------------------------------------------
    def fail_next(self, count: int = 1, error: Optional[BaseException] = None) -> None:
        """Make the next `count` writes raise `error` (ConnectionError by default)."""
        for _ in range(count):
            self._failures.append(error or ConnectionError("document store unavailable"))

    def push(self, user_id: str, project_id: str, document: Any) -> None:
        """Deliver a remote change to subscribers without touching stored state."""
        self._notify(progress_key(user_id, project_id), document)

    def document(self, user_id: str, project_id: str) -> Optional[Dict[str, Any]]:
        doc = self._progress.get(progress_key(user_id, project_id))
        return copy.deepcopy(doc) if doc is not None else None

    def put_project(self, project: Union[ProjectData, Dict[str, Any]]) -> None:
        if isinstance(project, ProjectData):
            project = {
                "id": project.id,
                "user_id": project.user_id,
                "name": project.name,
                "description": project.description,
                "industry": project.industry,
                "target_market": project.target_market,
                "stage": getattr(project.stage, "value", project.stage),
                "data": project.data,
                "created_at": project.created_at.isoformat() if project.created_at else None,
                "updated_at": project.updated_at.isoformat() if project.updated_at else None,
            }
        self._projects[project["id"]] = copy.deepcopy(project)
        self.save()

    def put_progress(self, progress: UserProgress) -> None:
        self._progress[progress_key(progress.user_id, progress.project_id)] = progress_to_dict(progress)
        self.save()

    # ------------------------------------------------------------------
    # ProgressStore
    # ------------------------------------------------------------------
    def _check_failure(self) -> None:
        if self._failures:
            raise self._failures.pop(0)

    def _notify(self, key: str, document: Any) -> None:
        for subscription, callback in list(self._subscribers.get(key, [])):
            if subscription.active:
                callback(copy.deepcopy(document))

    def _commit(self, progress: UserProgress) -> None:
        key = progress_key(progress.user_id, progress.project_id)
        self._progress[key] = progress_to_dict(progress)
        self.save()
        self._notify(key, self._progress[key])

    async def get_user_progress(self, user_id: str, project_id: str) -> Optional[UserProgress]:
        self.calls.append(("get_user_progress", (user_id, project_id)))
        doc = self._progress.get(progress_key(user_id, project_id))
        return progress_from_dict(doc) if doc is not None else None

    async def create_user_progress(
        self, user_id: str, project_id: str, initial_phase: Phase = Phase.VALIDATION
    ) -> UserProgress:
        self.calls.append(("create_user_progress", (user_id, project_id, initial_phase)))
        self._check_failure()
        progress = UserProgress(user_id=user_id, project_id=project_id, current_phase=initial_phase)
        self._commit(progress)
        return progress

    async def update_step_progress(
        self,
        user_id: str,
        project_id: str,
        phase: Phase,
        step_id: str,
        status: StepStatus,
        data: Optional[Dict[str, Any]] = None,
        notes: Optional[str] = None,
    ) -> None:
        self.calls.append(("update_step_progress", (user_id, project_id, phase, step_id, status)))
        self._check_failure()
        doc = self._progress.get(progress_key(user_id, project_id))
        progress = progress_from_dict(doc) if doc else UserProgress(user_id=user_id, project_id=project_id)

        now = datetime.now()
        phase_progress = progress.phase(phase)
        step = phase_progress.find_step(step_id)
        if step is None:
            step = StepProgress(step_id=step_id)
            phase_progress.steps.append(step)
        step.status = StepStatus(status)
        step.data = data or {}
        step.notes = notes
        step.completed_at = now if step.status == StepStatus.COMPLETED else None
        if step.status == StepStatus.IN_PROGRESS and step.started_at is None:
            step.started_at = now
        refresh_phase(phase_progress, now)
        progress.updated_at = now
        self._commit(progress)

    async def update_current_phase(self, user_id: str, project_id: str, phase: Phase) -> None:
        self.calls.append(("update_current_phase", (user_id, project_id, phase)))
        self._check_failure()
        doc = self._progress.get(progress_key(user_id, project_id))
        if doc is None:
            raise KeyError(f"No progress document for {progress_key(user_id, project_id)}")
        progress = progress_from_dict(doc)
        progress.current_phase = Phase.coerce(phase)
        progress.updated_at = datetime.now()
        self._commit(progress)

    def subscribe_to_user_progress(
        self, user_id: str, project_id: str, callback: ProgressCallback
    ) -> Subscription:
        key = progress_key(user_id, project_id)
        entries = self._subscribers.setdefault(key, [])

        def remove() -> None:
            self._subscribers[key] = [e for e in self._subscribers.get(key, []) if e[0] is not subscription]

        subscription = Subscription(key, on_cancel=remove)
        entries.append((subscription, callback))
        return subscription

    def subscriber_count(self, user_id: str, project_id: str) -> int:
        return len(self._subscribers.get(progress_key(user_id, project_id), []))

    # ------------------------------------------------------------------
    # ProjectDataStore
    # ------------------------------------------------------------------
    async def get_project_data(self, project_id: str) -> Optional[ProjectData]:
        self.calls.append(("get_project_data", (project_id,)))
        doc = self._projects.get(project_id)
        return project_from_dict(doc) if doc is not None else None
