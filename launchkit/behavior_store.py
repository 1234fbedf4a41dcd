"""
Per-user behavior pattern storage.

The recommendation engine is handed a BehaviorPatternStore instead of keeping
patterns in module state, so each engine (and each test) sees only its own
users.
"""
import copy
from abc import ABC, abstractmethod
from typing import Dict, Optional

from launchkit.models import BehaviorPattern


class BehaviorPatternStore(ABC):
    """Keyed store of BehaviorPattern records, one per user."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[BehaviorPattern]:
        pass

    @abstractmethod
    def save(self, pattern: BehaviorPattern) -> None:
        pass

    def exists(self, user_id: str) -> bool:
        return self.get(user_id) is not None


class InMemoryBehaviorPatternStore(BehaviorPatternStore):
    """Dict-backed store. Returns copies so callers cannot mutate stored state."""

    def __init__(self):
        self._patterns: Dict[str, BehaviorPattern] = {}

    def get(self, user_id: str) -> Optional[BehaviorPattern]:
        pattern = self._patterns.get(user_id)
        return copy.deepcopy(pattern) if pattern is not None else None

    def save(self, pattern: BehaviorPattern) -> None:
        self._patterns[pattern.user_id] = copy.deepcopy(pattern)

