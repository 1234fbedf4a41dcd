"""
launchkit: progress tracking and rule-based recommendations for a
multi-phase product launch plan.
"""
from launchkit.behavior_store import BehaviorPatternStore, InMemoryBehaviorPatternStore
from launchkit.config_manager import SystemConfig, get_config
from launchkit.exceptions import (
    ConfigError,
    LaunchKitError,
    PersistenceError,
    ProgressTrackingError,
    StepDataValidationError,
)
from launchkit.models import (
    PHASE_ORDER,
    BehaviorPattern,
    ContentContext,
    ContentSuggestions,
    Momentum,
    Phase,
    PhaseProgress,
    Priority,
    ProgressCalculation,
    ProgressSummary,
    ProjectContext,
    ProjectData,
    ProjectStage,
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
)
from launchkit.persistence import LocalDocumentStore, ProgressStore, ProjectDataStore, Subscription
from launchkit.progress_calculator import ProgressCalculator
from launchkit.progress_tracker import AutoSaveConfig, ProgressTracker, UpdateOptions
from launchkit.recommendation_engine import RecommendationEngine
from launchkit.recommendation_service import RecommendationService
from launchkit.write_queue import RetryPolicy, WriteQueue

__version__ = "0.1.0"
