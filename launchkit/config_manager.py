"""
Configuration manager for launchkit.

Central place for every tunable threshold used by the tracker and the
recommendation rules. All values are heuristics and may be overridden from
config/runtime.yaml (or the file named by LAUNCHKIT_CONFIG).

Usage:
    from launchkit.config_manager import config
    delta = config.STUCK_AREA_DELTA
"""
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from launchkit.logger import get_logger

CONFIG_DIR = Path(__file__).parent.parent / "config"
RUNTIME_CONFIG_PATH = CONFIG_DIR / "runtime.yaml"

logger = get_logger("config")


@dataclass
class SystemConfig:
    """
    Runtime constants.

    Each value is an empirical default; the comment above it says what it
    controls.
    """

    # === Autosave ===

    # Quiet period before a pending write is flushed to the store
    AUTO_SAVE_ENABLED: bool = True
    AUTO_SAVE_DEBOUNCE_MS: int = 2000

    # Extra attempts after the first failed write
    MAX_RETRIES: int = 3

    # Base delay between attempts; "fixed" or "exponential"
    RETRY_DELAY_MS: int = 1000
    RETRY_BACKOFF: str = "exponential"

    # === Progress heuristics ===

    # A started phase is stuck when it trails overall completion by more
    # than this many percentage points
    STUCK_AREA_DELTA: float = 10.0

    # Momentum day boundaries (last update within N days)
    MOMENTUM_HIGH_DAYS: float = 2.0
    MOMENTUM_MEDIUM_DAYS: float = 7.0

    # Current phase completion below this is called out in summaries
    LOW_PHASE_COMPLETION: int = 50

    # === Risk rules ===

    # Validation below this while the user has moved on is a market risk
    VALIDATION_RISK_THRESHOLD: int = 80
    TECHNICAL_LAG_THRESHOLD: int = 40
    TECHNICAL_LAG_OVERALL: float = 60.0
    FINANCIAL_LAG_THRESHOLD: int = 30
    FINANCIAL_LAG_OVERALL: float = 50.0

    # No update for this many days raises a timeline risk
    INACTIVITY_DAYS: int = 30

    # Risks at or above this priority get a mitigation recommendation
    MITIGATION_PRIORITY_THRESHOLD: int = 2

    # === Recommendation rules ===

    # Industry-critical phases below this completion get a critical-path item
    CRITICAL_PHASE_THRESHOLD: int = 50

    # Budgets under this count as low budget
    LOW_BUDGET_THRESHOLD: int = 10000
    DEFAULT_BUDGET: int = 10000
    DEFAULT_TEAM_SIZE: int = 1

    # Completion rate (0-1) under which users get a completion boost
    LOW_COMPLETION_RATE: float = 0.3

    # A step in progress longer than this is recorded as a stuck point
    STUCK_STEP_DAYS: int = 7

    # Cap on items returned by insight views
    MAX_INSIGHT_RECOMMENDATIONS: int = 5

    # Industry -> phases that decide success for that industry
    INDUSTRY_CRITICAL_PHASES: Optional[Dict[str, Any]] = None

    def __post_init__(self):
        if self.INDUSTRY_CRITICAL_PHASES is None:
            self.INDUSTRY_CRITICAL_PHASES = {
                "saas": ["technical", "marketing"],
                "technology": ["technical"],
                "fintech": ["financial", "risk"],
                "ecommerce": ["marketing", "operations"],
                "marketplace": ["marketing", "operations"],
                "healthcare": ["risk", "operations"],
                "hardware": ["technical", "financial"],
            }


def _config_path() -> Path:
    raw = os.getenv("LAUNCHKIT_CONFIG", "").strip()
    if raw:
        return Path(raw).expanduser()
    return RUNTIME_CONFIG_PATH


def _load_runtime_config(path: Optional[Path] = None) -> dict:
    """Load runtime overrides if the file exists."""
    path = path or _config_path()
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (yaml.YAMLError, OSError) as e:
        logger.warning(f"Ignoring unreadable runtime config {path}: {e}")
        return {}

    if not isinstance(data, dict):
        logger.warning(f"Ignoring runtime config {path}: expected a mapping")
        return {}
    return data


def get_config(path: Optional[Path] = None) -> SystemConfig:
    """
    Build a SystemConfig.

    Priority: runtime.yaml > defaults. Unknown keys are ignored.
    """
    base = SystemConfig()
    overrides = _load_runtime_config(path)
    known = {f.name for f in fields(base)}

    for key, value in overrides.items():
        if key in known:
            setattr(base, key, value)
        else:
            logger.debug(f"Unknown config key ignored: {key}")

    return base


# Process-wide default; components accept an explicit SystemConfig too
config = get_config()
