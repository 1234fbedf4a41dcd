"""
Walk a project through the first validation steps and print where it stands.

Usage:
    python -m launchkit
    python -m launchkit --store progress.json --log-dir logs --user alice --project acme
"""
import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from launchkit.exceptions import LaunchKitError
from launchkit.logger import get_logger, setup_logging
from launchkit.models import Phase, StepStatus, recommendation_to_dict
from launchkit.persistence import LocalDocumentStore
from launchkit.progress_tracker import ProgressTracker
from launchkit.recommendation_engine import RecommendationEngine

logger = get_logger("cli")

MARKET_RESEARCH = {
    "marketSize": "$2.5B",
    "growthRate": "15% annually",
    "keyTrends": ["AI adoption", "Remote work", "Digital transformation"],
}


async def walkthrough(store: LocalDocumentStore, user_id: str, project_id: str) -> Dict[str, Any]:
    tracker = ProgressTracker(store)
    try:
        await tracker.initialize_progress(user_id, project_id)
        await tracker.update_step_progress(
            user_id, project_id, Phase.VALIDATION, "market-research", StepStatus.COMPLETED,
            MARKET_RESEARCH, "Initial market research completed",
        )
        await tracker.update_step_progress(
            user_id, project_id, Phase.VALIDATION, "competitor-analysis", StepStatus.IN_PROGRESS, {},
        )
        await tracker.flush(user_id, project_id)
        summary = await tracker.get_progress_summary(user_id, project_id)
    finally:
        await tracker.close()

    next_steps = RecommendationEngine().calculate_next_steps(summary.progress)
    calculation = summary.calculation
    logger.info(f"Walkthrough for {user_id}/{project_id} at {calculation.overall_completion:.1f}%")
    return {
        "userId": user_id,
        "projectId": project_id,
        "currentPhase": summary.progress.current_phase.value,
        "overallCompletion": calculation.overall_completion,
        "phaseCompletion": {phase.value: pct for phase, pct in calculation.phase_completion.items()},
        "nextStep": calculation.next_step.step_id if calculation.next_step else None,
        "recommendations": summary.recommendations,
        "risks": summary.risks,
        "nextSteps": [recommendation_to_dict(rec) for rec in next_steps],
    }


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Record sample progress and show the recommended next steps.")
    parser.add_argument("--store", type=Path, default=None, help="JSON file to keep progress in (default: memory only).")
    parser.add_argument("--log-dir", type=Path, default=None, help="Override the log directory.")
    parser.add_argument("--log-level", default="INFO", help="Level for system.log, e.g. DEBUG.")
    parser.add_argument("--user", default="demo-user")
    parser.add_argument("--project", default="demo-project")
    args = parser.parse_args(argv)

    try:
        setup_logging(log_level=args.log_level, logs_dir=args.log_dir)
    except ValueError as e:
        parser.error(str(e))

    try:
        report = asyncio.run(walkthrough(LocalDocumentStore(args.store), args.user, args.project))
    except LaunchKitError as e:
        logger.error(f"Walkthrough failed: {e.message}")
        print(e.get_user_message(), file=sys.stderr)
        return 1

    print(json.dumps(report, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
