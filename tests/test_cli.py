import asyncio
import json
import logging

import pytest

from launchkit.__main__ import main
from launchkit.logger import ROOT_LOGGER_NAME
from launchkit.models import Phase, StepStatus
from launchkit.persistence import LocalDocumentStore


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
    logger.handlers.clear()


def test_walkthrough_prints_report_and_keeps_progress(tmp_path, capsys):
    store_path = tmp_path / "progress.json"

    code = main(["--store", str(store_path), "--log-dir", str(tmp_path / "logs"), "--user", "alice", "--project", "acme"])

    assert code == 0
    report = json.loads(capsys.readouterr().out)
    assert report["userId"] == "alice"
    assert report["currentPhase"] == "validation"
    assert report["phaseCompletion"]["validation"] == 50
    assert report["overallCompletion"] == 6.25
    assert report["nextStep"] == "competitor-analysis"
    assert all("id" in rec and "priority" in rec for rec in report["nextSteps"])

    assert "Walkthrough for alice/acme" in (tmp_path / "logs" / "system.log").read_text(encoding="utf-8")

    restored = asyncio.run(LocalDocumentStore(store_path).get_user_progress("alice", "acme"))
    research = restored.phases[Phase.VALIDATION].find_step("market-research")
    assert research.status == StepStatus.COMPLETED
    assert research.data["marketSize"] == "$2.5B"
    assert research.notes == "Initial market research completed"


def test_unknown_log_level_is_a_usage_error(tmp_path):
    with pytest.raises(SystemExit) as info:
        main(["--log-dir", str(tmp_path), "--log-level", "chatty"])

    assert info.value.code == 2
