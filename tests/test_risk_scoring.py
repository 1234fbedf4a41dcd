import pytest

from launchkit.models import Risk, RiskCategory, RiskLevel, RiskRating
from launchkit.risk_scoring import (
    GENERIC_MITIGATION_ACTIONS,
    calculate_overall_risk_level,
    calculate_risk_score,
    get_mitigation_actions,
    level_to_priority,
    prioritize_risks,
)

EXPECTED = {
    ("low", "low"): ("low", 1),
    ("medium", "low"): ("low", 2),
    ("high", "low"): ("medium", 3),
    ("low", "medium"): ("low", 2),
    ("medium", "medium"): ("medium", 4),
    ("high", "medium"): ("high", 6),
    ("low", "high"): ("medium", 3),
    ("medium", "high"): ("high", 6),
    ("high", "high"): ("critical", 9),
}


def _risk(id, probability, impact, priority=1, category=RiskCategory.MARKET):
    return Risk(
        id=id,
        title=id,
        description=id,
        category=category,
        probability=RiskRating(probability),
        impact=RiskRating(impact),
        priority=priority,
        mitigation="",
    )


def test_risk_score_table():
    for (probability, impact), (level, score) in EXPECTED.items():
        result = calculate_risk_score(probability, impact)
        assert result.level == RiskLevel(level), (probability, impact)
        assert result.score == score, (probability, impact)
        assert result.probability * result.impact == score


def test_risk_score_rejects_unknown_rating():
    with pytest.raises(ValueError):
        calculate_risk_score("extreme", "low")


def test_level_to_priority():
    assert level_to_priority("low") == 1
    assert level_to_priority(RiskLevel.MEDIUM) == 2
    assert level_to_priority(RiskLevel.HIGH) == 3
    assert level_to_priority(RiskLevel.CRITICAL) == 3


def test_overall_risk_level():
    assert calculate_overall_risk_level([]) == RiskLevel.LOW
    assert calculate_overall_risk_level([_risk("a", "low", "high")]) == RiskLevel.LOW
    assert calculate_overall_risk_level([_risk("a", "high", "high")]) == RiskLevel.MEDIUM
    two = [_risk("a", "high", "medium"), _risk("b", "medium", "high"), _risk("c", "low", "low")]
    assert calculate_overall_risk_level(two) == RiskLevel.MEDIUM
    three = two + [_risk("d", "high", "high")]
    assert calculate_overall_risk_level(three) == RiskLevel.HIGH


def test_prioritize_risks_sorts_by_score_then_priority_stably():
    risks = [
        _risk("low", "low", "low", priority=1),
        _risk("mid-1", "high", "low", priority=2),
        _risk("crit", "high", "high", priority=3),
        _risk("mid-2", "low", "high", priority=3),
        _risk("mid-3", "high", "low", priority=2),
    ]

    ordered = [r.id for r in prioritize_risks(risks)]

    assert ordered == ["crit", "mid-2", "mid-1", "mid-3", "low"]


def test_mitigation_actions_by_category():
    technical = get_mitigation_actions(_risk("t", "low", "low", category=RiskCategory.TECHNICAL))
    assert technical[0] == "Consult with technical experts"
    assert len(technical) == 3

    odd = _risk("x", "low", "low")
    odd.category = "legal"
    assert get_mitigation_actions(odd) == GENERIC_MITIGATION_ACTIONS
