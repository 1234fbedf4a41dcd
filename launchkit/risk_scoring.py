"""
Risk scoring for launchkit.

The risk level is a direct lookup on (probability, impact), not a threshold
on the numeric score: low/high and high/low are both "medium" although their
score (3) is below medium/medium (4).
"""
from typing import Dict, Iterable, List, Tuple, Union

from launchkit.logger import get_logger
from launchkit.models import Risk, RiskCategory, RiskLevel, RiskRating, RiskScore

logger = get_logger("risk_scoring")

RATING_VALUES: Dict[RiskRating, int] = {
    RiskRating.LOW: 1,
    RiskRating.MEDIUM: 2,
    RiskRating.HIGH: 3,
}

# (probability, impact) -> level
RISK_LEVEL_TABLE: Dict[Tuple[RiskRating, RiskRating], RiskLevel] = {
    (RiskRating.LOW, RiskRating.LOW): RiskLevel.LOW,
    (RiskRating.MEDIUM, RiskRating.LOW): RiskLevel.LOW,
    (RiskRating.HIGH, RiskRating.LOW): RiskLevel.MEDIUM,
    (RiskRating.LOW, RiskRating.MEDIUM): RiskLevel.LOW,
    (RiskRating.MEDIUM, RiskRating.MEDIUM): RiskLevel.MEDIUM,
    (RiskRating.HIGH, RiskRating.MEDIUM): RiskLevel.HIGH,
    (RiskRating.LOW, RiskRating.HIGH): RiskLevel.MEDIUM,
    (RiskRating.MEDIUM, RiskRating.HIGH): RiskLevel.HIGH,
    (RiskRating.HIGH, RiskRating.HIGH): RiskLevel.CRITICAL,
}

LEVEL_PRIORITY: Dict[RiskLevel, int] = {
    RiskLevel.LOW: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 3,
}

MITIGATION_ACTIONS: Dict[RiskCategory, List[str]] = {
    RiskCategory.TECHNICAL: [
        "Consult with technical experts",
        "Create detailed technical specifications",
        "Prototype critical components early",
    ],
    RiskCategory.MARKET: [
        "Conduct additional market research",
        "Validate assumptions with target customers",
        "Consider pivot strategies",
    ],
    RiskCategory.FINANCIAL: [
        "Review financial projections",
        "Explore additional funding sources",
        "Optimize cost structure",
    ],
    RiskCategory.OPERATIONAL: [
        "Streamline processes",
        "Identify resource gaps",
        "Plan for scalability",
    ],
    RiskCategory.TIMELINE: [
        "Break down tasks into smaller steps",
        "Set regular milestones",
        "Increase work frequency",
    ],
}

GENERIC_MITIGATION_ACTIONS = [
    "Assess the risk impact",
    "Develop mitigation strategies",
    "Monitor risk indicators",
]

Rating = Union[RiskRating, str]


def calculate_risk_score(probability: Rating, impact: Rating) -> RiskScore:
    """
    Score a risk from its qualitative probability and impact.

    Raises:
        ValueError: either rating is not low / medium / high.
    """
    p = RiskRating(probability)
    i = RiskRating(impact)
    p_value = RATING_VALUES[p]
    i_value = RATING_VALUES[i]
    return RiskScore(
        probability=p_value,
        impact=i_value,
        score=p_value * i_value,
        level=RISK_LEVEL_TABLE[(p, i)],
    )


def level_to_priority(level: Union[RiskLevel, str]) -> int:
    return LEVEL_PRIORITY[RiskLevel(level)]


def priority_for(probability: Rating, impact: Rating) -> int:
    """Integer priority 1-3 for a (probability, impact) pair."""
    return level_to_priority(calculate_risk_score(probability, impact).level)


def calculate_overall_risk_level(risks: Iterable[Risk]) -> RiskLevel:
    """low for no high/critical risks, medium for one or two, high for three or more."""
    severe = 0
    for risk in risks or ():
        try:
            level = calculate_risk_score(risk.probability, risk.impact).level
        except (ValueError, AttributeError) as e:
            logger.warning(f"Skipping unscorable risk {getattr(risk, 'id', risk)!r}: {e}")
            continue
        if level in (RiskLevel.HIGH, RiskLevel.CRITICAL):
            severe += 1

    if severe == 0:
        return RiskLevel.LOW
    if severe <= 2:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


def prioritize_risks(risks: Iterable[Risk]) -> List[Risk]:
    """Stable sort by score, then by the risk's own priority, both descending."""
    def sort_key(risk: Risk) -> Tuple[int, int]:
        try:
            score = calculate_risk_score(risk.probability, risk.impact).score
        except ValueError:
            score = 0
        return score, risk.priority

    return sorted(risks or (), key=sort_key, reverse=True)


def get_mitigation_actions(risk: Risk) -> List[str]:
    try:
        category = RiskCategory(risk.category)
    except ValueError:
        return list(GENERIC_MITIGATION_ACTIONS)
    return list(MITIGATION_ACTIONS.get(category, GENERIC_MITIGATION_ACTIONS))
