"""
Declarative rules for launchkit.

A Rule pairs a predicate with a builder. Rules in a list are evaluated
independently: every rule whose predicate holds contributes exactly one
output, and a rule that raises contributes nothing.
"""
from dataclasses import dataclass
from typing import Callable, Generic, Iterable, List, TypeVar

from launchkit.logger import get_logger

logger = get_logger("rules")

C = TypeVar("C")
T = TypeVar("T")


@dataclass(frozen=True)
class Rule(Generic[C, T]):
    name: str
    predicate: Callable[[C], bool]
    build: Callable[[C], T]

    def applies(self, context: C) -> bool:
        return bool(self.predicate(context))


def evaluate_rule(rule: Rule, context) -> List:
    """Zero or one output for a single rule."""
    try:
        if not rule.applies(context):
            return []
        return [rule.build(context)]
    except Exception:
        logger.exception(f"Rule {rule.name} failed; skipping")
        return []


def evaluate_rules(rules: Iterable[Rule], context) -> List:
    """Outputs of every matching rule, in rule order."""
    outputs = []
    for rule in rules:
        outputs.extend(evaluate_rule(rule, context))
    return outputs
