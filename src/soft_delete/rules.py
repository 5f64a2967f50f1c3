"""
Rules Checking

Application rules evaluated before an entity is saved or deleted.
"""

from typing import Any, Callable, Dict, List, Tuple
import logging

logger = logging.getLogger(__name__)

SAVE = "save"
DELETE = "delete"

Rule = Callable[..., Any]


class RulesChecker:
    """
    Ordered collection of named rules per operation mode.

    A rule is called as ``rule(entity, options)`` and fails when it returns
    ``False`` or a string (taken as the error message). Every rule for the
    mode runs, so ``errors`` lists all failures of the last check.
    """

    def __init__(self):
        self._rules: Dict[str, List[Tuple[str, Rule]]] = {SAVE: [], DELETE: []}
        self.errors: List[str] = []

    def add(self, rule: Rule, mode: str = SAVE, name: str = "") -> Rule:
        if mode not in self._rules:
            raise ValueError(f"Unknown rules mode: {mode}")
        self._rules[mode].append((name or getattr(rule, "__name__", "rule"), rule))
        return rule

    def add_delete(self, rule: Rule, name: str = "") -> Rule:
        return self.add(rule, DELETE, name)

    def add_save(self, rule: Rule, name: str = "") -> Rule:
        return self.add(rule, SAVE, name)

    def check(self, entity: Any, mode: str, options: Any = None) -> bool:
        self.errors = []
        for name, rule in self._rules.get(mode, []):
            outcome = rule(entity, options)
            if outcome is False:
                self.errors.append(f"{name} failed")
            elif isinstance(outcome, str):
                self.errors.append(outcome)

        if self.errors:
            logger.info("Rules failed on %s for %r: %s", mode, entity, "; ".join(self.errors))
            return False
        return True
