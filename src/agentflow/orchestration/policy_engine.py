"""
agentflow.orchestration.policy_engine - Declarative Policy Evaluation
=======================================================================

Policies are tenant-authored ``condition → action`` rules. The Policy Engine
fetches the active rules for a (tenant, agent type) pair and evaluates them
against a fact snapshot, producing the matched policies and the ordered list
of actions they propose. It never chooses between actions; that is the
DecisionEngine's job.

Evaluation Flow:

    facts ──→ ┌──────────────────────────────────┐
              │  evaluate_policies(facts, rules)  │
              │                                  │
              │  for policy in rules:            │
              │    if ALL conditions hold:       │
              │      matched += policy           │
              │      actions += policy.actions   │
              └──────────────────────────────────┘
                              │
                              ↓
              PolicyEvaluation(matched=[A, B],
                               actions=[A.alert, B.log])

Fail-Closed Rules:
    A condition never raises. Whatever goes wrong inside one condition
    (non-numeric operand, unknown operator, odd value types) makes that
    condition false, so one malformed policy cannot block its siblings.

    Operator        Semantics
    ────────        ─────────
    > < >= <=       numeric; both operands coerced, false if either fails
    = !=            strict equality (no coercion), != is its negation;
                    lists and objects never compare equal
    contains        case-insensitive substring, false unless both are str
    not_contains    true only if both are str and the substring is absent
    anything else   false

Precedence:
    There is no priority field. Policies are evaluated in the order the
    StateManager returns them (insertion order), and the first matched
    policy's first action is the one a Decision picks.
"""

from __future__ import annotations

import math
from typing import Any, Optional

import structlog

from agentflow.core.enums import ConditionOperator
from agentflow.core.models import (
    Policy,
    PolicyCondition,
    PolicyEvaluation,
    ProposedAction,
)
from agentflow.orchestration.state_manager import StateManager

logger = structlog.get_logger()

# Marks a field that is absent from the fact snapshot, as opposed to one
# that is present with a ``None`` value.
_MISSING = object()

_NUMERIC_OPERATORS = {
    ConditionOperator.GREATER_THAN: lambda a, b: a > b,
    ConditionOperator.LESS_THAN: lambda a, b: a < b,
    ConditionOperator.GREATER_OR_EQUAL: lambda a, b: a >= b,
    ConditionOperator.LESS_OR_EQUAL: lambda a, b: a <= b,
}


# =============================================================================
# Operand Helpers
# =============================================================================
def _to_number(value: Any) -> Optional[float]:
    """Coerce a JSON-ish value to a number, or None if it is not numeric.

    Numbers pass through, booleans become 0/1, strings are parsed after
    trimming (the empty string is 0) and an explicit None is 0. NaN and
    every other type are not numeric.
    """
    if value is _MISSING:
        return None
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return 1.0 if value else 0.0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            number = float(text)
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) else number


def _strict_equals(left: Any, right: Any) -> bool:
    """Equality without coercion: ``"1" != 1`` and ``True != 1``.

    A list or object on either side never equals anything, even a value
    with the same contents.
    """
    if left is _MISSING:
        return False
    if isinstance(left, (list, dict)) or isinstance(right, (list, dict)):
        return False
    left_is_number = isinstance(left, (int, float)) and not isinstance(left, bool)
    right_is_number = isinstance(right, (int, float)) and not isinstance(right, bool)
    if left_is_number and right_is_number:
        return left == right
    if type(left) is not type(right):
        return False
    return left == right


def _contains(haystack: Any, needle: Any) -> Optional[bool]:
    """Case-insensitive substring test, or None unless both sides are str."""
    if not isinstance(haystack, str) or not isinstance(needle, str):
        return None
    return needle.lower() in haystack.lower()


# =============================================================================
# Condition Evaluation
# =============================================================================
def evaluate_condition(facts: dict[str, Any], condition: PolicyCondition) -> bool:
    """Evaluate one condition against a fact snapshot. Never raises.

    Args:
        facts: The input fact snapshot.
        condition: ``facts[condition.field] <operator> condition.value``.

    Returns:
        True only if the condition positively holds.
    """
    try:
        return _evaluate(facts, condition)
    except Exception as exc:
        logger.warning(
            "condition_evaluation_failed",
            component="policy_engine",
            field=condition.field,
            operator=condition.operator,
            error=str(exc),
        )
        return False


def _evaluate(facts: dict[str, Any], condition: PolicyCondition) -> bool:
    try:
        operator = ConditionOperator(condition.operator)
    except ValueError:
        logger.debug(
            "unknown_condition_operator",
            component="policy_engine",
            operator=condition.operator,
        )
        return False

    actual = facts.get(condition.field, _MISSING)
    expected = condition.value

    if operator in _NUMERIC_OPERATORS:
        left = _to_number(actual)
        right = _to_number(expected)
        if left is None or right is None:
            return False
        return _NUMERIC_OPERATORS[operator](left, right)

    if operator == ConditionOperator.EQUALS:
        return _strict_equals(actual, expected)
    if operator == ConditionOperator.NOT_EQUALS:
        return not _strict_equals(actual, expected)

    found = _contains(actual, expected)
    if found is None:
        return False
    if operator == ConditionOperator.CONTAINS:
        return found
    return not found


def evaluate_policies(
    facts: dict[str, Any], policies: list[Policy]
) -> PolicyEvaluation:
    """Evaluate policies in iteration order.

    A policy matches iff every condition holds; a policy without conditions
    matches unconditionally. Each matched policy contributes all of its
    actions, in declaration order, tagged with the policy name.
    """
    evaluation = PolicyEvaluation()
    for policy in policies:
        if all(evaluate_condition(facts, c) for c in policy.conditions):
            evaluation.matched.append(policy)
            evaluation.actions.extend(
                ProposedAction(
                    action=action.action,
                    params=action.params,
                    policy_name=policy.name,
                )
                for action in policy.actions
            )
    return evaluation


# =============================================================================
# Policy Engine
# =============================================================================
class PolicyEngine:
    """Loads active policies from the StateManager and evaluates them.

    Example:
        >>> engine = PolicyEngine(state_manager)
        >>> policies = await engine.active_policies("acme", "operations")
        >>> result = engine.evaluate_policies({"score": 50}, policies)
        >>> result.matched_names
        ['low score', 'always log']
    """

    def __init__(self, state_manager: StateManager) -> None:
        self._state = state_manager
        self._logger = logger.bind(component="policy_engine")

    async def active_policies(self, tenant_id: str, agent_type: str) -> list[Policy]:
        """Return the active policies for exactly this tenant and agent type.

        Raises:
            StateError: If the backend is unavailable.
        """
        return await self._state.list_policies(
            tenant_id, agent_type, active_only=True
        )

    @staticmethod
    def evaluate_condition(facts: dict[str, Any], condition: PolicyCondition) -> bool:
        return evaluate_condition(facts, condition)

    def evaluate_policies(
        self, facts: dict[str, Any], policies: list[Policy]
    ) -> PolicyEvaluation:
        evaluation = evaluate_policies(facts, policies)
        self._logger.debug(
            "policies_evaluated",
            policies_evaluated=len(policies),
            matched=evaluation.matched_names,
            actions=[a.action for a in evaluation.actions],
        )
        return evaluation
