"""
Tests for agentflow.orchestration.policy_engine
=================================================

What's Being Tested:
    - evaluate_condition: every operator, numeric coercion, fail-closed rules
    - evaluate_policies:  conjunction, vacuous truth, action ordering
    - PolicyEngine:       active policy lookup per tenant/agent type

Fail-closed contract:
    A condition never raises; anything it cannot evaluate is "no match".
"""

import pytest

from agentflow.core.models import Policy, PolicyAction, PolicyCondition
from agentflow.orchestration.policy_engine import (
    PolicyEngine,
    evaluate_condition,
    evaluate_policies,
)

TENANT = "acme"
AGENT = "operations"


def _cond(field: str, operator: str, value) -> PolicyCondition:
    return PolicyCondition(field=field, operator=operator, value=value)


def _make_policy(
    name: str,
    conditions: list[PolicyCondition] | None = None,
    actions: list[str] | None = None,
    active: bool = True,
    tenant_id: str = TENANT,
    agent_type: str = AGENT,
) -> Policy:
    return Policy(
        tenant_id=tenant_id,
        agent_type=agent_type,
        name=name,
        active=active,
        conditions=conditions or [],
        actions=[PolicyAction(action=a) for a in (actions or [])],
    )


# =============================================================================
# Test: Numeric Operators
# =============================================================================
class TestNumericOperators:
    @pytest.mark.parametrize(
        ("operator", "fact", "value", "expected"),
        [
            ("<", 50, 80, True),
            ("<", 80, 80, False),
            (">", 90, 80, True),
            (">=", 80, 80, True),
            ("<=", 81, 80, False),
            ("<", "50", 80, True),        # numeric string is coerced
            ("<", " 50 ", "80", True),    # surrounding whitespace is trimmed
            (">", True, 0, True),         # booleans are 0/1
            ("<", "", 1, True),           # empty string is 0
            ("<", None, 1, True),         # explicit null is 0
            ("<", 1.5, 2, True),
        ],
    )
    def test_comparisons(self, operator, fact, value, expected) -> None:
        assert evaluate_condition({"x": fact}, _cond("x", operator, value)) is expected

    @pytest.mark.parametrize(
        ("fact", "value"),
        [
            ("abc", 80),
            (80, "abc"),
            ([1, 2], 3),
            ({"a": 1}, 3),
            ("NaN", 3),
            (float("nan"), 3),
        ],
    )
    @pytest.mark.parametrize("operator", [">", "<", ">=", "<="])
    def test_non_numeric_operand_is_false(self, fact, value, operator) -> None:
        assert evaluate_condition({"x": fact}, _cond("x", operator, value)) is False

    def test_missing_field_never_satisfies_comparison(self) -> None:
        assert evaluate_condition({}, _cond("x", "<", 80)) is False
        assert evaluate_condition({}, _cond("x", ">", -80)) is False


# =============================================================================
# Test: Equality
# =============================================================================
class TestEquality:
    @pytest.mark.parametrize(
        ("fact", "value", "expected"),
        [
            ("open", "open", True),
            ("open", "Open", False),
            (1, 1.0, True),
            ("1", 1, False),
            (True, 1, False),
            (True, True, True),
            (None, None, True),
            (["a"], ["a"], False),
            ({"k": 1}, {"k": 1}, False),
            ([], [], False),
        ],
    )
    def test_strict_equality(self, fact, value, expected) -> None:
        assert evaluate_condition({"x": fact}, _cond("x", "=", value)) is expected

    def test_not_equals_is_negation(self) -> None:
        assert evaluate_condition({"x": "a"}, _cond("x", "!=", "b")) is True
        assert evaluate_condition({"x": "a"}, _cond("x", "!=", "a")) is False
        assert evaluate_condition({"x": "1"}, _cond("x", "!=", 1)) is True

    def test_collections_never_equal(self) -> None:
        facts = {"tags": ["a", "b"], "meta": {"k": 1}}
        assert evaluate_condition(facts, _cond("tags", "=", ["a", "b"])) is False
        assert evaluate_condition(facts, _cond("meta", "=", {"k": 1})) is False
        assert evaluate_condition(facts, _cond("tags", "!=", ["a", "b"])) is True

    def test_missing_field_equals_nothing(self) -> None:
        assert evaluate_condition({}, _cond("x", "=", None)) is False


# =============================================================================
# Test: Containment
# =============================================================================
class TestContains:
    def test_case_insensitive_substring(self) -> None:
        assert evaluate_condition({"msg": "Disk FULL"}, _cond("msg", "contains", "full")) is True
        assert evaluate_condition({"msg": "all good"}, _cond("msg", "contains", "full")) is False

    @pytest.mark.parametrize(("fact", "value"), [(123, "1"), ("123", 1), (None, "x"), (["full"], "full")])
    def test_non_string_sides_are_false(self, fact, value) -> None:
        assert evaluate_condition({"x": fact}, _cond("x", "contains", value)) is False
        assert evaluate_condition({"x": fact}, _cond("x", "not_contains", value)) is False

    def test_not_contains(self) -> None:
        assert evaluate_condition({"msg": "all good"}, _cond("msg", "not_contains", "FULL")) is True
        assert evaluate_condition({"msg": "disk full"}, _cond("msg", "not_contains", "FULL")) is False


# =============================================================================
# Test: Unknown Operators
# =============================================================================
class TestUnknownOperator:
    @pytest.mark.parametrize("operator", ["~=", "between", "", "LIKE"])
    def test_unknown_operator_is_false(self, operator) -> None:
        assert evaluate_condition({"x": 1}, _cond("x", operator, 1)) is False


# =============================================================================
# Test: evaluate_policies
# =============================================================================
class TestEvaluatePolicies:
    def test_empty_conditions_always_match(self) -> None:
        policy = _make_policy("always", actions=["log"])

        for facts in ({}, {"score": 1}, {"anything": "else"}):
            result = evaluate_policies(facts, [policy])
            assert result.matched_names == ["always"]

    def test_all_conditions_must_hold(self) -> None:
        policy = _make_policy(
            "both",
            conditions=[_cond("score", "<", 80), _cond("region", "=", "eu")],
            actions=["alert"],
        )

        assert evaluate_policies({"score": 50, "region": "eu"}, [policy]).matched_names == ["both"]
        assert evaluate_policies({"score": 50, "region": "us"}, [policy]).matched == []

    def test_actions_in_policy_then_declaration_order(self) -> None:
        first = _make_policy("first", actions=["a1", "a2"])
        skipped = _make_policy("skipped", conditions=[_cond("x", "=", 1)], actions=["never"])
        second = _make_policy("second", actions=["b1"])

        result = evaluate_policies({}, [first, skipped, second])

        assert [(a.action, a.policy_name) for a in result.actions] == [
            ("a1", "first"),
            ("a2", "first"),
            ("b1", "second"),
        ]
        assert result.matched_names == ["first", "second"]

    def test_matched_policy_without_actions(self) -> None:
        result = evaluate_policies({}, [_make_policy("quiet")])
        assert result.matched_names == ["quiet"]
        assert result.actions == []

    def test_malformed_policy_does_not_block_siblings(self) -> None:
        broken = _make_policy(
            "broken",
            conditions=[_cond("score", "???", object()), _cond("score", "<", "lots")],
            actions=["never"],
        )
        good = _make_policy("good", conditions=[_cond("score", "<", 80)], actions=["alert"])

        result = evaluate_policies({"score": 50}, [broken, good])

        assert result.matched_names == ["good"]
        assert [a.action for a in result.actions] == ["alert"]

    def test_action_params_carried_through(self) -> None:
        policy = Policy(
            tenant_id=TENANT,
            agent_type=AGENT,
            name="notify",
            actions=[PolicyAction(action="notify", params={"channel": "ops"})],
        )

        result = evaluate_policies({}, [policy])

        assert result.actions[0].params == {"channel": "ops"}


# =============================================================================
# Test: PolicyEngine
# =============================================================================
class TestPolicyEngine:
    async def test_active_policies_scoped_to_tenant_and_agent(self, state_manager, policy_engine: PolicyEngine) -> None:
        await state_manager.save_policy(_make_policy("mine"))
        await state_manager.save_policy(_make_policy("inactive", active=False))
        await state_manager.save_policy(_make_policy("other-agent", agent_type="finance"))
        await state_manager.save_policy(_make_policy("other-tenant", tenant_id="globex"))

        policies = await policy_engine.active_policies(TENANT, AGENT)

        assert [p.name for p in policies] == ["mine"]

    async def test_no_policies_returns_empty(self, policy_engine: PolicyEngine) -> None:
        assert await policy_engine.active_policies(TENANT, AGENT) == []

    def test_engine_delegates_evaluation(self, policy_engine: PolicyEngine) -> None:
        result = policy_engine.evaluate_policies({"score": 50}, [
            _make_policy("low", conditions=[_cond("score", "<", 80)], actions=["alert"]),
        ])
        assert result.matched_names == ["low"]
        assert policy_engine.evaluate_condition({"score": 50}, _cond("score", ">", 80)) is False
