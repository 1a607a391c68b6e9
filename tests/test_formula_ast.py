import math

import pytest

from formula_ast import (
    ASTDivide,
    ASTMax,
    ASTMin,
    ASTMinus,
    ASTMultiply,
    ASTPlus,
    ASTRound,
)


@pytest.fixture
def constants(model):
    a = model.create_constant_node("A", 3.0)
    b = model.create_constant_node("B", 4.0)
    c = model.create_constant_node("C", 2.0)
    return a, b, c


# ===============================================================================
# Evaluation
# ===============================================================================

def test_arithmetic_operators(constants):
    a, b, c = constants
    assert ASTPlus(a, b).evaluate() == 7.0
    assert ASTMinus(a, b).evaluate() == -1.0
    assert ASTMultiply(a, b).evaluate() == 12.0
    assert ASTDivide(a, c).evaluate() == 1.5
    assert ASTMax(a, b).evaluate() == 4.0
    assert ASTMin(a, b).evaluate() == 3.0


def test_nested_formula_evaluates_recursively(constants):
    a, b, c = constants
    formula = ASTMultiply(ASTPlus(a, b), ASTMinus(a, c))
    assert formula.evaluate() == 7.0


def test_division_by_zero_follows_ieee(model):
    one = model.create_constant_node("One", 1.0)
    minus_one = model.create_constant_node("MinusOne", -1.0)
    zero = model.create_constant_node("Zero", 0.0)

    assert ASTDivide(one, zero).evaluate() == math.inf
    assert ASTDivide(minus_one, zero).evaluate() == -math.inf
    assert math.isnan(ASTDivide(zero, zero).evaluate())


def test_round_is_half_up(model):
    digits_0 = model.create_constant_node("D0", 0.0)
    digits_1 = model.create_constant_node("D1", 1.0)
    value = model.create_constant_node("Value", 2.5)
    negative = model.create_constant_node("Negative", -2.5)
    quarter = model.create_constant_node("Quarter", 1.25)

    assert ASTRound(value, digits_0).evaluate() == 3.0
    assert ASTRound(negative, digits_0).evaluate() == -2.0
    assert ASTRound(quarter, digits_1).evaluate() == 1.3

    # Precision beyond float range keeps the value
    many_digits = model.create_constant_node("D400", 400.0)
    billion = model.create_constant_node("Billion", 1e9)
    assert ASTRound(value, many_digits).evaluate() == 2.5
    huge_digits = ASTMultiply(ASTMultiply(billion, billion), billion)
    assert ASTRound(billion, huge_digits).evaluate() == 1e9
    three_hundred = model.create_constant_node("D300", 300.0)
    assert ASTRound(billion, three_hundred).evaluate() == 1e9

    # Rounding to a unit beyond float range gives zero
    assert ASTRound(value, model.create_constant_node("Minus400", -400.0)).evaluate() == 0.0


def test_leaf_reads_live_node_value(model):
    level = model.create_level_node("Level", 10.0)
    constant = model.create_constant_node("C", 1.0)
    formula = ASTPlus(level, constant)
    assert formula.evaluate() == 11.0

    model.set_start_value(level, 20.0)
    assert formula.evaluate() == 21.0


def test_operator_rejects_missing_operand(constants):
    a, _, _ = constants
    with pytest.raises(ValueError):
        ASTPlus(a, None)
    with pytest.raises(TypeError):
        ASTPlus(a, 1.0)

# ===============================================================================
# Leaves
# ===============================================================================

def test_get_all_nodes_in_subtree_returns_distinct_leaves(constants):
    a, b, c = constants
    formula = ASTPlus(ASTMultiply(a, b), ASTMinus(a, c))
    assert formula.get_all_nodes_in_subtree() == {a, b, c}


def test_leaf_subtree_is_itself(constants):
    a, _, _ = constants
    assert a.get_all_nodes_in_subtree() == {a}

# ===============================================================================
# Rendering
# ===============================================================================

def test_leaf_rendering(model):
    assert model.create_constant_node("A", 1.0).to_string() == "A(CN)"
    assert model.create_level_node("B", 1.0).to_string() == "B(LN)"
    assert model.create_auxiliary_node("X").to_string() == "X(AN)"
    assert model.create_rate_node("R").to_string() == "R(RN)"


def test_left_associative_chain_has_no_parentheses(constants):
    a, b, c = constants
    assert ASTMinus(ASTPlus(a, b), c).to_string() == "A(CN) + B(CN) - C(CN)"
    assert ASTMultiply(ASTMultiply(a, b), c).to_string() == "A(CN) * B(CN) * C(CN)"


def test_right_operand_of_same_precedence_is_parenthesized(constants):
    a, b, c = constants
    assert ASTMinus(a, ASTPlus(b, c)).to_string() == "A(CN) - (B(CN) + C(CN))"
    assert ASTMinus(a, ASTMinus(b, c)).to_string() == "A(CN) - (B(CN) - C(CN))"
    assert ASTDivide(a, ASTMultiply(b, c)).to_string() == "A(CN) / (B(CN) * C(CN))"


def test_lower_precedence_operand_is_parenthesized(constants):
    a, b, c = constants
    assert ASTMultiply(ASTPlus(a, b), c).to_string() == "(A(CN) + B(CN)) * C(CN)"
    assert ASTPlus(a, ASTMultiply(b, c)).to_string() == "A(CN) + B(CN) * C(CN)"


def test_function_rendering(constants):
    a, b, c = constants
    formula = ASTMax(ASTPlus(a, b), ASTRound(c, a))
    assert formula.to_string() == "MAX(A(CN) + B(CN), ROUND(C(CN), A(CN)))"
    assert str(ASTMin(a, b)) == "MIN(A(CN), B(CN))"


def test_short_string_uses_node_ids(model):
    a = model.create_constant_node("A", 1.0)
    level = model.create_level_node("L", 1.0)
    aux = model.create_auxiliary_node("X")
    formula = ASTMultiply(ASTPlus(a, level), aux)

    text = formula.to_short_string({aux: 7}, {a: 1}, {level: 3})
    assert text == "(CN(1) + LN(3)) * AN(7)"


def test_short_string_of_rate_leaf_is_rejected(model):
    rate = model.create_rate_node("R")
    with pytest.raises(ValueError):
        rate.to_short_string({}, {}, {})


def test_short_string_without_id_is_rejected(constants):
    a, _, _ = constants
    with pytest.raises(ValueError):
        a.to_short_string({}, {}, {})

# ===============================================================================
# Cloning and Iteration
# ===============================================================================

def test_clone_copies_operators_and_shares_leaves(constants):
    a, b, c = constants
    formula = ASTMinus(ASTPlus(a, b), c)
    copy = formula.clone()

    assert copy == formula
    assert copy is not formula
    assert copy.get_left_element() is not formula.get_left_element()
    assert copy.get_left_element().get_left_element() is a
    assert copy.get_right_element() is c


def test_leaf_clone_is_identity(constants):
    a, _, _ = constants
    assert a.clone() is a


def test_pre_order_iteration(constants):
    a, b, c = constants
    plus = ASTPlus(a, b)
    formula = ASTMinus(plus, c)

    iterator = iter(formula)
    first = next(iterator)
    second = next(iterator)
    assert isinstance(first, ASTMinus) and first is not formula and first == formula
    assert isinstance(second, ASTPlus) and second is not plus and second == plus
    assert next(iterator) is a
    assert next(iterator) is b
    assert next(iterator) is c
    with pytest.raises(StopIteration):
        next(iterator)


def test_iteration_is_restartable(constants):
    a, b, c = constants
    formula = ASTMinus(ASTPlus(a, b), c)
    assert len(list(formula)) == 5
    assert len(list(formula)) == 5


def test_iterated_copies_do_not_affect_formula(constants):
    a, b, c = constants
    formula = ASTMinus(ASTPlus(a, b), c)
    copy = next(iter(formula))
    copy._left_element = c
    assert formula.to_string() == "A(CN) + B(CN) - C(CN)"


def test_operators_compare_structurally(constants):
    a, b, _ = constants
    assert ASTPlus(a, b) == ASTPlus(a, b)
    assert ASTPlus(a, b) != ASTPlus(b, a)
    assert ASTPlus(a, b) != ASTMinus(a, b)
