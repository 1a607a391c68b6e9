import pytest

from formula_ast import ASTDivide, ASTMax, ASTMinus, ASTMultiply, ASTPlus, ASTRound
from formula_parser import create_node_ids, invert_node_ids, parse_formula
from sd_errors import FormulaTokenError, ParseException


@pytest.fixture
def tables(model):
    aux = model.create_auxiliary_node("X")
    const_1 = model.create_constant_node("A", 1.0)
    const_2 = model.create_constant_node("B", 2.0)
    const_3 = model.create_constant_node("C", 3.0)
    level = model.create_level_node("L", 10.0)
    return {1: aux}, {1: const_1, 2: const_2, 3: const_3}, {1: level}


def parse(text, tables):
    return parse_formula(text, *tables)


def test_single_leaf(tables):
    aux_nodes, constant_nodes, level_nodes = tables
    assert parse("CN(2)", tables) is constant_nodes[2]
    assert parse("LN(1)", tables) is level_nodes[1]
    assert parse(" AN( 1 ) ", tables) is aux_nodes[1]


def test_multiplication_binds_tighter_than_addition(tables):
    _, c, _ = tables
    assert parse("CN(1) + CN(2) * CN(3)", tables) == ASTPlus(c[1], ASTMultiply(c[2], c[3]))


def test_operators_are_left_associative(tables):
    _, c, _ = tables
    assert parse("CN(1) - CN(2) - CN(3)", tables) == ASTMinus(ASTMinus(c[1], c[2]), c[3])
    assert parse("CN(1) / CN(2) / CN(3)", tables) == ASTDivide(ASTDivide(c[1], c[2]), c[3])


def test_parentheses_override_precedence(tables):
    _, c, _ = tables
    assert parse("(CN(1) + CN(2)) * CN(3)", tables) == ASTMultiply(ASTPlus(c[1], c[2]), c[3])


def test_functions(tables):
    _, c, l = tables
    formula = parse("MAX(CN(1), ROUND(LN(1) / CN(3), CN(2)))", tables)
    assert formula == ASTMax(c[1], ASTRound(ASTDivide(l[1], c[3]), c[2]))
    assert formula.evaluate() == 3.33


def test_leading_zeros_in_ids(tables):
    _, c, _ = tables
    assert parse("CN(002)", tables) is c[2]


def test_unknown_ids_name_the_node_kind(tables):
    with pytest.raises(ParseException, match=r"^Auxiliary node with Id 9 does not exist\.$"):
        parse("AN(9)", tables)
    with pytest.raises(ParseException, match=r"^Constant node with Id 4 does not exist\.$"):
        parse("CN(1) + CN(4)", tables)
    with pytest.raises(ParseException, match=r"^Level node with Id 2 does not exist\.$"):
        parse("LN(2)", tables)


@pytest.mark.parametrize("text", ["CN(1a)", "CN(-1)", "CN(1.5)", "CN()", "LN(x)"])
def test_malformed_ids_are_token_errors(tables, text):
    with pytest.raises(FormulaTokenError):
        parse(text, tables)


@pytest.mark.parametrize("text", [
    "",
    "CN(1) +",
    "CN(1) CN(2)",
    "(CN(1)",
    "CN(1) ** CN(2)",
    "CN(1) // CN(2)",
    "-CN(1)",
    "2 * CN(1)",
    "SQRT(CN(1), CN(2))",
    "MAX(CN(1))",
    "RN(1)",
    "CN(1) # comment",
    "__import__(CN(1))",
])
def test_invalid_formulas_raise_parse_exception(tables, text):
    with pytest.raises(ParseException):
        parse(text, tables)


def test_long_sums_up_to_the_nesting_limit(tables):
    text = " + ".join(["CN(1)"] * 250)
    assert parse(text, tables).evaluate() == 250.0


@pytest.mark.parametrize("terms", [251, 1000, 3000])
def test_too_deeply_nested_formula_raises_parse_exception(tables, terms):
    text = " + ".join(["CN(1)"] * terms)
    with pytest.raises(ParseException, match="too deeply nested"):
        parse(text, tables)


def test_formula_token_error_is_a_parse_exception():
    assert issubclass(FormulaTokenError, ParseException)


def test_short_string_round_trip(model):
    constants = [model.create_constant_node(name, value) for name, value in (("A", 1.0), ("B", 2.0))]
    levels = [model.create_level_node("L", 5.0)]
    auxiliaries = [model.create_auxiliary_node("X")]
    formula = ASTMinus(ASTMultiply(ASTPlus(constants[0], levels[0]), auxiliaries[0]),
                       ASTMax(constants[1], ASTMinus(levels[0], constants[0])))

    aux_ids = create_node_ids(auxiliaries)
    const_ids = create_node_ids(constants)
    level_ids = create_node_ids(levels)
    text = formula.to_short_string(aux_ids, const_ids, level_ids)

    assert text == "(CN(1) + LN(1)) * AN(1) - MAX(CN(2), LN(1) - CN(1))"
    parsed = parse_formula(text, invert_node_ids(aux_ids), invert_node_ids(const_ids),
                           invert_node_ids(level_ids))
    assert parsed == formula


def test_create_node_ids_numbers_from_one(model):
    nodes = [model.create_constant_node(f"C{i}", float(i)) for i in range(3)]
    assert create_node_ids(nodes) == {nodes[0]: 1, nodes[1]: 2, nodes[2]: 3}
    assert invert_node_ids(create_node_ids(nodes)) == {1: nodes[0], 2: nodes[1], 3: nodes[2]}


def test_none_arguments_are_rejected(tables):
    with pytest.raises(ValueError):
        parse_formula(None, *tables)
    with pytest.raises(ValueError):
        parse_formula("CN(1)", None, {}, {})
