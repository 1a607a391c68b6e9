# -*- coding: utf-8 -*-
"""
Formula text parser.

Formulas reference nodes by kind and integer id:

    AN(3) * (CN(1) + LN(2)) / MAX(CN(4), ROUND(AN(5), CN(6)))

The text is tokenized for node references first, then parsed with Python's
ast module and converted into formula elements. Only + - * /, parentheses,
node references and the MAX, MIN and ROUND functions are accepted.
"""

import ast
import re
from typing import Dict, Iterable

from formula_ast import (
    ASTDivide,
    ASTElement,
    ASTMax,
    ASTMin,
    ASTMinus,
    ASTMultiply,
    ASTPlus,
    ASTRound,
)
from sd_errors import FormulaTokenError, ParseException

# ===============================================================================
# Grammar Tables
# ===============================================================================

# abbreviation -> (node kind used in messages, position of its id table)
NODE_REFERENCES = {
    'AN': ('Auxiliary', 0),
    'CN': ('Constant', 1),
    'LN': ('Level', 2),
}

FUNCTIONS = {
    'MAX': ASTMax,
    'MIN': ASTMin,
    'ROUND': ASTRound,
}

BINARY_OPERATORS = {
    ast.Add: ASTPlus,
    ast.Sub: ASTMinus,
    ast.Mult: ASTMultiply,
    ast.Div: ASTDivide,
}

# Deepest operator nesting accepted in formula text
MAX_FORMULA_DEPTH = 250

_NODE_REFERENCE_PATTERN = re.compile(r'\b(AN|CN|LN)\s*\(([^()]*)\)')
_NODE_ID_PATTERN = re.compile(r'[0-9]+')
_UNEXPECTED_CHARACTER_PATTERN = re.compile(r'[^A-Za-z0-9_.\s()+\-*/,]')

# ===============================================================================
# Node Id Tables
# ===============================================================================

def create_node_ids(nodes: Iterable) -> Dict:
    """Number the nodes 1..n in iteration order"""
    return {node: node_id for node_id, node in enumerate(nodes, start=1)}


def invert_node_ids(node_ids: Dict) -> Dict:
    """Turn a {node: id} table into the {id: node} table the parser takes"""
    return {node_id: node for node, node_id in node_ids.items()}

# ===============================================================================
# Parser
# ===============================================================================

def _normalize_node_references(formula: str) -> str:
    def normalize(match):
        node_id = match.group(2).strip()
        if not _NODE_ID_PATTERN.fullmatch(node_id):
            raise FormulaTokenError(f"Malformed node id '{node_id}' in '{match.group(0)}'.")
        return f"{match.group(1)}({int(node_id)})"

    return _NODE_REFERENCE_PATTERN.sub(normalize, formula)


def parse_formula(formula: str, auxiliary_nodes: Dict[int, object],
                  constant_nodes: Dict[int, object],
                  level_nodes: Dict[int, object]) -> ASTElement:
    """
    Parse formula text into a formula tree.

    Args:
        formula: formula text
        auxiliary_nodes, constant_nodes, level_nodes: id -> node tables used to
            resolve AN(id), CN(id) and LN(id)

    Raises:
        FormulaTokenError: a node reference has a malformed id
        ParseException: any other syntax error, unsupported construct or
            unknown node id
    """
    if formula is None:
        raise ValueError("'formula' must not be None.")
    if auxiliary_nodes is None or constant_nodes is None or level_nodes is None:
        raise ValueError("Node id tables must not be None.")

    unexpected = _UNEXPECTED_CHARACTER_PATTERN.search(formula)
    if unexpected:
        raise ParseException(f"Unexpected character '{unexpected.group(0)}' in formula.")

    text = _normalize_node_references(formula).strip()
    try:
        tree = ast.parse(text, mode='eval')
    except SyntaxError as e:
        raise ParseException(f"Invalid formula '{formula}': {e.msg}") from e
    except RecursionError as e:
        raise ParseException("Formula is too deeply nested.") from e

    id_tables = (auxiliary_nodes, constant_nodes, level_nodes)
    return _convert(tree.body, id_tables)


def _convert(node: ast.AST, id_tables, depth: int = 1) -> ASTElement:
    # Formula trees are evaluated, cloned and rendered recursively
    if depth > MAX_FORMULA_DEPTH:
        raise ParseException("Formula is too deeply nested.")

    if isinstance(node, ast.BinOp):
        operator_class = BINARY_OPERATORS.get(type(node.op))
        if operator_class is None:
            raise ParseException(f"Operator in '{ast.unparse(node)}' is not supported.")
        return operator_class(_convert(node.left, id_tables, depth + 1),
                              _convert(node.right, id_tables, depth + 1))

    if isinstance(node, ast.Call) and isinstance(node.func, ast.Name):
        name = node.func.id
        if node.keywords:
            raise ParseException(f"Keyword arguments are not supported: '{ast.unparse(node)}'.")
        if name in NODE_REFERENCES:
            return _resolve_node_reference(name, node, id_tables)
        if name in FUNCTIONS:
            if len(node.args) != 2:
                raise ParseException(f"{name} takes exactly two arguments.")
            return FUNCTIONS[name](_convert(node.args[0], id_tables, depth + 1),
                                   _convert(node.args[1], id_tables, depth + 1))
        raise ParseException(f"Unknown function '{name}'.")

    raise ParseException(f"Unexpected element '{ast.unparse(node)}' in formula.")


def _resolve_node_reference(name: str, node: ast.Call, id_tables):
    kind, table_index = NODE_REFERENCES[name]
    if len(node.args) != 1:
        raise ParseException(f"{name} takes exactly one node id.")
    argument = node.args[0]
    if (not isinstance(argument, ast.Constant) or isinstance(argument.value, bool)
            or not isinstance(argument.value, int)):
        raise FormulaTokenError(f"Malformed node id in '{ast.unparse(node)}'.")

    node_id = argument.value
    nodes = id_tables[table_index]
    if node_id not in nodes:
        raise ParseException(f"{kind} node with Id {node_id} does not exist.")
    return nodes[node_id]
