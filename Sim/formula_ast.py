# -*- coding: utf-8 -*-
"""
Formula abstract syntax trees for rate and auxiliary nodes.

A formula is a binary tree: inner elements are arithmetic operators, leaves are
model nodes (constants, levels, auxiliaries, rates). Operators are deep-cloned
whenever a formula crosses the node boundary; leaves are shared by identity so a
formula always reads the live values of the nodes it references.

Evaluation uses numpy float64 arithmetic, so division by zero and overflow
follow IEEE semantics (inf / nan) instead of raising.
"""

import numpy as np

# Rendering precedence of formula elements
ADDITIVE_PRECEDENCE = 1
MULTIPLICATIVE_PRECEDENCE = 2
ATOM_PRECEDENCE = 3

# ===============================================================================
# Base Classes
# ===============================================================================

class ASTElement:
    """Element of a formula tree"""

    precedence = ATOM_PRECEDENCE

    def evaluate(self) -> float:
        raise NotImplementedError

    def get_all_nodes_in_subtree(self) -> set:
        """Set of all leaf nodes referenced by this subtree"""
        return set(self.iter_leaves())

    def iter_leaves(self):
        """Leaves of this subtree in left-to-right order, repeats included"""
        raise NotImplementedError

    def to_string(self) -> str:
        raise NotImplementedError

    def to_short_string(self, auxiliary_node_ids: dict, constant_node_ids: dict,
                        level_node_ids: dict) -> str:
        raise NotImplementedError

    def clone(self):
        raise NotImplementedError

    def __str__(self):
        return self.to_string()


class FormulaLeaf(ASTElement):
    """
    Mixin for model nodes that can appear as formula leaves.

    Subclasses set ABBREVIATION and provide get_node_name() and
    get_current_value(). A leaf clones to itself.
    """

    ABBREVIATION = None

    def evaluate(self) -> float:
        return self.get_current_value()

    def iter_leaves(self):
        yield self

    def to_string(self) -> str:
        return f"{self.get_node_name()}({self.ABBREVIATION})"

    def to_short_string(self, auxiliary_node_ids: dict, constant_node_ids: dict,
                        level_node_ids: dict) -> str:
        node_ids = self._select_node_ids(auxiliary_node_ids, constant_node_ids, level_node_ids)
        if node_ids is None:
            raise ValueError(f"Nodes of type {type(self).__name__} have no short representation.")
        if self not in node_ids:
            raise ValueError(f"No id was assigned to node '{self.get_node_name()}'.")
        return f"{self.ABBREVIATION}({node_ids[self]})"

    def _select_node_ids(self, auxiliary_node_ids, constant_node_ids, level_node_ids):
        """Pick the id table matching this leaf kind, None if it has none"""
        return None

    def clone(self):
        return self

    def __iter__(self):
        yield self

# ===============================================================================
# Operators
# ===============================================================================

class ASTBinaryOperator(ASTElement):
    """Operator with a left and a right operand"""

    NAME = None

    def __init__(self, left_element: ASTElement, right_element: ASTElement):
        if left_element is None or right_element is None:
            raise ValueError("Operands of a formula operator must not be None.")
        if not isinstance(left_element, ASTElement) or not isinstance(right_element, ASTElement):
            raise TypeError("Operands of a formula operator must be formula elements.")
        self._left_element = left_element
        self._right_element = right_element

    def get_left_element(self) -> ASTElement:
        return self._left_element

    def get_right_element(self) -> ASTElement:
        return self._right_element

    def evaluate(self) -> float:
        left_value = np.float64(self._left_element.evaluate())
        right_value = np.float64(self._right_element.evaluate())
        with np.errstate(divide='ignore', over='ignore', invalid='ignore'):
            return float(self._apply(left_value, right_value))

    def _apply(self, left_value, right_value):
        raise NotImplementedError

    def iter_leaves(self):
        yield from self._left_element.iter_leaves()
        yield from self._right_element.iter_leaves()

    def to_string(self) -> str:
        return self._render(self._left_element.to_string(), self._right_element.to_string())

    def to_short_string(self, auxiliary_node_ids: dict, constant_node_ids: dict,
                        level_node_ids: dict) -> str:
        id_tables = (auxiliary_node_ids, constant_node_ids, level_node_ids)
        return self._render(self._left_element.to_short_string(*id_tables),
                            self._right_element.to_short_string(*id_tables))

    def _render(self, left_text: str, right_text: str) -> str:
        raise NotImplementedError

    def clone(self):
        return type(self)(self._left_element.clone(), self._right_element.clone())

    def __iter__(self):
        # Pre-order over a fresh copy; each subtree iterator clones again
        tree = self.clone()
        yield tree
        yield from tree.get_left_element()
        yield from tree.get_right_element()

    def __eq__(self, other):
        if type(self) is not type(other):
            return NotImplemented
        return (self._left_element == other._left_element
                and self._right_element == other._right_element)

    __hash__ = None

    def __repr__(self):
        return f"{type(self).__name__}({self._left_element!r}, {self._right_element!r})"


class ASTInfixOperator(ASTBinaryOperator):
    """Operator rendered as 'left <symbol> right'"""

    def _render(self, left_text: str, right_text: str) -> str:
        if self._left_element.precedence < self.precedence:
            left_text = f"({left_text})"
        # Operators are left-associative
        if self._right_element.precedence <= self.precedence:
            right_text = f"({right_text})"
        return f"{left_text} {self.NAME} {right_text}"


class ASTFunctionOperator(ASTBinaryOperator):
    """Operator rendered as 'NAME(left, right)'"""

    def _render(self, left_text: str, right_text: str) -> str:
        return f"{self.NAME}({left_text}, {right_text})"


class ASTPlus(ASTInfixOperator):
    NAME = '+'
    precedence = ADDITIVE_PRECEDENCE

    def _apply(self, left_value, right_value):
        return left_value + right_value


class ASTMinus(ASTInfixOperator):
    NAME = '-'
    precedence = ADDITIVE_PRECEDENCE

    def _apply(self, left_value, right_value):
        return left_value - right_value


class ASTMultiply(ASTInfixOperator):
    NAME = '*'
    precedence = MULTIPLICATIVE_PRECEDENCE

    def _apply(self, left_value, right_value):
        return left_value * right_value


class ASTDivide(ASTInfixOperator):
    NAME = '/'
    precedence = MULTIPLICATIVE_PRECEDENCE

    def _apply(self, left_value, right_value):
        return np.divide(left_value, right_value)


class ASTMax(ASTFunctionOperator):
    NAME = 'MAX'

    def _apply(self, left_value, right_value):
        return np.maximum(left_value, right_value)


class ASTMin(ASTFunctionOperator):
    NAME = 'MIN'

    def _apply(self, left_value, right_value):
        return np.minimum(left_value, right_value)


class ASTRound(ASTFunctionOperator):
    """Rounds the left operand half-up to 'right operand' decimal places"""

    NAME = 'ROUND'

    def _apply(self, left_value, right_value):
        if not np.isfinite(right_value):
            return np.nan
        scale = np.power(10.0, np.trunc(right_value))
        if scale == 0.0:
            return np.float64(0.0)
        scaled = left_value * scale
        # Beyond float precision the value is already exact
        if not np.isfinite(scale) or not np.isfinite(scaled):
            return left_value
        return np.floor(scaled + 0.5) / scale
