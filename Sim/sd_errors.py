# -*- coding: utf-8 -*-
"""
Exceptions raised by the stock-and-flow model engine.

Contract violations (bad arguments) are ValueError/TypeError subclasses and are
raised at the offending call. Model consistency problems carry the node that
caused them so callers can point at the exact element.
"""

# ===============================================================================
# Contract Violations
# ===============================================================================

class NodeParameterOutOfRangeException(ValueError):
    """A constant or start value lies outside its allowed interval"""

    MESSAGE = "The node's (new) value is out of range."

    def __init__(self, min_value: float, max_value: float):
        if min_value >= max_value:
            raise ValueError("'min_value' must be smaller than 'max_value'.")
        self.min_value = min_value
        self.max_value = max_value
        super().__init__(self.MESSAGE)

    def get_min_value(self) -> float:
        return self.min_value

    def get_max_value(self) -> float:
        return self.max_value

# ===============================================================================
# Lifecycle Violations
# ===============================================================================

class ModelNotChangeableException(RuntimeError):
    """Mutation attempted after the model was validated and locked"""

    MESSAGE = "The model is not changeable any more."

    def __init__(self):
        super().__init__(self.MESSAGE)


class ModelStillChangeableException(RuntimeError):
    """Stepping attempted before the model was validated and locked"""

    MESSAGE = "The model is still changeable and cannot be executed."

    def __init__(self):
        super().__init__(self.MESSAGE)


class FormulaDependencyException(Exception):
    """The node to remove is still referenced by another node's formula"""

    MESSAGE = "The node that should be removed is part of another node's formula."

    def __init__(self, node):
        from sd_nodes import AuxiliaryNode, RateNode

        if node is None:
            raise ValueError("'node' must not be None.")
        if not isinstance(node, (RateNode, AuxiliaryNode)):
            raise TypeError("'node' must be a rate node or an auxiliary node.")
        self.node_with_problematic_formula = node
        self.node = node
        super().__init__(self.MESSAGE)

    def get_node_with_problematic_formula(self):
        return self.node_with_problematic_formula

# ===============================================================================
# Validation Errors
# ===============================================================================

class ModelValidationException(Exception):
    """Base class of the structural validation errors"""

    MESSAGE = "The System Dynamics model is not valid."

    def __init__(self, message: str = None):
        super().__init__(message or self.MESSAGE)


class NoLevelNodeException(ModelValidationException):
    MESSAGE = "The System Dynamics model has no level node."


class RateNodeFlowException(ModelValidationException):
    """A rate node lacks its flow source or its flow sink"""

    MESSAGE = "A rate node has no incoming or no outgoing flow."

    def __init__(self, rate_node):
        if rate_node is None:
            raise ValueError("'rate_node' must not be None.")
        self.problematic_rate_node = rate_node
        self.node = rate_node
        super().__init__()

    def get_problematic_rate_node(self):
        return self.problematic_rate_node


class NoFormulaException(ModelValidationException):
    """A rate or auxiliary node has no formula"""

    MESSAGE = "A rate node or an auxiliary node has no formula."

    def __init__(self, node):
        from sd_nodes import AuxiliaryNode, RateNode

        if node is None:
            raise ValueError("'node' must not be None.")
        if not isinstance(node, (RateNode, AuxiliaryNode)):
            raise TypeError("'node' must be a rate node or an auxiliary node.")
        self.node_without_formula = node
        self.node = node
        super().__init__()

    def get_node_without_formula(self):
        return self.node_without_formula


class AuxiliaryNodesCycleDependencyException(ModelValidationException):
    MESSAGE = "The model's auxiliary nodes have a cycle dependency."


class UselessNodeException(ModelValidationException):
    """A node has no influence on any level node"""

    MESSAGE = "There is a useless node in the model."

    def __init__(self, node):
        from sd_nodes import AuxiliaryNode, ConstantNode, SourceSinkNode

        if node is None:
            raise ValueError("'node' must not be None.")
        if not isinstance(node, (ConstantNode, AuxiliaryNode, SourceSinkNode)):
            raise TypeError("'node' must be a constant, an auxiliary or a source/sink node.")
        self.useless_node = node
        self.node = node
        super().__init__()

    def get_useless_node(self):
        return self.useless_node

# ===============================================================================
# Formula Parser Errors
# ===============================================================================

class ParseException(Exception):
    """Formula text does not follow the formula grammar"""
    pass


class FormulaTokenError(ParseException):
    """Formula text contains a malformed token, e.g. a non-integer node id"""
    pass
