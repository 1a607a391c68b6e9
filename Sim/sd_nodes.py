# -*- coding: utf-8 -*-
"""
Nodes of a stock-and-flow model.

Nodes are created and mutated only through sd_model.Model; the underscore
methods below are the model's private mutation hooks and keep the flow
bookkeeping on both ends of every edge in sync.
"""

from typing import List, Optional

from formula_ast import ASTElement, FormulaLeaf
from sd_errors import NodeParameterOutOfRangeException

# ===============================================================================
# Value Bounds
# ===============================================================================

MIN_CONSTANT = -1e9
MAX_CONSTANT = 1e9

MIN_START_VALUE = -1e9
MAX_START_VALUE = 1e9


def _check_value(value, min_value: float, max_value: float) -> float:
    if value is None:
        raise ValueError("Node value must not be None.")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError("Node value must be a number.")
    value = float(value)
    if not (min_value <= value <= max_value):
        raise NodeParameterOutOfRangeException(min_value, max_value)
    return value


def _check_name(node_name) -> str:
    if node_name is None:
        raise ValueError("Node name must not be None.")
    if not isinstance(node_name, str):
        raise TypeError("Node name must be a string.")
    return node_name

# ===============================================================================
# Base Classes
# ===============================================================================

class AbstractNode:
    """Common part of all model nodes"""

    def __init__(self, node_name: Optional[str] = None):
        self._node_name = node_name

    def get_node_name(self) -> str:
        return self._node_name

    def _set_node_name(self, node_name: str):
        self._node_name = _check_name(node_name)

    def get_current_value(self) -> float:
        raise NotImplementedError

    def _compute_next_value(self):
        raise NotImplementedError

    def __repr__(self):
        return f"{type(self).__name__}({self._node_name!r})"


class FormulaNode:
    """Capability mixin of the nodes whose value is defined by a formula"""

    _formula = None

    def _set_formula(self, formula: Optional[ASTElement]):
        if formula is None:
            self._formula = None
            return
        if not isinstance(formula, ASTElement):
            raise TypeError("'formula' must be a formula element.")
        self._formula = formula.clone()

    def get_formula(self) -> Optional[ASTElement]:
        """Copy of the formula, None if none is set"""
        if self._formula is None:
            return None
        return self._formula.clone()

    def has_formula(self) -> bool:
        return self._formula is not None

    def get_all_nodes_this_one_depends_on(self) -> set:
        if self._formula is None:
            return set()
        return self._formula.get_all_nodes_in_subtree()

    def _formula_dependencies(self) -> list:
        """Formula leaves in first-appearance order, without repeats"""
        if self._formula is None:
            return []
        return list(dict.fromkeys(self._formula.iter_leaves()))

    def _evaluate_formula(self) -> float:
        return self._formula.evaluate()


class FlowEndpoint:
    """Bookkeeping of rates flowing into and out of a level or source/sink"""

    def _init_flows(self):
        # dicts used as insertion-ordered sets
        self._incoming_flows = {}
        self._outgoing_flows = {}

    def get_incoming_flows(self) -> List['RateNode']:
        return list(self._incoming_flows)

    def get_outgoing_flows(self) -> List['RateNode']:
        return list(self._outgoing_flows)

    def _add_incoming_flow(self, rate_node: 'RateNode'):
        self._incoming_flows[rate_node] = None

    def _add_outgoing_flow(self, rate_node: 'RateNode'):
        self._outgoing_flows[rate_node] = None

    def _remove_incoming_flow(self, rate_node: 'RateNode'):
        self._incoming_flows.pop(rate_node, None)

    def _remove_outgoing_flow(self, rate_node: 'RateNode'):
        self._outgoing_flows.pop(rate_node, None)

    def _has_incoming_flow(self, rate_node: 'RateNode') -> bool:
        return rate_node in self._incoming_flows

    def _has_outgoing_flow(self, rate_node: 'RateNode') -> bool:
        return rate_node in self._outgoing_flows

# ===============================================================================
# Node Types
# ===============================================================================

class ConstantNode(FormulaLeaf, AbstractNode):
    """Fixed value, never changed by stepping"""

    ABBREVIATION = 'CN'

    def __init__(self, node_name: str, constant_value: float):
        super().__init__(_check_name(node_name))
        self._constant_value = _check_value(constant_value, MIN_CONSTANT, MAX_CONSTANT)

    def get_constant_value(self) -> float:
        return self._constant_value

    def _set_constant_value(self, constant_value: float):
        self._constant_value = _check_value(constant_value, MIN_CONSTANT, MAX_CONSTANT)

    def get_current_value(self) -> float:
        return self._constant_value

    def _compute_next_value(self):
        pass

    def _select_node_ids(self, auxiliary_node_ids, constant_node_ids, level_node_ids):
        return constant_node_ids


class LevelNode(FlowEndpoint, FormulaLeaf, AbstractNode):
    """Stock accumulating its incoming flows minus its outgoing flows"""

    ABBREVIATION = 'LN'

    def __init__(self, node_name: str, start_value: float):
        super().__init__(_check_name(node_name))
        self._init_flows()
        self._start_value = _check_value(start_value, MIN_START_VALUE, MAX_START_VALUE)
        self._current_value = self._start_value

    def get_start_value(self) -> float:
        return self._start_value

    def _set_start_value(self, start_value: float):
        self._start_value = _check_value(start_value, MIN_START_VALUE, MAX_START_VALUE)
        self._current_value = self._start_value

    def get_current_value(self) -> float:
        return self._current_value

    def _compute_next_value(self):
        value = self._current_value
        for rate_node in self._incoming_flows:
            value += rate_node.get_current_value()
        for rate_node in self._outgoing_flows:
            value -= rate_node.get_current_value()
        self._current_value = value

    def _select_node_ids(self, auxiliary_node_ids, constant_node_ids, level_node_ids):
        return level_node_ids


class RateNode(FormulaNode, FormulaLeaf, AbstractNode):
    """Flow moving quantity from its source to its sink once per round"""

    ABBREVIATION = 'RN'

    def __init__(self, node_name: str):
        super().__init__(_check_name(node_name))
        self._current_value = 0.0
        self._flow_source = None
        self._flow_sink = None

    def get_current_value(self) -> float:
        return self._current_value

    def _set_current_value(self, value: float):
        self._current_value = value

    def _compute_next_value(self):
        self._current_value = self._evaluate_formula()

    def get_flow_source(self):
        return self._flow_source

    def get_flow_sink(self):
        return self._flow_sink

    def _set_flow_source(self, flow_source: FlowEndpoint):
        if flow_source is None:
            raise ValueError("Flow source must not be None.")
        if not isinstance(flow_source, FlowEndpoint):
            raise TypeError("Flow source must be a level node or a source/sink node.")
        if self._flow_source is not None and self._flow_source is not flow_source:
            self._flow_source._remove_outgoing_flow(self)
        flow_source._add_outgoing_flow(self)
        self._flow_source = flow_source

    def _set_flow_sink(self, flow_sink: FlowEndpoint):
        if flow_sink is None:
            raise ValueError("Flow sink must not be None.")
        if not isinstance(flow_sink, FlowEndpoint):
            raise TypeError("Flow sink must be a level node or a source/sink node.")
        if self._flow_sink is not None and self._flow_sink is not flow_sink:
            self._flow_sink._remove_incoming_flow(self)
        flow_sink._add_incoming_flow(self)
        self._flow_sink = flow_sink

    def _remove_flow_source(self):
        if self._flow_source is not None:
            self._flow_source._remove_outgoing_flow(self)
        self._flow_source = None

    def _remove_flow_sink(self):
        if self._flow_sink is not None:
            self._flow_sink._remove_incoming_flow(self)
        self._flow_sink = None

    def get_all_nodes_this_one_depends_on_and_source_sink_nodes(self) -> set:
        nodes = self.get_all_nodes_this_one_depends_on()
        if isinstance(self._flow_source, SourceSinkNode):
            nodes.add(self._flow_source)
        if isinstance(self._flow_sink, SourceSinkNode):
            nodes.add(self._flow_sink)
        return nodes


class AuxiliaryNode(FormulaNode, FormulaLeaf, AbstractNode):
    """Intermediate value recomputed from its formula every round"""

    ABBREVIATION = 'AN'

    def __init__(self, node_name: str):
        super().__init__(_check_name(node_name))
        self._current_value = 0.0

    def get_current_value(self) -> float:
        return self._current_value

    def _compute_next_value(self):
        self._current_value = self._evaluate_formula()

    def _select_node_ids(self, auxiliary_node_ids, constant_node_ids, level_node_ids):
        return auxiliary_node_ids


class SourceSinkNode(FlowEndpoint, AbstractNode):
    """Unbounded endpoint outside the model boundary; has no name and no value"""

    def __init__(self):
        super().__init__()
        self._init_flows()

    def get_node_name(self) -> str:
        raise TypeError("Source/sink nodes have no name.")

    def _set_node_name(self, node_name: str):
        raise TypeError("Source/sink nodes have no name.")

    def get_current_value(self) -> float:
        raise TypeError("Source/sink nodes have no value.")

    def _compute_next_value(self):
        pass

    def __repr__(self):
        return f"SourceSinkNode(at {id(self):#x})"
