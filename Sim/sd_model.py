# -*- coding: utf-8 -*-
"""
System Dynamics model: owns the nodes, guards every mutation and steps the
model one round at a time once it is validated.

Lifecycle: a new model is changeable. validate_model_and_set_unchangeable()
locks it after a successful validation; from then on every mutation raises
ModelNotChangeableException and compute_next_values() may be called.
"""

from typing import List, Optional

import networkx as nx

import model_validation
from formula_ast import ASTElement
from sd_errors import (
    FormulaDependencyException,
    ModelNotChangeableException,
    ModelStillChangeableException,
)
from sd_nodes import (
    AuxiliaryNode,
    ConstantNode,
    FormulaNode,
    LevelNode,
    RateNode,
    SourceSinkNode,
)
from sd_topology import build_dependency_graph, get_auxiliary_nodes_evaluation_order


def _require(value, name: str, node_class, kind: str):
    if value is None:
        raise ValueError(f"'{name}' must not be None.")
    if not isinstance(value, node_class):
        raise TypeError(f"'{name}' must be {kind}.")


class Model:
    """Stock-and-flow model"""

    def __init__(self, model_name: Optional[str] = None):
        self._model_name = model_name
        self._changeable = True
        self._auxiliary_evaluation_order = []

        # dicts used as insertion-ordered sets
        self._level_nodes = {}
        self._rate_nodes = {}
        self._constant_nodes = {}
        self._auxiliary_nodes = {}
        self._source_sink_nodes = {}

    # ===============================================================================
    # Lifecycle
    # ===============================================================================

    def is_changeable(self) -> bool:
        return self._changeable

    def _check_changeable(self):
        if not self._changeable:
            raise ModelNotChangeableException()

    def validate_model(self):
        """Raise the first structural problem of the model, if any"""
        model_validation.validate_model(self)

    def validate_model_and_set_unchangeable(self):
        """Validate the model and lock it; the model stays changeable on failure"""
        self._check_changeable()
        model_validation.validate_model(self)
        self._auxiliary_evaluation_order = get_auxiliary_nodes_evaluation_order(self._auxiliary_nodes)
        self._changeable = False

    # ===============================================================================
    # Read Access
    # ===============================================================================

    def get_model_name(self) -> Optional[str]:
        return self._model_name

    def get_level_nodes(self) -> List[LevelNode]:
        return list(self._level_nodes)

    def get_rate_nodes(self) -> List[RateNode]:
        return list(self._rate_nodes)

    def get_constant_nodes(self) -> List[ConstantNode]:
        return list(self._constant_nodes)

    def get_auxiliary_nodes(self) -> List[AuxiliaryNode]:
        return list(self._auxiliary_nodes)

    def get_source_sink_nodes(self) -> List[SourceSinkNode]:
        return list(self._source_sink_nodes)

    def dependency_graph(self) -> nx.DiGraph:
        """Formula and flow dependencies of all nodes as a directed graph"""
        return build_dependency_graph(self._level_nodes, self._rate_nodes,
                                      self._constant_nodes, self._auxiliary_nodes,
                                      self._source_sink_nodes)

    # ===============================================================================
    # Node Creation
    # ===============================================================================

    def create_level_node(self, node_name: str, start_value: float) -> LevelNode:
        self._check_changeable()
        node = LevelNode(node_name, start_value)
        self._level_nodes[node] = None
        return node

    def create_rate_node(self, node_name: str) -> RateNode:
        self._check_changeable()
        node = RateNode(node_name)
        self._rate_nodes[node] = None
        return node

    def create_constant_node(self, node_name: str, constant_value: float) -> ConstantNode:
        self._check_changeable()
        node = ConstantNode(node_name, constant_value)
        self._constant_nodes[node] = None
        return node

    def create_auxiliary_node(self, node_name: str) -> AuxiliaryNode:
        self._check_changeable()
        node = AuxiliaryNode(node_name)
        self._auxiliary_nodes[node] = None
        return node

    def create_source_sink_node(self) -> SourceSinkNode:
        self._check_changeable()
        node = SourceSinkNode()
        self._source_sink_nodes[node] = None
        return node

    # ===============================================================================
    # Node Properties
    # ===============================================================================

    def set_model_name(self, model_name: str):
        self._check_changeable()
        if model_name is None:
            raise ValueError("'model_name' must not be None.")
        self._model_name = model_name

    def set_node_name(self, node, node_name: str):
        self._check_changeable()
        if node is None:
            raise ValueError("'node' must not be None.")
        if isinstance(node, SourceSinkNode):
            raise TypeError("Source/sink nodes have no name.")
        node._set_node_name(node_name)

    def set_start_value(self, level_node: LevelNode, start_value: float):
        """Set the start value; the level's current value is reset to it"""
        self._check_changeable()
        _require(level_node, 'level_node', LevelNode, "a level node")
        level_node._set_start_value(start_value)

    def set_constant_value(self, constant_node: ConstantNode, constant_value: float):
        self._check_changeable()
        _require(constant_node, 'constant_node', ConstantNode, "a constant node")
        constant_node._set_constant_value(constant_value)

    def set_formula(self, node, formula: Optional[ASTElement]):
        """
        Set a copy of 'formula' as the node's formula, None clears it.

        Only rate and auxiliary nodes have formulas.
        """
        self._check_changeable()
        _require(node, 'node', FormulaNode, "a rate node or an auxiliary node")
        node._set_formula(formula)

    # ===============================================================================
    # Flows
    # ===============================================================================

    def add_flow_from_level_node_to_rate_node(self, level_node: LevelNode,
                                              rate_node: RateNode) -> bool:
        self._check_changeable()
        _require(level_node, 'level_node', LevelNode, "a level node")
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        return self._add_flow_source(rate_node, level_node)

    def add_flow_from_rate_node_to_level_node(self, rate_node: RateNode,
                                              level_node: LevelNode) -> bool:
        self._check_changeable()
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        _require(level_node, 'level_node', LevelNode, "a level node")
        return self._add_flow_sink(rate_node, level_node)

    def add_flow_from_source_sink_node_to_rate_node(self, source_sink_node: SourceSinkNode,
                                                    rate_node: RateNode) -> bool:
        self._check_changeable()
        _require(source_sink_node, 'source_sink_node', SourceSinkNode, "a source/sink node")
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        return self._add_flow_source(rate_node, source_sink_node)

    def add_flow_from_rate_node_to_source_sink_node(self, rate_node: RateNode,
                                                    source_sink_node: SourceSinkNode) -> bool:
        self._check_changeable()
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        _require(source_sink_node, 'source_sink_node', SourceSinkNode, "a source/sink node")
        return self._add_flow_sink(rate_node, source_sink_node)

    def remove_flow_from_level_node_to_rate_node(self, level_node: LevelNode,
                                                 rate_node: RateNode) -> bool:
        self._check_changeable()
        _require(level_node, 'level_node', LevelNode, "a level node")
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        return self._remove_flow_source(rate_node, level_node)

    def remove_flow_from_rate_node_to_level_node(self, rate_node: RateNode,
                                                 level_node: LevelNode) -> bool:
        self._check_changeable()
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        _require(level_node, 'level_node', LevelNode, "a level node")
        return self._remove_flow_sink(rate_node, level_node)

    def remove_flow_from_source_sink_node_to_rate_node(self, source_sink_node: SourceSinkNode,
                                                       rate_node: RateNode) -> bool:
        self._check_changeable()
        _require(source_sink_node, 'source_sink_node', SourceSinkNode, "a source/sink node")
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        return self._remove_flow_source(rate_node, source_sink_node)

    def remove_flow_from_rate_node_to_source_sink_node(self, rate_node: RateNode,
                                                       source_sink_node: SourceSinkNode) -> bool:
        self._check_changeable()
        _require(rate_node, 'rate_node', RateNode, "a rate node")
        _require(source_sink_node, 'source_sink_node', SourceSinkNode, "a source/sink node")
        return self._remove_flow_sink(rate_node, source_sink_node)

    @staticmethod
    def _add_flow_source(rate_node: RateNode, flow_source) -> bool:
        current_source = rate_node.get_flow_source()
        if current_source is flow_source:
            return True
        if current_source is not None:
            return False
        rate_node._set_flow_source(flow_source)
        return True

    @staticmethod
    def _add_flow_sink(rate_node: RateNode, flow_sink) -> bool:
        current_sink = rate_node.get_flow_sink()
        if current_sink is flow_sink:
            return True
        if current_sink is not None:
            return False
        rate_node._set_flow_sink(flow_sink)
        return True

    @staticmethod
    def _remove_flow_source(rate_node: RateNode, flow_source) -> bool:
        stored_at_rate = rate_node.get_flow_source() is flow_source
        stored_at_source = flow_source._has_outgoing_flow(rate_node)
        if stored_at_rate and stored_at_source:
            rate_node._remove_flow_source()
            return True
        if not stored_at_rate and not stored_at_source:
            return False
        raise RuntimeError("Flow to remove not stored consistently.")

    @staticmethod
    def _remove_flow_sink(rate_node: RateNode, flow_sink) -> bool:
        stored_at_rate = rate_node.get_flow_sink() is flow_sink
        stored_at_sink = flow_sink._has_incoming_flow(rate_node)
        if stored_at_rate and stored_at_sink:
            rate_node._remove_flow_sink()
            return True
        if not stored_at_rate and not stored_at_sink:
            return False
        raise RuntimeError("Flow to remove not stored consistently.")

    # ===============================================================================
    # Node Removal
    # ===============================================================================

    def remove_node(self, node):
        """
        Remove a node and every flow attached to it.

        Raises:
            FormulaDependencyException: another node's formula references the
                node; the model is left unchanged
        """
        self._check_changeable()
        if node is None:
            raise ValueError("'node' must not be None.")

        for dependent_node in list(self._rate_nodes) + list(self._auxiliary_nodes):
            if dependent_node is not node and node in dependent_node.get_all_nodes_this_one_depends_on():
                raise FormulaDependencyException(dependent_node)

        if isinstance(node, RateNode):
            if node.get_flow_source() is not None:
                self._remove_flow_source(node, node.get_flow_source())
            if node.get_flow_sink() is not None:
                self._remove_flow_sink(node, node.get_flow_sink())
            self._rate_nodes.pop(node, None)
        elif isinstance(node, (LevelNode, SourceSinkNode)):
            for rate_node in node.get_incoming_flows():
                self._remove_flow_sink(rate_node, node)
            for rate_node in node.get_outgoing_flows():
                self._remove_flow_source(rate_node, node)
            self._level_nodes.pop(node, None)
            self._source_sink_nodes.pop(node, None)
        elif isinstance(node, ConstantNode):
            self._constant_nodes.pop(node, None)
        elif isinstance(node, AuxiliaryNode):
            self._auxiliary_nodes.pop(node, None)
        else:
            raise TypeError(f"Unknown node type: {type(node).__name__}")

    # ===============================================================================
    # Stepping
    # ===============================================================================

    def compute_next_values(self):
        """
        Advance the model by one round: auxiliaries in dependency order, then
        all rates from the values at the start of the round, then the levels.
        """
        if self._changeable:
            raise ModelStillChangeableException()

        for auxiliary_node in self._auxiliary_evaluation_order:
            auxiliary_node._compute_next_value()

        rate_values = [(rate_node, rate_node._evaluate_formula()) for rate_node in self._rate_nodes]
        for rate_node, value in rate_values:
            rate_node._set_current_value(value)

        for level_node in self._level_nodes:
            level_node._compute_next_value()

    def __repr__(self):
        return (f"Model({self._model_name!r}, levels={len(self._level_nodes)}, "
                f"rates={len(self._rate_nodes)}, constants={len(self._constant_nodes)}, "
                f"auxiliaries={len(self._auxiliary_nodes)}, "
                f"source_sinks={len(self._source_sink_nodes)})")
