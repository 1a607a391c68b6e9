# -*- coding: utf-8 -*-
"""
Graph algorithms over the dependency structure of a model.

Auxiliary nodes may depend on each other through their formulas; they are
evaluated in topological order (Kahn's algorithm), which also detects cycles.
The reachability walk starts at the rates attached to level nodes and follows
formula and flow dependencies backwards to find every node that influences a
level.
"""

from collections import deque
from typing import Dict, Iterable, List, Tuple

import networkx as nx

from sd_errors import AuxiliaryNodesCycleDependencyException
from sd_nodes import AuxiliaryNode, ConstantNode, LevelNode, RateNode, SourceSinkNode

# ===============================================================================
# Auxiliary Node Ordering
# ===============================================================================

def get_adjacent_list_of_auxiliary_nodes(auxiliary_nodes: Iterable[AuxiliaryNode]
                                         ) -> Dict[AuxiliaryNode, List[AuxiliaryNode]]:
    """Edges from every auxiliary node to the auxiliary nodes using it in their formula"""
    adjacent_list = {node: [] for node in auxiliary_nodes}
    for node in adjacent_list:
        for dependency in node._formula_dependencies():
            if isinstance(dependency, AuxiliaryNode):
                adjacent_list.setdefault(dependency, []).append(node)
    return adjacent_list


def get_number_of_predecessors_map(auxiliary_nodes: Iterable[AuxiliaryNode]
                                   ) -> Dict[AuxiliaryNode, int]:
    """Number of distinct auxiliary nodes each auxiliary node's formula uses"""
    predecessors = {}
    for node in auxiliary_nodes:
        predecessors[node] = sum(1 for dependency in node._formula_dependencies()
                                 if isinstance(dependency, AuxiliaryNode))
    return predecessors


def sort_auxiliary_nodes_topologically(auxiliary_nodes: Iterable[AuxiliaryNode]
                                       ) -> Tuple[List[AuxiliaryNode], List[AuxiliaryNode]]:
    """
    Kahn's algorithm over the auxiliary nodes.

    Returns:
        (ordered, blocked): the nodes in evaluation order, and the nodes that could
        not be ordered because they lie on or behind a dependency cycle
    """
    auxiliary_nodes = list(auxiliary_nodes)
    adjacent_list = get_adjacent_list_of_auxiliary_nodes(auxiliary_nodes)
    predecessors = get_number_of_predecessors_map(auxiliary_nodes)

    ready = deque(node for node in auxiliary_nodes if predecessors[node] == 0)
    ordered = []
    while ready:
        node = ready.popleft()
        ordered.append(node)
        for successor in adjacent_list[node]:
            predecessors[successor] -= 1
            if predecessors[successor] == 0:
                ready.append(successor)

    blocked = [node for node in auxiliary_nodes if predecessors[node] > 0]
    return ordered, blocked


def has_auxiliary_nodes_cycle_dependency(auxiliary_nodes: Iterable[AuxiliaryNode]) -> bool:
    _, blocked = sort_auxiliary_nodes_topologically(auxiliary_nodes)
    return bool(blocked)


def get_auxiliary_nodes_evaluation_order(auxiliary_nodes: Iterable[AuxiliaryNode]
                                         ) -> List[AuxiliaryNode]:
    ordered, blocked = sort_auxiliary_nodes_topologically(auxiliary_nodes)
    if blocked:
        raise AuxiliaryNodesCycleDependencyException()
    return ordered

# ===============================================================================
# Reachability
# ===============================================================================

def get_all_nodes_level_nodes_depend_on(level_nodes: Iterable[LevelNode]) -> set:
    """
    Every node that (transitively) influences at least one level node.

    The walk starts with the rates flowing into or out of the level nodes. Rates
    contribute their formula leaves and their source/sink endpoints, auxiliary
    nodes contribute their formula leaves. Level nodes themselves are only added
    when some formula references them.
    """
    reached = set()
    pending = deque()
    for level_node in level_nodes:
        for rate_node in level_node.get_incoming_flows() + level_node.get_outgoing_flows():
            if rate_node not in reached:
                reached.add(rate_node)
                pending.append(rate_node)

    while pending:
        node = pending.popleft()
        if isinstance(node, RateNode):
            dependencies = node.get_all_nodes_this_one_depends_on_and_source_sink_nodes()
        elif isinstance(node, AuxiliaryNode):
            dependencies = node.get_all_nodes_this_one_depends_on()
        else:
            continue
        for dependency in dependencies:
            if dependency not in reached:
                reached.add(dependency)
                pending.append(dependency)

    return reached

# ===============================================================================
# Dependency Graph
# ===============================================================================

NODE_KINDS = (
    (LevelNode, 'level'),
    (RateNode, 'rate'),
    (ConstantNode, 'constant'),
    (AuxiliaryNode, 'auxiliary'),
    (SourceSinkNode, 'source_sink'),
)


def get_node_kind(node) -> str:
    for node_class, kind in NODE_KINDS:
        if isinstance(node, node_class):
            return kind
    raise TypeError(f"Unknown node type: {type(node).__name__}")


def build_dependency_graph(level_nodes, rate_nodes, constant_nodes, auxiliary_nodes,
                           source_sink_nodes) -> nx.DiGraph:
    """
    Directed graph of formula dependencies (leaf -> node, kind 'formula') and
    flows (source -> rate -> sink, kind 'flow'). Graph nodes are the model nodes
    with 'kind' and 'label' attributes.
    """
    graph = nx.DiGraph()
    for nodes in (level_nodes, rate_nodes, constant_nodes, auxiliary_nodes):
        for node in nodes:
            graph.add_node(node, kind=get_node_kind(node), label=node.get_node_name())
    for node in source_sink_nodes:
        graph.add_node(node, kind='source_sink', label='source/sink')

    for node in list(rate_nodes) + list(auxiliary_nodes):
        for dependency in node._formula_dependencies():
            graph.add_edge(dependency, node, kind='formula')

    for rate_node in rate_nodes:
        if rate_node.get_flow_source() is not None:
            graph.add_edge(rate_node.get_flow_source(), rate_node, kind='flow')
        if rate_node.get_flow_sink() is not None:
            graph.add_edge(rate_node, rate_node.get_flow_sink(), kind='flow')

    return graph
