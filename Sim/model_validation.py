# -*- coding: utf-8 -*-
"""
Structural validation of stock-and-flow models.

validate_model() raises the first problem found, checking in this order:

1. the model has at least one level node
2. every rate node has a flow source and a flow sink
3. every rate node, then every auxiliary node, has a formula
4. the auxiliary nodes have no cycle dependency
5. every constant, auxiliary and source/sink node influences some level node

collect_validation_issues() runs the same checks without raising and reports
every problem at once, plus warnings for constructs that are legal but likely
mistakes.
"""

from typing import Iterator

from sd_errors import (
    AuxiliaryNodesCycleDependencyException,
    ModelValidationException,
    NoFormulaException,
    NoLevelNodeException,
    RateNodeFlowException,
    UselessNodeException,
)
from sd_topology import (
    get_all_nodes_level_nodes_depend_on,
    get_node_kind,
    has_auxiliary_nodes_cycle_dependency,
)
from validation_types import (
    ValidationCategory,
    ValidationIssue,
    ValidationReport,
    ValidationSeverity,
)

# ===============================================================================
# Rule Checks
# ===============================================================================

def iter_model_validation_errors(model) -> Iterator[ModelValidationException]:
    """Yield (not raise) every structural error of the model in validation order"""
    level_nodes = model.get_level_nodes()
    rate_nodes = model.get_rate_nodes()
    auxiliary_nodes = model.get_auxiliary_nodes()

    if not level_nodes:
        yield NoLevelNodeException()

    for rate_node in rate_nodes:
        if rate_node.get_flow_source() is None or rate_node.get_flow_sink() is None:
            yield RateNodeFlowException(rate_node)

    for node in rate_nodes + auxiliary_nodes:
        if not node.has_formula():
            yield NoFormulaException(node)

    if has_auxiliary_nodes_cycle_dependency(auxiliary_nodes):
        yield AuxiliaryNodesCycleDependencyException()

    # Level and rate nodes are never reported as useless
    used_nodes = get_all_nodes_level_nodes_depend_on(level_nodes)
    for node in (model.get_constant_nodes() + auxiliary_nodes
                 + model.get_source_sink_nodes()):
        if node not in used_nodes:
            yield UselessNodeException(node)


def validate_model(model):
    """
    Check the model's structure.

    Raises:
        ModelValidationException: the first problem found; the exception carries
            the offending node where there is one
    """
    for error in iter_model_validation_errors(model):
        raise error

# ===============================================================================
# Issue Reports
# ===============================================================================

_ISSUE_DETAILS = {
    NoLevelNodeException: (
        ValidationCategory.STRUCTURE,
        "Add at least one level node"),
    RateNodeFlowException: (
        ValidationCategory.FLOW_COMPATIBILITY,
        "Connect the rate node to a flow source and a flow sink"),
    NoFormulaException: (
        ValidationCategory.MISSING_FORMULA,
        "Define a formula for the node"),
    AuxiliaryNodesCycleDependencyException: (
        ValidationCategory.CIRCULAR_DEPENDENCY,
        "Break the cycle between the auxiliary nodes' formulas"),
    UselessNodeException: (
        ValidationCategory.PARAMETER_USAGE,
        "Use the node in a formula or flow that affects a level node, or remove it"),
}


def _describe_node(node):
    if node is None:
        return None, None
    kind = get_node_kind(node)
    name = None if kind == 'source_sink' else node.get_node_name()
    return name, kind


def _error_to_issue(error: ModelValidationException) -> ValidationIssue:
    category, suggestion = _ISSUE_DETAILS[type(error)]
    node = getattr(error, 'node', None)
    element_name, element_type = _describe_node(node)
    return ValidationIssue(
        severity=ValidationSeverity.ERROR,
        category=category,
        message=str(error),
        suggestion=suggestion,
        error_type=type(error).__name__,
        element_name=element_name,
        element_type=element_type,
        node=node,
    )


def collect_validation_issues(model) -> ValidationReport:
    """Report every structural problem of the model without raising"""
    report = ValidationReport()
    for error in iter_model_validation_errors(model):
        report.add_issue(_error_to_issue(error))

    for level_node in model.get_level_nodes():
        if not level_node.get_incoming_flows() and not level_node.get_outgoing_flows():
            report.add_issue(ValidationIssue(
                severity=ValidationSeverity.WARNING,
                category=ValidationCategory.FLOW_COMPATIBILITY,
                message=f"Level node '{level_node.get_node_name()}' has no flows and never changes.",
                suggestion="Connect the level node to a rate node",
                element_name=level_node.get_node_name(),
                element_type='level',
                node=level_node,
            ))

    return report
