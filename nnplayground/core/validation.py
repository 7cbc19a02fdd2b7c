"""Structural checks run on a graph before it is handed to the compiler."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .types import NetworkGraph


@dataclass(frozen=True)
class ValidationIssue:
    severity: str  # "error" or "warning"
    message: str
    layer_id: str | None = None
    node_id: str | None = None
    edge_id: str | None = None


def validate_network(graph: NetworkGraph) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    layers = graph.layers

    inputs = [layer for layer in layers if layer.kind == "input"]
    outputs = [layer for layer in layers if layer.kind == "output"]
    if not inputs:
        issues.append(ValidationIssue("error", "Network must have at least one input layer"))
    if len(inputs) > 1:
        issues.append(ValidationIssue("error", "Network can only have one input layer"))
    if not outputs:
        issues.append(ValidationIssue("error", "Network must have at least one output layer"))
    if len(outputs) > 1:
        issues.append(ValidationIssue("error", "Network can only have one output layer"))

    ordered = sorted(layers, key=lambda layer: layer.position_x)
    if ordered and ordered[0].kind != "input":
        issues.append(ValidationIssue("error", "First layer must be input layer"))
    if ordered and ordered[-1].kind != "output":
        issues.append(ValidationIssue("error", "Last layer must be output layer"))

    members = {layer.id: [node.id for node in graph.layer_nodes(layer.id)] for layer in layers}
    for layer in layers:
        count = len(members[layer.id])
        label = layer.name or layer.id
        if count == 0:
            issues.append(ValidationIssue("error", f'Layer "{label}" has no nodes', layer_id=layer.id))
        if count != layer.units:
            issues.append(
                ValidationIssue(
                    "warning",
                    f'Layer "{label}" units ({layer.units}) doesn\'t match node count ({count})',
                    layer_id=layer.id,
                )
            )

    for current, following in zip(ordered[:-1], ordered[1:]):
        sources = set(members[current.id])
        targets = set(members[following.id])
        connected = sum(
            1 for edge in graph.edges.values() if edge.source in sources and edge.target in targets
        )
        names = f'"{current.name or current.id}" and "{following.name or following.id}"'
        if connected == 0:
            issues.append(
                ValidationIssue("error", f"No connections between {names}", layer_id=current.id)
            )
        expected = len(sources) * len(targets)
        if connected < expected:
            issues.append(
                ValidationIssue(
                    "warning",
                    f"Incomplete connectivity between {names} ({connected}/{expected})",
                    layer_id=current.id,
                )
            )

    for node in graph.nodes.values():
        if node.layer_id not in members:
            issues.append(
                ValidationIssue("error", "Node belongs to non-existent layer", node_id=node.id)
            )

    for edge in graph.edges.values():
        if edge.source not in graph.nodes:
            issues.append(
                ValidationIssue("error", "Edge references non-existent source node", edge_id=edge.id)
            )
        if edge.target not in graph.nodes:
            issues.append(
                ValidationIssue("error", "Edge references non-existent target node", edge_id=edge.id)
            )
    return issues


def is_network_valid(graph: NetworkGraph) -> bool:
    return not any(issue.severity == "error" for issue in validate_network(graph))


__all__ = ["ValidationIssue", "is_network_valid", "validate_network"]
