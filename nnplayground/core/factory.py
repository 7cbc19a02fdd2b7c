"""Builders for fully connected layer graphs."""

from __future__ import annotations

from typing import Dict, Mapping, Sequence

import numpy as np

from .types import EdgeSpec, LayerSpec, NetworkGraph, NodeSpec

LAYER_SPACING = 200.0
NODE_SPACING = 60.0


def create_network(
    layer_configs: Sequence[Mapping[str, object]],
    seed: int | None = None,
) -> NetworkGraph:
    """Create a fully connected graph from ``{"type", "units", "activation"}`` rows.

    Weights are drawn from U(-0.2, 0.2) and biases from U(-0.1, 0.1).
    """

    rng = np.random.default_rng(seed)
    graph = NetworkGraph()
    columns: list[list[NodeSpec]] = []
    for layer_index, config in enumerate(layer_configs):
        kind = str(config["type"])
        units = int(config["units"])
        activation = str(config.get("activation", "relu"))
        layer = LayerSpec(
            id=f"layer_{layer_index}",
            kind=kind,
            activation=activation,
            units=units,
            position_x=layer_index * LAYER_SPACING,
            name=f"Layer {layer_index + 1}",
            dropout=0.0 if kind == "dense" else None,
        )
        graph.layers.append(layer)
        column = []
        for unit in range(units):
            node = NodeSpec(
                id=f"{layer.id}_node_{unit}",
                layer_id=layer.id,
                bias=float(rng.uniform(-0.1, 0.1)),
                activation=activation,
                position_y=unit * NODE_SPACING,
            )
            graph.nodes[node.id] = node
            column.append(node)
        columns.append(column)

    for current, following in zip(columns[:-1], columns[1:]):
        for source in current:
            for target in following:
                edge = EdgeSpec(
                    id=f"{source.id}->{target.id}",
                    source=source.id,
                    target=target.id,
                    weight=float(rng.uniform(-0.2, 0.2)),
                )
                graph.edges[edge.id] = edge
    return graph


TEMPLATES: Dict[str, Sequence[Mapping[str, object]]] = {
    "xor": (
        {"type": "input", "units": 2, "activation": "linear"},
        {"type": "dense", "units": 4, "activation": "relu"},
        {"type": "output", "units": 1, "activation": "sigmoid"},
    ),
    "classification": (
        {"type": "input", "units": 2, "activation": "linear"},
        {"type": "dense", "units": 8, "activation": "relu"},
        {"type": "dense", "units": 4, "activation": "relu"},
        {"type": "output", "units": 2, "activation": "sigmoid"},
    ),
    "regression": (
        {"type": "input", "units": 2, "activation": "linear"},
        {"type": "dense", "units": 6, "activation": "relu"},
        {"type": "dense", "units": 3, "activation": "relu"},
        {"type": "output", "units": 1, "activation": "linear"},
    ),
}


def build_template(name: str, seed: int | None = None) -> NetworkGraph:
    try:
        layers = TEMPLATES[name]
    except KeyError as exc:
        available = ", ".join(sorted(TEMPLATES))
        raise KeyError(f"Unknown network template {name!r}. Available templates: {available}") from exc
    return create_network(layers, seed=seed)


__all__ = ["TEMPLATES", "build_template", "create_network"]
