"""Network compiler and forward/backward engine.

A :class:`NetworkGraph` is compiled into a :class:`NetworkComputation`: one
flat parameter vector (all weights, then all biases) and a gradient vector
of the same layout. Per-layer weights are stored row-major with the output
unit outer and the input unit inner, so that weight ``(j, k)`` of layer
``L`` lives at ``L.weight_offset + j * L.input_size + k``. The input layer
owns no parameters.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple

import numpy as np

from .activations import get_activation
from .errors import CompilationError, ShapeMismatch
from .types import DTYPE, Array, NetworkGraph, NodeSpec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CompiledLayer:
    id: str
    kind: str
    activation: str
    input_size: int
    output_size: int
    weight_offset: int
    bias_offset: int
    dropout: float | None = None
    node_ids: Tuple[str, ...] = ()

    @property
    def weight_count(self) -> int:
        return self.input_size * self.output_size if self.kind != "input" else 0


@dataclass
class NetworkComputation:
    """Flat-buffer representation owned by exactly one training run."""

    layers: List[CompiledLayer]
    parameters: Array
    parameter_gradients: Array
    weight_count: int
    activations: List[Array]
    gradients: List[Array]
    edge_slots: Dict[str, int] = field(default_factory=dict)
    optimizer_state: Dict[str, Array] = field(default_factory=dict)

    @property
    def total_params(self) -> int:
        return int(self.parameters.size)

    @property
    def weights(self) -> Array:
        return self.parameters[: self.weight_count]

    @property
    def biases(self) -> Array:
        return self.parameters[self.weight_count :]

    @property
    def weight_gradients(self) -> Array:
        return self.parameter_gradients[: self.weight_count]

    @property
    def bias_gradients(self) -> Array:
        return self.parameter_gradients[self.weight_count :]

    @property
    def input_size(self) -> int:
        return self.layers[0].output_size

    @property
    def output_size(self) -> int:
        return self.layers[-1].output_size


def _ordered_nodes(graph: NetworkGraph, layer_id: str) -> List[NodeSpec]:
    # sorted() is stable, so equal positions keep their insertion order.
    nodes = graph.layer_nodes(layer_id)
    return sorted(nodes, key=lambda node: node.position_y if node.position_y is not None else 0.0)


def compile_network(graph: NetworkGraph) -> NetworkComputation:
    """Convert a layer/node/edge graph into a :class:`NetworkComputation`."""

    if not graph.layers:
        raise CompilationError("Network has no layers")
    for layer in graph.layers:
        if layer.units <= 0:
            raise CompilationError(f"Layer {layer.id!r} declares {layer.units} units")

    sorted_layers = sorted(graph.layers, key=lambda layer: layer.position_x)
    ordered_nodes = [_ordered_nodes(graph, layer.id) for layer in sorted_layers]

    compiled: List[CompiledLayer] = []
    weight_offset = 0
    bias_offset = 0
    for index, (layer, nodes) in enumerate(zip(sorted_layers, ordered_nodes)):
        if not nodes:
            raise CompilationError(f"Layer {layer.id!r} has no nodes")
        output_size = len(nodes)
        input_size = output_size if index == 0 else compiled[-1].output_size
        kind = "input" if index == 0 else layer.kind
        try:
            get_activation(layer.activation)
        except KeyError as exc:
            raise CompilationError(f"Layer {layer.id!r}: {exc.args[0]}") from exc
        compiled.append(
            CompiledLayer(
                id=layer.id,
                kind=kind,
                activation=layer.activation,
                input_size=input_size,
                output_size=output_size,
                weight_offset=weight_offset,
                bias_offset=bias_offset,
                dropout=layer.dropout,
                node_ids=tuple(node.id for node in nodes),
            )
        )
        if index > 0:
            weight_offset += input_size * output_size
            bias_offset += output_size

    weight_count = weight_offset
    parameters = np.zeros(weight_count + bias_offset, dtype=DTYPE)
    net = NetworkComputation(
        layers=compiled,
        parameters=parameters,
        parameter_gradients=np.zeros_like(parameters),
        weight_count=weight_count,
        activations=[np.zeros(layer.output_size, dtype=DTYPE) for layer in compiled],
        gradients=[np.zeros(layer.output_size, dtype=DTYPE) for layer in compiled],
    )
    _initialize_from_graph(net, graph, ordered_nodes)
    logger.info(
        "Compiled network: widths=%s parameters=%d",
        [layer.output_size for layer in compiled],
        net.total_params,
    )
    return net


def _initialize_from_graph(
    net: NetworkComputation,
    graph: NetworkGraph,
    ordered_nodes: Sequence[Sequence[NodeSpec]],
) -> None:
    edge_index = {(edge.source, edge.target): edge for edge in graph.edges.values()}
    weights = net.weights
    biases = net.biases
    for index in range(1, len(net.layers)):
        layer = net.layers[index]
        prev_nodes = ordered_nodes[index - 1]
        for j, node in enumerate(ordered_nodes[index]):
            biases[layer.bias_offset + j] = node.bias
            for k, prev in enumerate(prev_nodes):
                edge = edge_index.get((prev.id, node.id))
                if edge is None:
                    continue
                slot = layer.weight_offset + j * layer.input_size + k
                weights[slot] = edge.weight
                net.edge_slots[edge.id] = slot


def layer_weights(net: NetworkComputation, index: int) -> Array:
    """Return a writable ``(output_size, input_size)`` view of layer weights."""

    layer = net.layers[index]
    start = layer.weight_offset
    return net.weights[start : start + layer.weight_count].reshape(layer.output_size, layer.input_size)


def layer_weight_gradients(net: NetworkComputation, index: int) -> Array:
    layer = net.layers[index]
    start = layer.weight_offset
    flat = net.weight_gradients[start : start + layer.weight_count]
    return flat.reshape(layer.output_size, layer.input_size)


def _layer_bias(buffer: Array, layer: CompiledLayer) -> Array:
    return buffer[layer.bias_offset : layer.bias_offset + layer.output_size]


def _pre_activation(net: NetworkComputation, index: int) -> Array:
    layer = net.layers[index]
    return layer_weights(net, index) @ net.activations[index - 1] + _layer_bias(net.biases, layer)


def forward(net: NetworkComputation, inputs: Sequence[float] | Array) -> Array:
    """Run inference; returns a view of the output activation buffer."""

    x = np.asarray(inputs, dtype=DTYPE).reshape(-1)
    if x.size != net.input_size:
        raise ShapeMismatch(f"Input length {x.size} does not match input layer width {net.input_size}")
    net.activations[0][:] = x
    for index in range(1, len(net.layers)):
        activation = get_activation(net.layers[index].activation)
        net.activations[index][:] = activation.forward(_pre_activation(net, index))
    return net.activations[-1]


def zero_gradients(net: NetworkComputation) -> None:
    net.parameter_gradients.fill(0.0)
    for grad in net.gradients:
        grad.fill(0.0)


def backward(
    net: NetworkComputation,
    predictions: Array,
    targets: Sequence[float] | Array,
    loss,
    *,
    accumulate: bool = False,
) -> float:
    """Backpropagate ``loss`` through the last forward pass.

    Parameter gradients are overwritten unless ``accumulate`` is set, in
    which case they are added onto the existing buffer so a caller can sum
    over a batch. Returns the scalar loss.
    """

    target = np.asarray(targets, dtype=DTYPE).reshape(-1)
    if target.size != net.output_size:
        raise ShapeMismatch(f"Target length {target.size} does not match output layer width {net.output_size}")
    predictions = np.asarray(predictions, dtype=DTYPE).reshape(-1)
    value = loss.forward(predictions, target)

    if not accumulate:
        net.parameter_gradients.fill(0.0)
    for grad in net.gradients:
        grad.fill(0.0)
    net.gradients[-1][:] = loss.backward(predictions, target)

    bias_gradients = net.bias_gradients
    for index in range(len(net.layers) - 1, 0, -1):
        layer = net.layers[index]
        activation = get_activation(layer.activation)
        # Pre-activations are recomputed rather than cached by forward().
        delta = net.gradients[index] * activation.derivative(_pre_activation(net, index))
        layer_weight_gradients(net, index)[:] += np.outer(delta, net.activations[index - 1])
        _layer_bias(bias_gradients, layer)[:] += delta
        if index > 1:
            net.gradients[index - 1][:] += layer_weights(net, index).T @ delta
    return value


def predict(net: NetworkComputation, inputs: Sequence[Sequence[float]] | Array) -> Array:
    rows = np.asarray(inputs, dtype=DTYPE)
    out = np.zeros((rows.shape[0], net.output_size), dtype=DTYPE)
    for i, row in enumerate(rows):
        out[i] = forward(net, row)
    return out


def predicted_class(output: Array) -> int:
    """Argmax for multi-unit outputs, a 0.5 threshold for a single unit."""

    output = np.asarray(output).reshape(-1)
    if output.size == 1:
        return int(output[0] >= 0.5)
    return int(np.argmax(output))


def calculate_accuracy(predictions: Array, labels: Sequence[float] | Array) -> float:
    predictions = np.asarray(predictions)
    labels = np.asarray(labels)
    if predictions.shape[0] == 0:
        return 0.0
    if labels.ndim == 2:
        labels = labels.argmax(axis=1) if labels.shape[1] > 1 else labels[:, 0]
    correct = sum(predicted_class(row) == int(label) for row, label in zip(predictions, labels))
    return correct / predictions.shape[0]


def export_parameters(net: NetworkComputation) -> Tuple[Dict[str, float], Dict[str, float]]:
    """Map trained values back to edge ids and node ids."""

    weights = {edge_id: float(net.weights[slot]) for edge_id, slot in net.edge_slots.items()}
    biases: Dict[str, float] = {}
    for layer in net.layers[1:]:
        for j, node_id in enumerate(layer.node_ids):
            biases[node_id] = float(net.biases[layer.bias_offset + j])
    return weights, biases


def apply_parameters(net: NetworkComputation, graph: NetworkGraph) -> NetworkGraph:
    """Return a copy of ``graph`` carrying the compiled network's values."""

    weights, biases = export_parameters(net)
    updated = copy.deepcopy(graph)
    for edge in updated.edges.values():
        if edge.id in weights:
            edge.weight = weights[edge.id]
    for node in updated.nodes.values():
        if node.id in biases:
            node.bias = biases[node.id]
    return updated


__all__ = [
    "CompiledLayer",
    "NetworkComputation",
    "apply_parameters",
    "backward",
    "calculate_accuracy",
    "compile_network",
    "export_parameters",
    "forward",
    "layer_weights",
    "predict",
    "predicted_class",
    "zero_gradients",
]
