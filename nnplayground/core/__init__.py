"""Graph model, numeric engine and graph helpers."""

from . import activations, errors, factory, network, types, validation

__all__ = ["activations", "errors", "factory", "network", "types", "validation"]
