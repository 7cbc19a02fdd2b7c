"""Error kinds raised by the training engine."""

from __future__ import annotations


class NetworkError(Exception):
    """Base class for engine failures reported to the host."""


class CompilationError(NetworkError, ValueError):
    """The layer graph cannot be turned into a computation structure."""


class ShapeMismatch(NetworkError, ValueError):
    """An input or target vector does not match the layer width."""


class UninitializedRunError(NetworkError, RuntimeError):
    """A run command arrived before any network was compiled."""


class ExecutionContextUnavailable(NetworkError, RuntimeError):
    """The background execution context is not running."""


__all__ = [
    "CompilationError",
    "ExecutionContextUnavailable",
    "NetworkError",
    "ShapeMismatch",
    "UninitializedRunError",
]
