"""Core utilities: errors, HTTP transport and the sandboxed JS evaluator."""

from .errors import (
    EvaluationFailure,
    LocatorMiss,
    ResolutionError,
    ResolutionUnavailable,
    TransportFailure,
)
from .http_client import HTTPClient
from .js_interpreter import JSInterpreter, JSInterpreterError, SandboxedEvaluator

__all__ = [
    "EvaluationFailure",
    "HTTPClient",
    "JSInterpreter",
    "JSInterpreterError",
    "LocatorMiss",
    "ResolutionError",
    "ResolutionUnavailable",
    "SandboxedEvaluator",
    "TransportFailure",
]
