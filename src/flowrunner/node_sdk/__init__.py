"""
Node SDK - The node contract.

This package provides:
- BaseNode: Abstract base class every node kind implements
- NodeExecutionContext: Runtime context for a node
- PortOutputs / Emissions / Emission: Multi-port node results
- HttpClient: Timeout-bounded HTTP helper

All nodes execute synchronously inside their run's thread.
"""

from .items import (
    MAIN_PORT,
    Emission,
    Emissions,
    NodeResult,
    PortOutputs,
    normalize_result,
    recorded_output,
)
from .basenode import (
    BaseNode,
    NodeExecutionContext,
    NodeParameter,
    NodeParameterType,
    get_parameter,
)
from .http import HttpApiError, HttpClient, HttpResponse, HttpTimeoutError

__all__ = [
    # Results
    "MAIN_PORT",
    "Emission",
    "Emissions",
    "NodeResult",
    "PortOutputs",
    "normalize_result",
    "recorded_output",
    # Context
    "NodeExecutionContext",
    # Base class
    "BaseNode",
    "NodeParameter",
    "NodeParameterType",
    "get_parameter",
    # HTTP
    "HttpClient",
    "HttpResponse",
    "HttpApiError",
    "HttpTimeoutError",
]
