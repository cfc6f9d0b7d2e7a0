"""
Node Results - What a node hands back to the executor.

A node's execute() returns one of:

- a plain payload, emitted once on the default "main" port
- PortOutputs, a mapping of port name -> payload (one emission per port)
- Emissions, an ordered list of Emission(port, payload); ports may repeat

The executor only ever sees the normalized List[Emission].
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Union


MAIN_PORT = "main"


@dataclass(frozen=True)
class Emission:
    """A single payload leaving a node on a named output port."""
    port: str
    payload: Any


class PortOutputs(dict):
    """
    Mapping of output port name to payload.

    Example:
        return PortOutputs({"true": input_data})
    """


class Emissions(list):
    """
    Ordered emissions; the same port may fire more than once.

    Example:
        return Emissions([Emission("Loop", b) for b in batches] + [Emission("Done", batches)])
    """

    def grouped(self) -> Dict[str, List[Any]]:
        """Payloads grouped by port, in emission order."""
        out: Dict[str, List[Any]] = {}
        for emission in self:
            out.setdefault(emission.port, []).append(emission.payload)
        return out


NodeResult = Union[PortOutputs, Emissions, Any]


def normalize_result(result: NodeResult) -> List[Emission]:
    """Convert any NodeResult into an ordered list of emissions."""
    if isinstance(result, Emissions):
        return list(result)
    if isinstance(result, PortOutputs):
        return [Emission(port, payload) for port, payload in result.items()]
    return [Emission(MAIN_PORT, result)]


def recorded_output(result: NodeResult) -> Any:
    """Shape a NodeResult for the step record."""
    if isinstance(result, Emissions):
        return result.grouped()
    if isinstance(result, PortOutputs):
        return dict(result)
    return result


__all__ = [
    "MAIN_PORT",
    "Emission",
    "Emissions",
    "PortOutputs",
    "NodeResult",
    "normalize_result",
    "recorded_output",
]
