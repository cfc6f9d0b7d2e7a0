"""
Logic Nodes - Control-flow node implementations.

- if / switch route a payload to exactly one output port
- merge combines the payloads delivered on its incoming edges
- loop splits a list into batches ("Loop" per batch, then "Done")
- wait pauses the run
- stopAndError terminates the run

The executor gives merge and loop their special scheduling; the classes
here only declare it (collects_inputs / accepts_loop_back).
"""

from __future__ import annotations

import logging
import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from flowrunner.errors import NodeExecutionError, StopWorkflowError
from flowrunner.node_sdk import (
    BaseNode,
    Emission,
    Emissions,
    NodeResult,
    PortOutputs,
    get_parameter,
)
from flowrunner.utils.expressions import (
    compare,
    evaluate_all,
    evaluate_condition,
    field_key,
    first_item,
    lookup_path,
)


logger = logging.getLogger(__name__)

DEFAULT_PORT = "default"

_UNIT_SECONDS = {
    "seconds": 1,
    "minutes": 60,
    "hours": 60 * 60,
    "days": 24 * 60 * 60,
}


class IfNode(BaseNode):
    """
    If - Route the input to "true" or "false".

    Evaluates `conditions` (combined with `combinator`) against the first
    input item, or calls a `predicate` callable with the whole input.
    Exactly one port fires.
    """

    kind = "if"

    description = {
        "displayName": "If",
        "name": "if",
        "icon": "fa:sitemap",
        "group": ["flow"],
        "description": "Route items to different branches (true/false)",
        "inputs": ["main"],
        "outputs": ["true", "false"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Conditions",
                "name": "conditions",
                "type": "collection",
                "default": [{"value1": "", "operator": "is_equal_to", "value2": ""}],
            },
            {
                "displayName": "Combinator",
                "name": "combinator",
                "type": "options",
                "default": "AND",
                "options": [
                    {"name": "AND", "value": "AND"},
                    {"name": "OR", "value": "OR"},
                ],
            },
            {
                "displayName": "Ignore Case",
                "name": "ignoreCase",
                "type": "boolean",
                "default": False,
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        predicate: Optional[Callable[[Any], Any]] = config.get("predicate")
        if callable(predicate):
            matched = bool(predicate(input_data))
        else:
            item = first_item(input_data)
            if item is None:
                matched = False
            else:
                matched = evaluate_all(
                    get_parameter(config, "conditions", []),
                    item,
                    combinator=get_parameter(config, "combinator", "AND"),
                    ignore_case=get_parameter(config, "ignoreCase", False),
                )

        self.logger.debug(f"If evaluated to {matched}")
        return PortOutputs({"true" if matched else "false": input_data})


class SwitchNode(BaseNode):
    """
    Switch - Route the input to the port named after the first matching case.

    Cases mode: `value` names the discriminant field (or {{ field }}) and
    `cases` is an ordered list of values. Rules mode: `rules` is an ordered
    list of conditions, each with an optional `output` port name (defaults
    to the rule's index). No match emits on "default".
    """

    kind = "switch"

    description = {
        "displayName": "Switch",
        "name": "switch",
        "icon": "fa:random",
        "group": ["flow"],
        "description": "Route items based on a discriminant value",
        "inputs": ["main"],
        "outputs": [DEFAULT_PORT],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "cases",
                "options": [
                    {"name": "Cases", "value": "cases"},
                    {"name": "Rules", "value": "rules"},
                ],
            },
            {
                "displayName": "Value",
                "name": "value",
                "type": "string",
                "default": "",
                "description": "Field holding the discriminant, e.g. {{json.type}}",
            },
            {
                "displayName": "Cases",
                "name": "cases",
                "type": "collection",
                "default": [],
            },
            {
                "displayName": "Rules",
                "name": "rules",
                "type": "collection",
                "default": [],
            },
            {
                "displayName": "Ignore Case",
                "name": "ignoreCase",
                "type": "boolean",
                "default": False,
            },
        ],
    }

    def output_ports(self, config: Dict[str, Any]) -> List[str]:
        if get_parameter(config, "mode", "cases") == "rules":
            ports = [
                str(rule.get("output", index))
                for index, rule in enumerate(get_parameter(config, "rules", []))
            ]
        else:
            ports = [str(case) for case in get_parameter(config, "cases", [])]
        return ports + [DEFAULT_PORT]

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        item = first_item(input_data)
        ignore_case = get_parameter(config, "ignoreCase", False)

        if get_parameter(config, "mode", "cases") == "rules":
            port = self._match_rules(get_parameter(config, "rules", []), item, ignore_case)
        else:
            port = self._match_cases(config, item, ignore_case)

        return PortOutputs({port: input_data})

    def _match_cases(self, config: Dict[str, Any], item: Any, ignore_case: bool) -> str:
        key = field_key(get_parameter(config, "value", ""))
        discriminant = lookup_path(item, key) if key and item is not None else None
        if discriminant is None:
            return DEFAULT_PORT

        for case in get_parameter(config, "cases", []):
            if compare(discriminant, "is_equal_to", case, ignore_case):
                return str(case)
        return DEFAULT_PORT

    def _match_rules(self, rules: List[Dict[str, Any]], item: Any, ignore_case: bool) -> str:
        if item is None:
            return DEFAULT_PORT
        for index, rule in enumerate(rules):
            if evaluate_condition(rule, item, ignore_case):
                return str(rule.get("output", index))
        return DEFAULT_PORT


class MergeNode(BaseNode):
    """
    Merge - Combine the payloads delivered on every incoming edge that fired.

    The executor buffers deliveries and calls execute() once with the list
    of payloads in edge-declaration order. "append" concatenates them (list
    payloads are spliced in); "mergeByKey" additionally folds dict items
    that share `keyField`.
    """

    kind = "merge"
    collects_inputs = True

    description = {
        "displayName": "Merge",
        "name": "merge",
        "icon": "fa:share-alt",
        "group": ["flow"],
        "description": "Merges data from multiple streams",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Mode",
                "name": "mode",
                "type": "options",
                "default": "append",
                "options": [
                    {"name": "Append", "value": "append"},
                    {"name": "Merge by Key", "value": "mergeByKey"},
                ],
            },
            {
                "displayName": "Key Field",
                "name": "keyField",
                "type": "string",
                "default": "",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        merged: List[Any] = []
        for payload in input_data or []:
            if isinstance(payload, list):
                merged.extend(payload)
            else:
                merged.append(payload)

        if get_parameter(config, "mode", "append") == "mergeByKey":
            key_field = get_parameter(config, "keyField", "")
            if not key_field:
                raise self.fail("Merge by key requires keyField")
            return _merge_by_key(merged, key_field)

        return merged


def _merge_by_key(items: List[Any], key_field: str) -> List[Any]:
    by_key: Dict[Any, Dict[str, Any]] = {}
    out: List[Any] = []
    for item in items:
        key = lookup_path(item, key_field) if isinstance(item, dict) else None
        if key is None:
            out.append(item)
            continue
        if key in by_key:
            by_key[key].update(item)
        else:
            by_key[key] = dict(item)
            out.append(by_key[key])
    return out


class LoopNode(BaseNode):
    """
    Loop Over Items - Split the input into consecutive batches.

    Emits each batch on "Loop" (in order), then the list of all batches on
    "Done". A non-list input is treated as one batch holding that input.
    Edges from the loop body back into this node are accepted and ignored.
    """

    kind = "loop"
    accepts_loop_back = True

    description = {
        "displayName": "Loop Over Items",
        "name": "loop",
        "icon": "fa:sync-alt",
        "group": ["flow"],
        "description": "Split data into batches and iterate over each batch",
        "inputs": ["main"],
        "outputs": ["Loop", "Done"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Batch Size",
                "name": "batchSize",
                "type": "number",
                "default": 1,
                "description": "Number of items per batch",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        batches = split_batches(input_data, get_parameter(config, "batchSize", 1))
        self.logger.debug(f"Split input into {len(batches)} batches")

        emissions = Emissions(Emission("Loop", batch) for batch in batches)
        emissions.append(Emission("Done", batches))
        return emissions


def split_batches(input_data: Any, batch_size: Any) -> List[List[Any]]:
    """
    Split a list into batches of `batch_size` (the last may be shorter).

    Raises:
        NodeExecutionError: If batch_size is not a positive integer
    """
    try:
        size = int(batch_size)
    except (TypeError, ValueError):
        raise NodeExecutionError(f"Invalid batch size: {batch_size!r}")
    if size <= 0:
        raise NodeExecutionError("Batch size must be greater than 0")

    if not isinstance(input_data, list):
        return [[input_data]]

    count = math.ceil(len(input_data) / size)
    return [input_data[i * size:(i + 1) * size] for i in range(count)]


class WaitNode(BaseNode):
    """
    Wait - Pause this run, then pass the input through unchanged.

    Resume conditions:
    - afterTimeInterval: `amount` of `unit` (seconds, minutes, hours, days)
    - atSpecificTime: ISO-8601 `dateTime` (naive values are UTC)
    - untilCondition: poll callable `predicate(input)` every `pollInterval`
      seconds until it is truthy, failing after `timeout` seconds

    Only the run's own thread sleeps; the sleep ends early if the executor
    shuts down.
    """

    kind = "wait"

    description = {
        "displayName": "Wait",
        "name": "wait",
        "icon": "fa:clock",
        "group": ["flow"],
        "description": "Wait before continuing with execution",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Resume Condition",
                "name": "resumeCondition",
                "type": "options",
                "default": "afterTimeInterval",
                "options": [
                    {"name": "After Time Interval", "value": "afterTimeInterval"},
                    {"name": "At Specific Time", "value": "atSpecificTime"},
                    {"name": "Until Condition", "value": "untilCondition"},
                ],
            },
            {
                "displayName": "Amount",
                "name": "amount",
                "type": "number",
                "default": 1,
            },
            {
                "displayName": "Unit",
                "name": "unit",
                "type": "options",
                "default": "seconds",
                "options": [{"name": u.title(), "value": u} for u in _UNIT_SECONDS],
            },
            {
                "displayName": "Date and Time",
                "name": "dateTime",
                "type": "dateTime",
                "default": "",
            },
            {
                "displayName": "Poll Interval",
                "name": "pollInterval",
                "type": "number",
                "default": 1,
            },
            {
                "displayName": "Timeout",
                "name": "timeout",
                "type": "number",
                "default": 300,
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        condition = get_parameter(config, "resumeCondition", "afterTimeInterval")

        if condition == "afterTimeInterval":
            self.context.sleep(interval_seconds(config))
        elif condition == "atSpecificTime":
            self.context.sleep(_seconds_until(get_parameter(config, "dateTime", "")))
        elif condition == "untilCondition":
            self._wait_for_predicate(config, input_data)
        else:
            raise self.fail(f"Unknown resume condition: {condition}")

        return input_data

    def _wait_for_predicate(self, config: Dict[str, Any], input_data: Any) -> None:
        predicate = config.get("predicate")
        if not callable(predicate):
            raise self.fail("untilCondition requires a callable predicate")

        poll = float(get_parameter(config, "pollInterval", 1))
        timeout = float(get_parameter(config, "timeout", 300))
        deadline = time.monotonic() + timeout

        while not predicate(input_data):
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise self.fail(f"Wait condition not met within {timeout}s")
            self.context.sleep(min(poll, remaining))


def interval_seconds(config: Dict[str, Any]) -> float:
    """Seconds to wait for afterTimeInterval (accepts waitAmount/waitUnit too)."""
    amount = get_parameter(config, "amount", get_parameter(config, "waitAmount", 0))
    unit = get_parameter(config, "unit", get_parameter(config, "waitUnit", "seconds"))
    if unit not in _UNIT_SECONDS:
        raise NodeExecutionError(f"Unknown wait unit: {unit}")
    try:
        return max(float(amount), 0.0) * _UNIT_SECONDS[unit]
    except (TypeError, ValueError):
        raise NodeExecutionError(f"Invalid wait amount: {amount!r}")


def _seconds_until(value: str) -> float:
    try:
        target = datetime.fromisoformat(str(value))
    except ValueError:
        raise NodeExecutionError(f"Invalid dateTime: {value!r}")
    if target.tzinfo is None:
        target = target.replace(tzinfo=timezone.utc)
    return max((target - datetime.now(timezone.utc)).total_seconds(), 0.0)


class StopAndErrorNode(BaseNode):
    """
    Stop and Error - Terminate the run with a custom error message.

    Its "main" port never fires, so nothing downstream runs. errorType
    "errorObject" attaches the input payload to the error.
    """

    kind = "stopAndError"

    description = {
        "displayName": "Stop and Error",
        "name": "stopAndError",
        "icon": "fa:exclamation-triangle",
        "group": ["flow"],
        "description": "Throw an error in the workflow",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Error Type",
                "name": "errorType",
                "type": "options",
                "default": "errorMessage",
                "options": [
                    {"name": "Error Message", "value": "errorMessage"},
                    {"name": "Error Object", "value": "errorObject"},
                ],
            },
            {
                "displayName": "Error Message",
                "name": "errorMessage",
                "type": "string",
                "default": "Workflow execution stopped due to an error.",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        error_type = get_parameter(config, "errorType", "errorMessage")
        message = get_parameter(
            config, "errorMessage", "Workflow execution stopped due to an error."
        )
        node_id = self.context.node_id

        if error_type == "errorMessage":
            raise StopWorkflowError(message, node_id=node_id)
        if error_type == "errorObject":
            raise StopWorkflowError(message, node_id=node_id, data=input_data)
        raise NodeExecutionError(f"Unknown error type: {error_type}", node_id=node_id)


__all__ = [
    "IfNode",
    "SwitchNode",
    "MergeNode",
    "LoopNode",
    "WaitNode",
    "StopAndErrorNode",
    "split_batches",
    "interval_seconds",
]
