"""
Core Nodes - Trigger and data-shaping node implementations.

All execute synchronously inside their run's thread.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict

from flowrunner.node_sdk import BaseNode, NodeResult, get_parameter
from flowrunner.utils.expressions import evaluate_all, first_item, resolve_expression


logger = logging.getLogger(__name__)


class TriggerNode(BaseNode):
    """
    Trigger - Entry point of every workflow.

    Receives the normalized event from the trigger adapter ({"json": ...})
    and passes it through unchanged. Adapter settings live in the config:
    `adapter` selects the inbound adapter and `token` may carry its
    credential.
    """

    kind = "trigger"

    description = {
        "displayName": "Trigger",
        "name": "trigger",
        "icon": "fa:bolt",
        "group": ["trigger"],
        "description": "Starts the workflow when an inbound event arrives",
        "inputs": [],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Adapter",
                "name": "adapter",
                "type": "options",
                "default": "webhook",
                "options": [
                    {"name": "Webhook", "value": "webhook"},
                    {"name": "Telegram", "value": "telegram"},
                ],
            },
            {
                "displayName": "Bot API Token",
                "name": "token",
                "type": "string",
                "default": "",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        return input_data


class ActionNode(BaseNode):
    """
    Action - Generic pass-through step.

    Optionally merges static `values` into dict payloads (or into each dict
    of a list payload). Anything else passes through untouched.
    """

    kind = "action"

    description = {
        "displayName": "Action",
        "name": "action",
        "icon": "fa:arrow-right",
        "group": ["transform"],
        "description": "Pass data through, optionally setting fixed values",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Values",
                "name": "values",
                "type": "collection",
                "default": {},
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        values = get_parameter(config, "values", {})
        if not values:
            return input_data

        if isinstance(input_data, dict):
            return {**input_data, **values}
        if isinstance(input_data, list):
            return [
                {**item, **values} if isinstance(item, dict) else item
                for item in input_data
            ]
        return input_data


class SetDataNode(BaseNode):
    """
    Set Data - Create key-value pairs from the incoming item.

    Keys and values support {{ expression }} templates resolved against the
    first input item. Output is a one-element list.
    """

    kind = "setData"

    description = {
        "displayName": "Set Data",
        "name": "setData",
        "icon": "fa:database",
        "group": ["transform"],
        "description": "Create custom key-value pairs to use in your workflow",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Fields",
                "name": "fields",
                "type": "collection",
                "default": [{"key": "", "value": ""}],
                "description": "Key/value pairs; values may use {{expression}}",
            },
            {
                "displayName": "Keep Input",
                "name": "keepInput",
                "type": "boolean",
                "default": False,
                "description": "Merge the fields into the input item instead of replacing it",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        fields = get_parameter(config, "fields", [])
        item = first_item(input_data)

        output: Dict[str, Any] = {}
        if get_parameter(config, "keepInput", False) and isinstance(item, dict):
            output.update(item)

        for field in fields if isinstance(fields, list) else []:
            key = field.get("key")
            if not key:
                continue
            resolved_key = resolve_expression(key, item)
            output[resolved_key] = resolve_expression(field.get("value", ""), item)

        return [output]


class FilterNode(BaseNode):
    """
    Filter - Keep list items for which every condition holds.
    """

    kind = "filter"

    description = {
        "displayName": "Filter",
        "name": "filter",
        "icon": "fa:filter",
        "group": ["transform"],
        "description": "Remove items that do not match the conditions",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Conditions",
                "name": "conditions",
                "type": "collection",
                "default": [{"value1": "", "operator": "is_equal_to", "value2": ""}],
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        conditions = get_parameter(config, "conditions", [])

        if not isinstance(input_data, list):
            logger.warning("Filter node expects a list; returning input unchanged")
            return input_data

        return [item for item in input_data if evaluate_all(conditions, item)]


class HttpRequestNode(BaseNode):
    """
    HTTP Request - Make an HTTP call with the run's timeout policy.

    The URL may use {{ expression }} templates resolved against the first
    input item.
    """

    kind = "httpRequest"

    description = {
        "displayName": "HTTP Request",
        "name": "httpRequest",
        "icon": "fa:globe",
        "group": ["input", "output"],
        "description": "Make HTTP requests",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Method",
                "name": "method",
                "type": "options",
                "default": "GET",
                "options": [
                    {"name": "GET", "value": "GET"},
                    {"name": "POST", "value": "POST"},
                    {"name": "PUT", "value": "PUT"},
                    {"name": "DELETE", "value": "DELETE"},
                    {"name": "PATCH", "value": "PATCH"},
                ],
            },
            {
                "displayName": "URL",
                "name": "url",
                "type": "string",
                "default": "",
                "required": True,
            },
            {
                "displayName": "Headers",
                "name": "headers",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Body",
                "name": "body",
                "type": "json",
                "default": "{}",
            },
            {
                "displayName": "Timeout",
                "name": "timeout",
                "type": "number",
                "default": 30,
                "description": "Timeout in seconds",
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        item = first_item(input_data)
        method = str(get_parameter(config, "method", "GET")).upper()
        url = resolve_expression(get_parameter(config, "url", ""), item)
        timeout = get_parameter(config, "timeout", None)

        if not url:
            raise self.fail("URL is required")

        headers = _parse_json(get_parameter(config, "headers", {}), {})
        body = _parse_json(get_parameter(config, "body", None), None)

        response = self.context.helpers_request(
            method,
            url,
            timeout=timeout,
            headers=headers,
            json=body if method in ("POST", "PUT", "PATCH") else None,
        )

        return {
            "statusCode": response.status_code,
            "headers": response.headers,
            "body": response.json_or_text(),
        }


class DataStorageNode(BaseNode):
    """
    Data Storage - Emits a fixed set of stored fields.

    `retrieve` returns the `storedData` fields; `store` returns an
    acknowledgement listing them. Nothing is persisted beyond the config.
    """

    kind = "dataStorage"

    description = {
        "displayName": "Data Storage",
        "name": "dataStorage",
        "icon": "fa:database",
        "group": ["transform"],
        "description": "Store or retrieve fixed data within the workflow",
        "inputs": ["main"],
        "outputs": ["main"],
    }

    properties = {
        "parameters": [
            {
                "displayName": "Action",
                "name": "action",
                "type": "options",
                "default": "retrieve",
                "options": [
                    {"name": "Retrieve", "value": "retrieve"},
                    {"name": "Store", "value": "store"},
                ],
            },
            {
                "displayName": "Stored Data",
                "name": "storedData",
                "type": "json",
                "default": {},
            },
        ],
    }

    def execute(self, config: Dict[str, Any], input_data: Any) -> NodeResult:
        action = get_parameter(config, "action", "retrieve")
        stored = _parse_json(get_parameter(config, "storedData", {}), {})
        if not isinstance(stored, dict):
            raise self.fail("storedData must be an object", input_data)

        if action == "store":
            return {
                "success": True,
                "action": "store",
                "message": "Data stored successfully",
                "storedFields": list(stored),
                "data": dict(stored),
            }
        if action == "retrieve":
            return {
                "success": True,
                "action": "retrieve",
                "message": "Data retrieved successfully",
                **stored,
            }
        raise self.fail(f"Unsupported action: {action}", input_data)


def _parse_json(value: Any, fallback: Any) -> Any:
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return fallback
    return value if value is not None else fallback


__all__ = [
    "TriggerNode",
    "ActionNode",
    "SetDataNode",
    "FilterNode",
    "HttpRequestNode",
    "DataStorageNode",
]
