"""Functions the model may call in chat mode.

Each entry pairs a JSON schema (sent with the request) with a Python
implementation that receives the decoded arguments as keyword arguments.
"""

from __future__ import annotations

import json
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError


class FunctionCallError(Exception):
    """The model asked for a function we cannot run."""


GET_CURRENT_TIME: Dict[str, Any] = {
    "name": "get_current_time",
    "description": "Get the current date and time, optionally in a given IANA time zone",
    "parameters": {
        "type": "object",
        "properties": {
            "timezone": {
                "type": "string",
                "description": "IANA time zone name, e.g. Asia/Shanghai or Europe/Paris",
            },
        },
        "required": [],
    },
}


def get_current_time(timezone: Optional[str] = None) -> Dict[str, str]:
    if timezone:
        try:
            now = datetime.now(ZoneInfo(timezone))
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise FunctionCallError(f"Unknown time zone: {timezone}") from exc
    else:
        now = datetime.now().astimezone()
    return {
        "datetime": now.strftime("%Y-%m-%d %H:%M:%S"),
        "timezone": timezone or str(now.tzinfo),
    }


FUNCTION_DEFINITIONS: List[Dict[str, Any]] = [GET_CURRENT_TIME]

IMPLEMENTATIONS: Dict[str, Callable[..., Any]] = {
    GET_CURRENT_TIME["name"]: get_current_time,
}


def call_function(name: str, arguments: str) -> Any:
    """Run the function *name* with JSON-encoded *arguments*."""
    implementation = IMPLEMENTATIONS.get(name)
    if implementation is None:
        raise FunctionCallError(f"Unknown function: {name}")
    try:
        kwargs = json.loads(arguments or "{}")
    except json.JSONDecodeError as exc:
        raise FunctionCallError(f"Invalid arguments for {name}: {exc}") from exc
    if not isinstance(kwargs, dict):
        raise FunctionCallError(f"Arguments for {name} must be a JSON object")
    try:
        return implementation(**kwargs)
    except TypeError as exc:
        raise FunctionCallError(f"Bad arguments for {name}: {exc}") from exc
