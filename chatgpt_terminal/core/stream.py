"""Reassemble a streamed chat completion from raw server-sent-event text.

The API sends ``data: {...}`` payloads separated by blank lines and finishes
with ``data: [DONE]``. Each JSON payload carries a *delta* with an optional
role, a content fragment and pieces of a function call. This module folds
those deltas into a single message dict::

    message = decode_stream(response.iter_text(), on_output=print_fragment)

A payload is only recognised when it starts a chunk or follows a blank line;
a payload cut in half by a chunk boundary is dropped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Iterator, NamedTuple, Optional

import httpx
import openai

logger = logging.getLogger(__name__)

DATA_PREFIX = "data:"
DONE_TOKEN = "[DONE]"
PAYLOAD_DELIMITER = "\n\n"

# Passed to the output callback once the stream finished with some content.
STREAM_END = "[END]"


class StreamError(Exception):
    """The transport failed or closed abnormally while streaming."""


class PayloadResult(NamedTuple):
    delta: Optional[Dict[str, Any]] = None
    done: bool = False
    error: Optional[str] = None


@dataclass
class StreamAssemblyState:
    role: Optional[str] = None
    content: str = ""
    function_call: Dict[str, str] = field(
        default_factory=lambda: {"name": "", "arguments": ""}
    )

    def apply(self, delta: Dict[str, Any]) -> str:
        """Fold *delta* into the state and return its content fragment."""
        role = delta.get("role")
        if role and self.role is None:
            self.role = role

        function_call = delta.get("function_call") or {}
        if function_call.get("name"):
            self.function_call["name"] = function_call["name"]
        if function_call.get("arguments"):
            self.function_call["arguments"] += function_call["arguments"]

        content = delta.get("content") or ""
        self.content += content
        return content

    def to_message(self) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "role": self.role or "assistant",
            "content": self.content,
        }
        if self.function_call["name"]:
            message["function_call"] = dict(self.function_call)
        return message


def parse_payload(payload: str) -> PayloadResult:
    """Decode one ``data:`` payload into its first choice's delta."""
    payload = payload.strip()
    if DONE_TOKEN in payload:
        return PayloadResult(done=True)
    if not payload.startswith(DATA_PREFIX):
        return PayloadResult()

    raw = payload[len(DATA_PREFIX):].strip()
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        return PayloadResult(error=f"invalid JSON payload: {exc}")
    if not isinstance(data, dict):
        return PayloadResult(error="payload is not a JSON object")

    choices = data.get("choices") or [{}]
    delta = choices[0].get("delta") if isinstance(choices[0], dict) else None
    return PayloadResult(delta=delta or {})


def iter_payloads(chunk: str) -> Iterator[str]:
    for payload in chunk.split(PAYLOAD_DELIMITER):
        if payload.strip():
            yield payload


def iter_fragments(chunks: Iterable[str], state: StreamAssemblyState) -> Iterator[str]:
    """Yield content fragments in arrival order while filling *state*."""
    for chunk in chunks:
        for payload in iter_payloads(chunk):
            result = parse_payload(payload)
            if result.error:
                logger.debug("skipping stream payload: %s", result.error)
                continue
            if result.delta is None:
                continue
            fragment = state.apply(result.delta)
            if fragment:
                yield fragment


def decode_stream(
    chunks: Iterable[str],
    on_output: Optional[Callable[[str], None]] = None,
) -> Dict[str, Any]:
    """Consume *chunks* and return the assembled message.

    Every content fragment is forwarded to *on_output* as it arrives, followed
    by :data:`STREAM_END` if the final content is not blank.
    """
    state = StreamAssemblyState()
    try:
        for fragment in iter_fragments(chunks, state):
            if on_output:
                on_output(fragment)
    except (httpx.HTTPError, openai.APIError, OSError) as exc:
        raise StreamError(str(exc) or type(exc).__name__) from exc

    if on_output and state.content.strip():
        on_output(STREAM_END)
    return state.to_message()
