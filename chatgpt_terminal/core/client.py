"""OpenAI client wrapper for chat completions and image generation."""

from __future__ import annotations

import logging
from typing import List, Dict, Any, Optional, Tuple

import openai
from openai import OpenAI  # type: ignore

from ..utils import (
    ASSISTANT_LABEL,
    ERROR_LABEL,
    Ansi,
    Spinner,
    console,
)
from .config import DEFAULT_MODEL
from .functions import FUNCTION_DEFINITIONS
from .session import Mode
from .stream import STREAM_END, StreamError, decode_stream

logger = logging.getLogger(__name__)

# 0–2, higher is more creative. CLI mode must follow its system message literally.
CHAT_TEMPERATURE = 1
CLI_TEMPERATURE = 0


def describe_error(exc: BaseException) -> Tuple[str, str]:
    """Return the ``(type, message)`` pair to show for an API failure."""
    body = getattr(exc, "body", None)
    if isinstance(body, dict):
        err_type = body.get("type") or type(exc).__name__
        message = body.get("message") or str(exc)
        return str(err_type), str(message)
    return type(exc).__name__, str(exc) or "Error"


def print_error(title: str, exc: BaseException) -> None:
    err_type, message = describe_error(exc)
    console.print(
        f"\n{ERROR_LABEL} {Ansi.style(title, Ansi.BG_RED)} => "
        f"{Ansi.style(err_type)}: {Ansi.style(message)}\n"
    )


class OpenAIClientWrapper:
    """Thin wrapper around the OpenAI Python SDK hiding streaming details."""

    def __init__(self, client: OpenAI, model: str = DEFAULT_MODEL):
        self.client = client
        self.model = model

    # ------------------------------------------------------------------
    # Helper methods
    # ------------------------------------------------------------------

    def build_params(
        self,
        mode: Mode,
        messages: List[Dict[str, Any]],
        *,
        stream: bool,
        allow_functions: bool = True,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {
            "model": self.model,
            "messages": list(messages),
            "temperature": CLI_TEMPERATURE if mode == Mode.CLI else CHAT_TEMPERATURE,
            "n": 1,
        }
        if stream:
            params["stream"] = True
        if mode == Mode.CHAT and allow_functions:
            params["functions"] = FUNCTION_DEFINITIONS
            params["function_call"] = "auto"
        return params

    @staticmethod
    def _to_message(raw: Dict[str, Any]) -> Dict[str, Any]:
        message: Dict[str, Any] = {
            "role": raw.get("role") or "assistant",
            "content": raw.get("content"),
        }
        function_call = raw.get("function_call")
        if function_call and function_call.get("name"):
            message["function_call"] = {
                "name": function_call["name"],
                "arguments": function_call.get("arguments") or "",
            }
        return message

    @staticmethod
    def _write_fragment(fragment: str) -> None:
        if fragment == STREAM_END:
            console.print("\n")
            return
        console.print(fragment, end="", markup=False, highlight=False)
        console.file.flush()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def chat_completion(
        self,
        mode: Mode,
        messages: List[Dict[str, Any]],
        *,
        stream: bool,
        allow_functions: bool = True,
    ) -> Optional[Dict[str, Any]]:
        """Request one completion and return the assistant message.

        Returns ``None`` after printing the error if the request failed; the
        caller's message log is never touched here.
        """
        params = self.build_params(
            mode, messages, stream=stream, allow_functions=allow_functions
        )
        logger.debug(
            "chat completion: model=%s mode=%s messages=%d stream=%s",
            self.model, mode.value, len(messages), stream,
        )

        # ------------------------------------------------------------------
        # Path 1 – streaming: decode the raw event stream as it arrives
        # ------------------------------------------------------------------
        if stream:
            prefix = f"\n{ASSISTANT_LABEL}: "
            spinner = Spinner(prefix=prefix)
            try:
                spinner.start()
                with self.client.chat.completions.with_streaming_response.create(
                    **params
                ) as response:
                    spinner.stop()
                    message = decode_stream(response.iter_text(), self._write_fragment)
                # a bare function call prints nothing after the label
                if message.get("function_call") and not (message.get("content") or "").strip():
                    console.print()
                return message
            except openai.OpenAIError as e:
                spinner.stop()
                print_error("Chat completion failed", e)
                return None
            except StreamError as e:
                spinner.stop()
                print_error("Stream decoding failed", e)
                return None

        # ------------------------------------------------------------------
        # Path 2 – buffered response printed at once
        # ------------------------------------------------------------------
        spinner = Spinner()
        try:
            with spinner:
                completion = self.client.chat.completions.create(**params)  # type: ignore[arg-type]
        except openai.OpenAIError as e:
            print_error("Chat completion failed", e)
            return None

        message = self._to_message(completion.choices[0].message.model_dump(exclude_none=True))
        if message["content"]:
            console.print(f"\n{ASSISTANT_LABEL}: ", end="")
            console.print(message["content"], markup=False, highlight=False)
            console.print()
        return message

    def generate_image(self, prompt: str) -> Optional[List[str]]:
        """Generate one image for *prompt* and return its URLs."""
        try:
            with Spinner():
                response = self.client.images.generate(
                    prompt=prompt, n=1, response_format="url"
                )
        except openai.OpenAIError as e:
            print_error("Image generation failed", e)
            return None
        return [image.url for image in response.data if image.url]
