"""Terminal ChatGPT client: keyword dispatch and the interactive loop."""
from __future__ import annotations

import argparse
import json
import logging
import sys
import webbrowser
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Optional

import questionary
from openai import OpenAI  # type: ignore
from rich.panel import Panel

from .core import Mode, Session
from .core.client import OpenAIClientWrapper, print_error
from .core.commands import UNKNOWN, ExecutionGate, extract_command_line, strip_prompt_marker
from .core.config import Settings, load_settings
from .core.functions import FunctionCallError, call_function
from .core.keywords import (
    CHAT_MODE_KEYWORDS,
    CLEAN_KEYWORDS,
    CLI_MODE_KEYWORDS,
    EXIT_KEYWORDS,
    HELP_KEYWORDS,
    IMAGE_DIRECTIVE,
    INTERVIEW_MODE_KEYWORDS,
    READ_KEYWORDS,
    SAVE_KEYWORDS,
    SERVE_KEYWORDS,
    STOP_KEYWORDS,
    STREAM_OFF_KEYWORDS,
    STREAM_ON_KEYWORDS,
    help_text,
)
from .core.proxy import DEFAULT_PORT, ProxyError, ProxyServer, create_app
from .utils import (
    Ansi,
    USER_LABEL,
    WARNING_LABEL,
    console,
    timestamp,
)

logger = logging.getLogger(__name__)

MODE_KEYWORDS = {
    Mode.CHAT: CHAT_MODE_KEYWORDS,
    Mode.CLI: CLI_MODE_KEYWORDS,
    Mode.INTERVIEW: INTERVIEW_MODE_KEYWORDS,
}


class Signal(Enum):
    """What the loop does after a line has been handled."""

    CONTINUE = "continue"
    EXIT = "exit"
    RERUN = "rerun"  # request another completion without prompting


# ---------------------------------------------------------------------------
# Helper classes
# ---------------------------------------------------------------------------


class ChatCLI:
    """High-level orchestration class for the interactive REPL."""

    def __init__(
        self,
        initial_session: Session,
        client_wrapper: OpenAIClientWrapper,
        gate: Optional[ExecutionGate] = None,
        settings: Optional[Settings] = None,
    ):
        self.session = initial_session
        self.client = client_wrapper
        self.gate = gate or ExecutionGate()
        self.settings = settings or Settings(api_key=None)

    # ---------------- Utility ----------------

    @property
    def prefix(self) -> str:
        return Ansi.style(f"[{self.session.mode.value}]", Ansi.FG_BRIGHT_GREEN)

    @staticmethod
    def _notice(text: str, *codes: str) -> None:
        console.print(f"\n{Ansi.style(f' {text} ', *codes)}\n")

    @staticmethod
    def _warn(text: str) -> None:
        console.print(f"\n{WARNING_LABEL} {Ansi.style(text, Ansi.BG_RED)}\n")

    # -------------- Interactive prompts ---------------

    @staticmethod
    def _ask(question: Callable[..., Any], title: str, **kwargs) -> Optional[str]:
        """Ask a single questionary prompt; ``None`` when cancelled."""
        try:
            return question(title, **kwargs).ask()
        except (KeyboardInterrupt, EOFError):
            console.print()
            return None

    # ---------------- Command handling ---------------

    def dispatch(self, line: str) -> Signal:
        """Route one input line to a built-in action or to the model."""

        for mode, keywords in MODE_KEYWORDS.items():
            if line in keywords:
                return self._switch_mode(mode)

        if line in STREAM_ON_KEYWORDS:
            return self._set_stream(True)

        if line in STREAM_OFF_KEYWORDS:
            return self._set_stream(False)

        if line in EXIT_KEYWORDS:
            return self._exit()

        if line in CLEAN_KEYWORDS:
            self.session.clean()
            console.clear()
            self._notice("History of every mode cleared", Ansi.BG_GREEN)
            return Signal.CONTINUE

        if line in SAVE_KEYWORDS:
            return self._save()

        if line in READ_KEYWORDS:
            return self._read()

        if line in SERVE_KEYWORDS:
            return self._serve()

        if line in STOP_KEYWORDS:
            return self._stop()

        if line in HELP_KEYWORDS:
            console.print(help_text())
            return Signal.CONTINUE

        if line.startswith(IMAGE_DIRECTIVE):
            return self._generate_image(line[len(IMAGE_DIRECTIVE):].strip())

        self.session.add_user_message(line)
        return self.complete_turn()

    def _switch_mode(self, mode: Mode) -> Signal:
        if not self.session.switch(mode):
            self._warn(f"Already in {mode.value}")
            return Signal.CONTINUE
        self._notice(f"Switched to {mode.value}", Ansi.BG_GREEN)
        return Signal.CONTINUE

    def _set_stream(self, enabled: bool) -> Signal:
        state = "streaming" if enabled else "non-streaming"
        if self.session.stream == enabled:
            self._warn(f"Output is already {state}")
            return Signal.CONTINUE
        self.session.stream = enabled
        self._notice(f"Switched to {state} output", Ansi.BG_GREEN)
        return Signal.CONTINUE

    def _exit(self) -> Signal:
        if self.session.proxy is not None:
            try:
                self.session.proxy.close()
            except ProxyError as exc:
                print_error("Proxy did not close", exc)
                raise SystemExit(1) from exc
            self.session.proxy = None
        self._notice("Bye!", Ansi.BG_RED)
        self.session.active = False
        return Signal.EXIT

    def _save(self) -> Signal:
        try:
            paths = self.session.save()
        except OSError as exc:
            print_error("Saving history failed", exc)
            return Signal.CONTINUE
        for path in paths:
            console.print(f"{Ansi.style('History saved', Ansi.BG_GREEN)} => {Ansi.style(str(path))}")
        console.print()
        return Signal.CONTINUE

    def _read(self) -> Signal:
        answer = self._ask(questionary.path, "Path of the history file (*.json):")
        if not answer:
            self._warn("No file given")
            return Signal.CONTINUE
        try:
            mode = self.session.read(Path(answer.strip()).expanduser())
        except (OSError, ValueError) as exc:
            self._warn(f"File is missing or malformed: {exc}")
            return Signal.CONTINUE
        self._notice(f"History read into {mode.value}", Ansi.BG_GREEN)
        return Signal.CONTINUE

    # ---------------- Proxy server ---------------

    @staticmethod
    def _log_request(request) -> None:
        console.print(
            f"\n{Ansi.style('proxy', Ansi.BG_YELLOW)} {Ansi.style(timestamp(), Ansi.FG_GREY)}: "
            f"{Ansi.style(request.method, Ansi.FG_GREEN)} {Ansi.style(str(request.url))}"
        )

    @staticmethod
    def _log_error(error: Exception) -> None:
        console.print(f"\n{Ansi.style('proxy error', Ansi.BG_RED)} {Ansi.style(str(error))}")

    def _serve(self) -> Signal:
        if self.session.proxy is None:
            answer = self._ask(questionary.text, f"Proxy port ({DEFAULT_PORT}):", default=str(DEFAULT_PORT))
            if answer is None:
                return Signal.CONTINUE
            try:
                port = int(answer.strip() or DEFAULT_PORT)
            except ValueError:
                self._warn(f"Invalid port: {answer}")
                return Signal.CONTINUE

            app = create_app(
                self.settings.api_key,
                self.settings.organization,
                on_request=self._log_request,
                on_error=self._log_error,
            )
            server = ProxyServer(app, port=port)
            try:
                server.start()
            except ProxyError as exc:
                print_error("Proxy failed to start", exc)
                return Signal.CONTINUE
            self.session.proxy = server

        *network, local = self.session.proxy.urls()
        self._notice("Proxy server running", Ansi.BG_GREEN)
        for url in network:
            console.print(f"  {Ansi.style('On Your Network', Ansi.FG_GREEN)}: {url}")
        console.print(f"  {Ansi.style('Local', Ansi.FG_GREEN)}:           {local}")
        console.print(
            f"\n  Usage: {local}/openai/<api path>, "
            f"e.g. {local}/openai/v1/chat/completions\n"
        )
        return Signal.CONTINUE

    def _stop(self) -> Signal:
        if self.session.proxy is None:
            self._warn("No proxy server is running")
            return Signal.CONTINUE
        try:
            self.session.proxy.close()
        except ProxyError as exc:
            print_error("Proxy did not close", exc)
            raise SystemExit(1) from exc
        self.session.proxy = None
        self._notice("Proxy server stopped", Ansi.BG_RED)
        return Signal.CONTINUE

    # ---------------- Model requests ---------------

    def _generate_image(self, prompt: str) -> Signal:
        if not prompt:
            self._warn(f"Usage: {IMAGE_DIRECTIVE} <description>")
            return Signal.CONTINUE
        urls = self.client.generate_image(prompt)
        if urls is None:
            return Signal.CONTINUE
        if not urls:
            self._warn("The API returned no image")
            return Signal.CONTINUE
        self._notice("Image generated", Ansi.BG_GREEN)
        for url in urls:
            console.print(f"{Ansi.style(' Image URL ', Ansi.BG_YELLOW)}: {Ansi.style(url)}\n")
            webbrowser.open(url)
        return Signal.CONTINUE

    def complete_turn(self, allow_functions: bool = True) -> Signal:
        """Request a completion for the active log and act on the answer."""
        mode = self.session.mode
        message = self.client.chat_completion(
            mode,
            self.session.messages,
            stream=self.session.stream,
            allow_functions=allow_functions,
        )
        if message is None:
            return Signal.CONTINUE

        if mode == Mode.CLI:
            # Keep only the command so the next answers stay literal
            command = extract_command_line(message.get("content") or "")
            self.session.add_raw({"role": message["role"], "content": command})
            if command != UNKNOWN:
                self.gate.confirm(strip_prompt_marker(command))
            return Signal.CONTINUE

        function_call = message.get("function_call")
        if function_call:
            if not allow_functions:
                self._warn(f"Ignoring nested call to function '{function_call['name']}'")
                return Signal.CONTINUE
            return self._call_function(message["role"], function_call)

        self.session.add_raw({"role": message["role"], "content": message.get("content")})
        return Signal.CONTINUE

    def _call_function(self, role: str, function_call: Dict[str, str]) -> Signal:
        name = function_call["name"]
        logger.debug("model called %s(%s)", name, function_call["arguments"])
        try:
            result = call_function(name, function_call["arguments"])
        except FunctionCallError as exc:
            print_error("Function call failed", exc)
            return Signal.CONTINUE

        self.session.add_raw({"role": role, "content": None, "function_call": dict(function_call)})
        self.session.add_raw(
            {
                "role": "function",
                "name": name,
                "content": json.dumps(result, ensure_ascii=False, default=str),
            }
        )
        return Signal.RERUN

    # ---------------- Interaction loop ---------------

    def repl(self) -> None:
        """Run the interactive read–eval–print-loop."""
        from . import __version__  # lazy import to avoid circularity

        console.print(Panel.fit(f"ChatGPT terminal v{__version__}", style="bold magenta"))
        console.print(
            Ansi.style("Type your message and press Enter.", Ansi.FG_YELLOW),
            Ansi.style("Type help for the list of commands.", Ansi.FG_YELLOW),
            sep="\n",
        )

        signal = Signal.CONTINUE
        while self.session.active:
            if signal is Signal.RERUN:
                signal = self.complete_turn(allow_functions=False)
                continue

            try:
                line = console.input(f"\n{self.prefix} {USER_LABEL}: ").strip()
            except (EOFError, KeyboardInterrupt):
                console.print("\nsignal caught – exiting")
                self._exit()
                break

            if not line:
                continue

            signal = self.dispatch(line)


# ---------------------------------------------------------------------------
# Entrypoint helpers (keeping it separate simplifies __main__ handling)
# ---------------------------------------------------------------------------

def _parse_args() -> argparse.Namespace:  # pragma: no cover
    parser = argparse.ArgumentParser(
        description="Chat with OpenAI models in the terminal, translate requests into shell commands."
    )
    parser.add_argument("--model", "-m", help="Model name to use (overrides CHATGPT_MODEL)")
    parser.add_argument("--no-stream", action="store_true", help="Print answers at once instead of streaming")
    parser.add_argument("--debug", action="store_true", help="Log diagnostics to stderr")
    return parser.parse_args()


def run_cli() -> None:  # pragma: no cover
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings()
    if not settings.api_key:
        sys.stderr.write(
            "Error: OPENAI_API_KEY environment variable is not set.\n"
            "(Tried the environment, .env.local, .env and ~/.zshrc)\n"
        )
        sys.exit(1)

    # ------------------------------------------------------------------
    # Configure OpenAI SDK
    # ------------------------------------------------------------------
    client_kwargs: Dict[str, Any] = {"api_key": settings.api_key}
    if settings.organization:
        client_kwargs["organization"] = settings.organization
    if settings.base_url:
        client_kwargs["base_url"] = settings.base_url
        console.print(f"\n{Ansi.style('ChatGPT API Registry', Ansi.FG_GREEN)}: {settings.base_url}")
        console.print(
            f"{Ansi.style(' Note ', Ansi.BG_YELLOW)} Unofficial registries can break streaming, "
            f"so streaming output is off. Enable it again with "
            f"{' | '.join(Ansi.style(k, Ansi.FG_GREEN) for k in STREAM_ON_KEYWORDS)}.\n"
        )

    client = OpenAI(**client_kwargs)  # type: ignore[arg-type]
    wrapper = OpenAIClientWrapper(client, model=args.model or settings.model)
    session = Session(stream=settings.stream and not args.no_stream)

    ChatCLI(session, wrapper, settings=settings).repl()


if __name__ == "__main__":  # pragma: no cover
    run_cli()
