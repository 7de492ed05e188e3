"""Pull a shell command out of model output and run it after confirmation."""

from __future__ import annotations

import logging
import re
import subprocess
from enum import Enum
from typing import Callable

import questionary

from ..utils import Ansi, console

logger = logging.getLogger(__name__)

UNKNOWN = "UNKNOWN"
COMMAND_MARKER = ">"

_COMMAND_LINE = re.compile(r"^>.*$", re.MULTILINE)


def extract_command_line(text: str) -> str:
    """Return the first line starting with ``>`` (marker included) or ``UNKNOWN``."""
    match = _COMMAND_LINE.search(text or "")
    if match:
        return match.group(0)
    return UNKNOWN


def strip_prompt_marker(command: str) -> str:
    return command.replace(COMMAND_MARKER, "", 1).strip()


def run_command(command: str) -> int:
    """Run *command* through the shell attached to this terminal.

    Returns the exit status; raises :class:`OSError` if it cannot be spawned.
    """
    console.print()
    completed = subprocess.run(command, shell=True)
    return completed.returncode


class GateOutcome(str, Enum):
    EXECUTED = "executed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    ILLEGAL = "illegal"


class ExecutionGate:
    """Ask Y/N/E before running a translated command."""

    def __init__(self, runner: Callable[[str], int] = run_command):
        self.runner = runner

    def confirm(self, command: str) -> GateOutcome:
        try:
            answer = console.input(
                f" -- {Ansi.style('Execute?', Ansi.FG_RED)} (Y/N/E): "
            ).strip().lower()
        except (EOFError, KeyboardInterrupt):
            return self._cancel()

        if answer == "y":
            return self._execute(command)

        if answer == "n":
            return self._cancel()

        if answer == "e":
            # ask() returns None on Ctrl-C
            try:
                edited = questionary.text("Edit command:", default=command).ask()
            except EOFError:
                edited = None
            if edited is None or not edited.strip():
                return self._cancel()
            return self._execute(edited.strip())

        console.print(Ansi.style("\nCommand not executed: illegal input\n", Ansi.BG_RED))
        return GateOutcome.ILLEGAL

    @staticmethod
    def _cancel() -> GateOutcome:
        console.print(Ansi.style("\nCommand cancelled\n", Ansi.BG_YELLOW))
        return GateOutcome.CANCELLED

    def _execute(self, command: str) -> GateOutcome:
        logger.debug("running command: %s", command)
        try:
            status = self.runner(command)
        except OSError as exc:
            console.print(f"{Ansi.style('Command failed', Ansi.BG_RED)} => {Ansi.style(str(exc))}\n")
            return GateOutcome.FAILED

        if status != 0:
            console.print(
                f"{Ansi.style('Command failed', Ansi.BG_RED)} => exit status {status}\n"
            )
            return GateOutcome.FAILED

        console.print(Ansi.style("\nCommand finished\n", Ansi.BG_GREEN))
        return GateOutcome.EXECUTED
