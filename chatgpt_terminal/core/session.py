"""Conversation state: the active mode and one message log per mode."""

import copy
import json
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Any

from ..utils.system import download_dir


class Mode(str, Enum):
    CHAT = "chat mode"
    CLI = "cli mode"
    INTERVIEW = "interview mode"


# System message placed at the start of the CLI mode log. Saved transcripts
# are classified by looking for this exact message, so changing the text
# breaks reading of older files.
CLI_SYSTEM_MESSAGE: Dict[str, Any] = {
    "role": "system",
    "content": (
        "You are a command line translation program. You can translate natural "
        "language instructions from human language into corresponding command "
        "line statements.\n\n"
        "1. If you can understand what i'm saying, output the command line code "
        "without any explanation, and you must add the \">\" symbol at the "
        "beginning of the output. For example: \">tree\".\n\n"
        "2. If you don't understand what i'm saying or are unsure how to convert "
        "my instructions into a computer command line, just output the 7 letters "
        "\"UNKNOWN\" without any other explanation or \">\" symbol. For example: "
        "\"UNKNOWN\".\n\n"
        "3. If the translated result consists of more than one line of commands, "
        "you must use '&' or '&&' to combine them into a single line of command. "
        "For example: \">cd .. & cd ..\".\n\n"
        "4. If it is the same question, each answer must be consistent.\n"
    ),
}

INTERVIEW_SYSTEM_MESSAGE: Dict[str, Any] = {
    "role": "system",
    "content": (
        "You are an interviewer. Ask me one interview question at a time about "
        "the position I name, wait for my answer, then briefly evaluate it "
        "before asking the next question. Do not write my answers for me."
    ),
}

SEED_MESSAGES: Dict[Mode, List[Dict[str, Any]]] = {
    Mode.CHAT: [],
    Mode.CLI: [CLI_SYSTEM_MESSAGE],
    Mode.INTERVIEW: [INTERVIEW_SYSTEM_MESSAGE],
}

LOG_FILENAMES: Dict[Mode, str] = {
    Mode.CHAT: "chat-log.json",
    Mode.CLI: "cli-log.json",
    Mode.INTERVIEW: "interview-log.json",
}


def seed_log(mode: Mode) -> List[Dict[str, Any]]:
    """Return a fresh copy of the seed messages for *mode*."""
    return copy.deepcopy(SEED_MESSAGES[mode])


def _is_message(item: Dict[str, Any], target: Dict[str, Any]) -> bool:
    return item.get("role") == target["role"] and item.get("content") == target["content"]


def classify_log(messages: List[Dict[str, Any]]) -> Mode:
    """Infer which mode a transcript belongs to from its seed message.

    A chat message that happens to repeat a seed verbatim is misclassified;
    transcripts carry no explicit mode field.
    """
    if any(_is_message(m, CLI_SYSTEM_MESSAGE) for m in messages):
        return Mode.CLI
    if any(_is_message(m, INTERVIEW_SYSTEM_MESSAGE) for m in messages):
        return Mode.INTERVIEW
    return Mode.CHAT


class Session:
    """Process-wide chat state: active mode, per-mode logs and the proxy handle."""

    def __init__(
        self,
        mode: Mode = Mode.CHAT,
        logs: Optional[Dict[Mode, List[Dict[str, Any]]]] = None,
        stream: bool = True,
    ) -> None:
        self.mode = mode
        self.logs: Dict[Mode, List[Dict[str, Any]]] = {m: seed_log(m) for m in Mode}
        if logs:
            self.logs.update(logs)
        self.stream = stream
        self.proxy = None
        self.active = True

    @property
    def messages(self) -> List[Dict[str, Any]]:
        return self.logs[self.mode]

    def add_user_message(self, content: str) -> None:
        self.messages.append({"role": "user", "content": content})

    def add_assistant_message(self, content: Optional[str]) -> None:
        self.messages.append({"role": "assistant", "content": content})

    # Function call placeholders and results are stored as-is
    def add_raw(self, item: Dict[str, Any]) -> None:
        self.messages.append(item)

    def switch(self, mode: Mode) -> bool:
        """Make *mode* active. Returns False if it already was."""
        if self.mode == mode:
            return False
        self.mode = mode
        return True

    def clean(self) -> None:
        for mode in Mode:
            self.logs[mode] = seed_log(mode)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    @staticmethod
    def download_dir() -> Path:
        return download_dir()

    def save(self, directory: Optional[Path] = None) -> List[Path]:
        """Write every mode's log to its own JSON file and return the paths."""
        directory = Path(directory) if directory else self.download_dir()
        written: List[Path] = []
        for mode in Mode:
            path = directory / LOG_FILENAMES[mode]
            tmp_path = path.with_suffix(".tmp")
            tmp_path.write_text(
                json.dumps(self.logs[mode], ensure_ascii=False, default=str),
                encoding="utf-8",
            )
            tmp_path.replace(path)
            written.append(path)
        return written

    @staticmethod
    def load_log(path: Path) -> List[Dict[str, Any]]:
        path = Path(path)
        if not path.is_file():
            raise FileNotFoundError(f"File '{path}' does not exist.")
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise ValueError(f"File '{path}' is not valid JSON: {exc}") from exc
        if not isinstance(data, list) or not all(isinstance(m, dict) for m in data):
            raise ValueError(f"File '{path}' is not a list of messages.")
        return data

    def read(self, path: Path) -> Mode:
        """Append a saved transcript to the log of the mode it belongs to.

        The inferred mode becomes the active one. A leading seed message is
        dropped when the target log already starts with the same seed.
        """
        messages = self.load_log(path)
        mode = classify_log(messages)
        target = self.logs[mode]
        seeds = SEED_MESSAGES[mode]
        if seeds and messages and target[: len(seeds)] == seeds and messages[: len(seeds)] == seeds:
            messages = messages[len(seeds):]
        target.extend(messages)
        self.mode = mode
        return mode
