"""Settings read from the environment and local dotenv files."""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Optional

from dotenv import load_dotenv

DOTENV_FILES = (".env.local", ".env")
DEFAULT_MODEL = "gpt-3.5-turbo-16k"

_ZSHRC_KEY = re.compile(r"(?:export\s+)?OPENAI_API_KEY\s*=\s*['\"]?([^'\"\n]+)['\"]?")


@dataclass
class Settings:
    api_key: Optional[str]
    organization: Optional[str] = None
    base_url: Optional[str] = None
    model: str = DEFAULT_MODEL
    stream: bool = True


def load_env_files(root: Optional[Path] = None, files: Iterable[str] = DOTENV_FILES) -> None:
    """Load dotenv files from *root* unless the API key is already set.

    Earlier files win: python-dotenv never overrides variables that are
    already present in the environment.
    """
    if os.getenv("OPENAI_API_KEY"):
        return
    root = Path(root) if root else Path.cwd()
    for name in files:
        path = root / name
        if path.is_file():
            load_dotenv(path)


def _key_from_zshrc() -> Optional[str]:
    # Convenience for macOS users who export the key in ~/.zshrc only
    zshrc_path = Path.home() / ".zshrc"
    if not zshrc_path.exists():
        return None
    match = _ZSHRC_KEY.search(zshrc_path.read_text())
    if match:
        return match.group(1).strip()
    return None


def load_settings(root: Optional[Path] = None) -> Settings:
    load_env_files(root)

    api_key = os.getenv("OPENAI_API_KEY") or _key_from_zshrc()
    if api_key:
        os.environ["OPENAI_API_KEY"] = api_key  # inject for downstream

    base_url = os.getenv("CHATGPT_REGISTRY") or os.getenv("OPENAI_BASE_URL")
    return Settings(
        api_key=api_key,
        organization=os.getenv("ORGANIZATION_ID") or None,
        base_url=base_url or None,
        model=os.getenv("CHATGPT_MODEL") or DEFAULT_MODEL,
        # Unofficial registries tend to break streaming; it can be re-enabled at the prompt.
        stream=not base_url,
    )
