"""Terminal ChatGPT client with a command-line mode and a local API proxy.

Features
--------
1. Chat mode: a conversation with the model; it may call built-in functions.
2. CLI mode: requests are translated into one shell command which runs only
   after you confirm it (Y), cancel it (N) or edit it first (E).
3. Interview mode: the model interviews you for a position you name.
4. History: every mode keeps its own log; save them to your Downloads folder
   and read them back later.
5. Proxy: serve the OpenAI API on the local network using your key.

Keywords (type them on their own line):

    exit | quit | bye | 退出        – leave (closes the proxy first)
    save | 保存                     – save chat-log.json, cli-log.json, interview-log.json
    clean | 清空                    – clear the history of every mode
    read | 读取                     – read a saved history file
    serve | 服务                    – start the API proxy
    stop | 终止                     – stop the API proxy
    help | 指令                     – show the command reference
    chat mode | cli mode | interview mode   – switch mode
    stream on | stream off          – toggle streaming output
    \\img <description>             – generate an image

Environment variables
---------------------
* OPENAI_API_KEY – your OpenAI API key (required; also read from .env.local / .env)
* ORGANIZATION_ID – OpenAI organization (optional)
* CHATGPT_REGISTRY – alternate API base URL (optional, turns streaming off)
* CHATGPT_MODEL – model name (default gpt-3.5-turbo-16k)

Run `chatgpt-terminal` or `python -m chatgpt_terminal.cli`.
"""
__version__ = "1.0.0"

# Re-export useful symbols for convenience
from .core import Session, Mode, CLI_SYSTEM_MESSAGE
from .core.client import OpenAIClientWrapper
from .cli import ChatCLI, Signal, run_cli

__all__ = [
    "Session",
    "Mode",
    "CLI_SYSTEM_MESSAGE",
    "OpenAIClientWrapper",
    "ChatCLI",
    "Signal",
    "run_cli",
]
