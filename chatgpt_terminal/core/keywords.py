"""Keyword phrases recognised at the prompt (matched exactly, case-sensitive)."""

from ..utils.ansi import Ansi

EXIT_KEYWORDS = ("退出", "退下", "exit", "quit", "bye")
SAVE_KEYWORDS = ("保存会话", "保存", "save")
CLEAN_KEYWORDS = ("清空会话", "清空", "clean")
READ_KEYWORDS = ("读取会话", "读取", "read")
SERVE_KEYWORDS = ("启动服务", "服务", "serve")
STOP_KEYWORDS = ("关闭服务", "终止", "stop")
HELP_KEYWORDS = ("指令", "指令大全", "help")

CHAT_MODE_KEYWORDS = ("对话模式", "chat mode")
CLI_MODE_KEYWORDS = ("命令行模式", "cli mode")
INTERVIEW_MODE_KEYWORDS = ("面试模式", "interview mode")

STREAM_ON_KEYWORDS = ("开启流式输出", "stream on")
STREAM_OFF_KEYWORDS = ("关闭流式输出", "stream off")

IMAGE_DIRECTIVE = "\\img"


def _row(number: int, keywords, description: str) -> str:
    sep = Ansi.style(" | ", Ansi.FG_GREEN)
    joined = sep.join(Ansi.style(k) for k in keywords)
    return f"{Ansi.style(f'{number}.', Ansi.FG_GREEN)} {joined} {Ansi.style(': ' + description, Ansi.FG_GREEN)}"


def help_text() -> str:
    """Static command reference printed by the help keywords."""
    rule = "_" * 62
    rows = [
        _row(1, EXIT_KEYWORDS, "exit the session"),
        _row(2, SAVE_KEYWORDS, "save every mode's history"),
        _row(3, CLEAN_KEYWORDS, "clear every mode's history"),
        _row(4, READ_KEYWORDS, "read a saved history file"),
        _row(5, SERVE_KEYWORDS, "start the API proxy server"),
        _row(6, STOP_KEYWORDS, "stop the API proxy server"),
        _row(7, HELP_KEYWORDS, "show this command reference"),
        _row(8, CHAT_MODE_KEYWORDS, "switch to chat mode (default)"),
        _row(9, CLI_MODE_KEYWORDS, "switch to command line mode"),
        _row(10, INTERVIEW_MODE_KEYWORDS, "switch to interview mode"),
        _row(11, STREAM_ON_KEYWORDS, "enable streaming output"),
        _row(12, STREAM_OFF_KEYWORDS, "disable streaming output"),
        _row(13, (f"{IMAGE_DIRECTIVE} <description>",), "generate an image"),
    ]
    body = "\n".join(rows)
    return f"\n{rule}\n{Ansi.style('Commands:', Ansi.FG_GREEN, Ansi.BOLD)}\n{body}\n{rule}\n"
