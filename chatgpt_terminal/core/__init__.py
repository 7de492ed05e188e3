from .session import Session, Mode, SEED_MESSAGES, CLI_SYSTEM_MESSAGE, LOG_FILENAMES
# client and proxy modules are imported where needed to keep heavy dependencies out of the session code.

__all__ = [
    "Session",
    "Mode",
    "SEED_MESSAGES",
    "CLI_SYSTEM_MESSAGE",
    "LOG_FILENAMES",
]
