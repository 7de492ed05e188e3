from .ansi import (
    Ansi,
    USER_LABEL,
    ASSISTANT_LABEL,
    ERROR_LABEL,
    WARNING_LABEL,
    console,
)
from .spinner import Spinner
from .system import download_dir, lan_addresses, timestamp

__all__ = [
    "Ansi",
    "USER_LABEL",
    "ASSISTANT_LABEL",
    "ERROR_LABEL",
    "WARNING_LABEL",
    "console",
    "Spinner",
    "download_dir",
    "lan_addresses",
    "timestamp",
]
