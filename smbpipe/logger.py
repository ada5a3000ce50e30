"""Module containing utilities for logging, along with a standard logger."""

import logging
from typing import Any, Optional


def _get_logger(name: Optional[str] = "smbpipe") -> logging.Logger:
    stderrOutput = logging.StreamHandler()

    formatter = logging.Formatter("%(asctime)s - %(levelname)s - %(message)s")
    stderrOutput.setFormatter(formatter)

    logger = logging.getLogger(name)
    logger.addHandler(stderrOutput)

    return logger


def summarize(obj: Any, max_length: int = 255) -> str:
    """Return a stringified representation of the object up to the given length."""
    stringified_obj = str(obj)

    if len(stringified_obj) <= max_length:
        return stringified_obj
    else:
        return stringified_obj[: max_length - 3] + "..."


def summarize_lines(lines: Any, max_lines: int = 5) -> str:
    """Return the first lines of command output joined into a single log line."""
    lines = list(lines)
    shown = " | ".join(line.strip() for line in lines[:max_lines])

    if len(lines) > max_lines:
        shown += f" | ({len(lines) - max_lines} more)"

    return summarize(shown)


# Default logger
log = _get_logger()
