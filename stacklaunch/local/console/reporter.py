import sys

COLORS = {
    "reset": "\x1b[0m",
    "green": "\x1b[32m",
    "yellow": "\x1b[33m",
    "blue": "\x1b[34m",
    "red": "\x1b[31m",
    "cyan": "\x1b[36m",
    "magenta": "\x1b[35m",
}


def format_line(message: str, color: str = "reset") -> str:
    """Wraps a message in the ANSI code for `color`. Unknown colors render unstyled."""
    code = COLORS.get(color, COLORS["reset"])
    return f"{code}{message}{COLORS['reset']}\n"


def report(message: str, color: str = "reset") -> None:
    """
    Writes one tagged status line to standard output.

    :param message: The text to print.
    :param color: A key of `COLORS`.
    """
    sys.stdout.write(format_line(message, color))
    sys.stdout.flush()
