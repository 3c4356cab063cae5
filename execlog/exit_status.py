"""Exit status conventions at the remote process boundary.

Exit statuses travel as unsigned bytes: a process that exits with ``-1`` is
reported as ``255``.  Anything above 127 is therefore more likely a negative
value (or a signal number) than a literal application exit code.
"""

from __future__ import annotations

import re

_EXIT_CODE_RE = re.compile(r"exit(?:ed)?\s+(?:with\s+)?(?:code|status)\s*:?\s*(-?\d+)", re.IGNORECASE)

SIGNED_THRESHOLD = 127


def to_unsigned(code: int) -> int:
    """Map a raw exit status to the 0-255 range reported by the runtime."""
    return code & 0xFF


def as_signed(code: int) -> int:
    """Interpret an unsigned exit status as the signed value the process returned."""
    code = to_unsigned(code)
    return code - 256 if code > SIGNED_THRESHOLD else code


def possibly_negative(code: int) -> bool:
    return to_unsigned(code) > SIGNED_THRESHOLD


def format_exit_message(code: int) -> str:
    """Render the message attached to a finished command, e.g. ``exited with code 255``."""
    return f"exited with code {to_unsigned(code)}"


def parse_exit_code(message: str | None) -> int | None:
    """Extract the exit status from an exit message, or ``None`` if absent."""
    if not message:
        return None
    match = _EXIT_CODE_RE.search(message)
    if match is None:
        return None
    return to_unsigned(int(match.group(1)))
