"""File plumbing — raw byte reads and output writes.

OSError is never caught here; callers decide what a failed read means.
"""

import sys


def read_input(filepath: str) -> bytes:
    """Return the raw bytes of *filepath*, or of stdin when it is '-'."""
    if filepath == "-":
        return sys.stdin.buffer.read()
    with open(filepath, "rb") as f:
        return f.read()


def write_output(text: str, filepath: str | None = None, overwrite: bool = False) -> None:
    """Write *text* to *filepath* or stdout.

    Refuses to replace an existing file unless *overwrite* is set
    (FileExistsError).
    """
    if filepath in (None, "-"):
        sys.stdout.write(text)
        if not text.endswith("\n"):
            sys.stdout.write("\n")
        return
    mode = "w" if overwrite else "x"
    with open(filepath, mode, encoding="utf-8") as f:
        f.write(text)
        if not text.endswith("\n"):
            f.write("\n")
