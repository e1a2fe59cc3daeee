"""
Read the end of a file without scanning all of it.

Used to seed a recording from shell history files, which can grow to many
megabytes.
"""

import os
from typing import BinaryIO

BLOCK_SIZE = 1024

EOL = b"\n"


class InvalidLineCountError(ValueError):
    """Raised when asking for zero or a negative number of lines."""

    pass


class EmptyFileError(ValueError):
    """Raised when tailing a zero-byte file."""

    pass


def tail(path: str, n: int) -> BinaryIO:
    """
    Open a file positioned at the start of its last n lines.

    An incomplete last line (no trailing newline) is returned but not
    counted. If the file has fewer than n lines the whole file is returned.

    Args:
        path: File to read
        n: Number of lines, must be positive

    Returns:
        Binary file object; the caller closes it

    Raises:
        EmptyFileError: If the file has zero bytes
        InvalidLineCountError: If n <= 0
        OSError: If the file cannot be opened (missing, directory, ...)
    """
    f = open(path, "rb")
    try:
        if os.fstat(f.fileno()).st_size == 0:
            raise EmptyFileError(f"cannot tail an empty file: {path}")
        if n <= 0:
            raise InvalidLineCountError(f"cannot tail with n <= 0 (got {n})")

        start = find_tail_start(f, n)
        f.seek(start, os.SEEK_SET)
    except BaseException:
        f.close()
        raise
    return f


def find_tail_start(f: BinaryIO, n: int) -> int:
    """
    Byte offset where the last n lines of f begin.

    Walks backwards one block at a time until more than n newlines have been
    seen, then trims forward inside the first block read.
    """
    size = f.seek(0, os.SEEK_END)
    left = 0
    count = 0
    buf = b""
    right = size
    while right > 0 and count <= n:
        left = max(right - BLOCK_SIZE, 0)
        f.seek(left, os.SEEK_SET)
        buf = f.read(right - left)
        count += buf.count(EOL)
        right = left

    while count > n:
        idx = buf.index(EOL) + 1
        buf = buf[idx:]
        left += idx
        count -= 1
    return left
