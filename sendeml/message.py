# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Byte-level rewriting of raw RFC 5322 messages.

A raw message is handled as an opaque byte string.  Only two things are
ever inspected:

- the header/body boundary (the first ``CRLF CRLF``), and
- header lines starting with ``Date:`` or ``Message-ID:``.

Everything else, including the body, unknown headers and line endings,
passes through untouched.  When neither header is to be updated the input
object itself is returned so callers can rely on identity for "nothing
changed".

Lines produced by :func:`split_lines` are independent ``bytes`` copies, so
the output of :func:`replace_message` never aliases the input buffer.
"""

from __future__ import annotations

import logging
import secrets
import string
from collections.abc import Callable
from datetime import datetime
from email.utils import format_datetime


logger = logging.getLogger(__name__)

CR = 0x0D
LF = 0x0A
SPACE = 0x20
HTAB = 0x09
CRLF = b"\r\n"

#: Blank line separating the header block from the body.
EMPTY_LINE = b"\r\n\r\n"

_DATE_FIELD = b"Date:"
_MESSAGE_ID_FIELD = b"Message-ID:"

_MESSAGE_ID_CHARS = string.ascii_letters + string.digits
_MESSAGE_ID_LENGTH = 62


class MalformedMessageError(Exception):
    """Raised when a message has no blank line between header and body."""


# ---------------------------------------------------------------------------
# Line scanning
# ---------------------------------------------------------------------------


def find_all_lf_indices(buf: bytes) -> list[int]:
    """Return the offsets of every LF byte in *buf*, in order."""
    indices: list[int] = []
    offset = 0
    while True:
        idx = buf.find(LF, offset)
        if idx == -1:
            return indices
        indices.append(idx)
        offset = idx + 1


def split_lines(buf: bytes) -> list[bytes]:
    """Split *buf* into lines, each ending with its LF.

    The final line has no LF when *buf* does not end with one.  Joining
    the result reproduces *buf* exactly.

    Args:
        buf: Raw bytes, any content.

    Returns:
        List of line slices.  Empty for empty input.
    """
    lines: list[bytes] = []
    offset = 0
    for idx in find_all_lf_indices(buf):
        lines.append(buf[offset : idx + 1])
        offset = idx + 1
    if offset < len(buf):
        lines.append(buf[offset:])
    return lines


# ---------------------------------------------------------------------------
# Header rewriting
# ---------------------------------------------------------------------------


def match_header_field(line: bytes, field_name: bytes) -> bool:
    """Check whether *line* starts with *field_name* (case-sensitive)."""
    return line.startswith(field_name)


def is_date_line(line: bytes) -> bool:
    return match_header_field(line, _DATE_FIELD)


def is_message_id_line(line: bytes) -> bool:
    return match_header_field(line, _MESSAGE_ID_FIELD)


def is_folded_line(line: bytes) -> bool:
    """Check whether *line* continues the previous header field."""
    return bool(line) and line[0] in (SPACE, HTAB)


def make_now_date_line(now: datetime | None = None) -> bytes:
    """Build a ``Date:`` header line for the current local time.

    Format: ``Date: Sun, 26 Jul 2020 22:01:37 +0900`` followed by CRLF.

    Args:
        now: Timestamp to format.  Defaults to the current local time.
            Naive values are treated as local time.

    Returns:
        The complete header line.
    """
    if now is None:
        now = datetime.now()
    if now.tzinfo is None:
        now = now.astimezone()
    return b"Date: " + format_datetime(now).encode("ascii") + CRLF


def make_random_message_id_line() -> bytes:
    """Build a ``Message-ID:`` header line with a random local part."""
    rand = "".join(
        secrets.choice(_MESSAGE_ID_CHARS) for _ in range(_MESSAGE_ID_LENGTH)
    )
    return f"Message-ID: <{rand}>".encode("ascii") + CRLF


def _replace_line(
    lines: list[bytes],
    is_target: Callable[[bytes], bool],
    make_line: Callable[[], bytes],
) -> None:
    """Replace the first matching line and drop its folded continuation."""
    for idx, line in enumerate(lines):
        if is_target(line):
            break
    else:
        return

    end = idx + 1
    while end < len(lines) and is_folded_line(lines[end]):
        end += 1

    new_line = make_line()
    # The last header line has its CRLF inside the blank-line separator.
    if not lines[end - 1].endswith(b"\n"):
        new_line = new_line.removesuffix(CRLF)
    lines[idx:end] = [new_line]


def replace_header(
    header: bytes, update_date: bool, update_message_id: bool
) -> bytes:
    """Rewrite the ``Date:`` and/or ``Message-ID:`` lines of a header block.

    Each requested field is located by exact prefix match on the first
    matching line.  The line is replaced with a freshly generated,
    unfolded line and any continuation lines that followed it are
    removed.  A missing field is left alone.

    Args:
        header: Header block without the terminating blank line.
        update_date: Replace the ``Date:`` line.
        update_message_id: Replace the ``Message-ID:`` line.

    Returns:
        *header* itself when both flags are false, otherwise a new
        header block.
    """
    if not update_date and not update_message_id:
        return header

    lines = split_lines(header)
    if update_date:
        _replace_line(lines, is_date_line, make_now_date_line)
    if update_message_id:
        _replace_line(lines, is_message_id_line, make_random_message_id_line)
    return b"".join(lines)


# ---------------------------------------------------------------------------
# Header/body split
# ---------------------------------------------------------------------------


def find_empty_line(buf: bytes) -> int:
    """Return the offset of the first ``CRLF CRLF`` in *buf*, or -1."""
    offset = 0
    while True:
        idx = buf.find(CR, offset)
        if idx == -1 or idx + 3 >= len(buf):
            return -1
        if buf[idx + 1] == LF and buf[idx + 2] == CR and buf[idx + 3] == LF:
            return idx
        offset = idx + 1


def split_message(buf: bytes) -> tuple[bytes, bytes]:
    """Split a raw message into header and body blocks.

    Raises:
        MalformedMessageError: If the message has no blank line.
    """
    idx = find_empty_line(buf)
    if idx == -1:
        raise MalformedMessageError(
            "Invalid mail: no empty line between header and body"
        )
    return buf[:idx], buf[idx + len(EMPTY_LINE) :]


def combine_message(header: bytes, body: bytes) -> bytes:
    return header + EMPTY_LINE + body


def replace_message(
    buf: bytes, update_date: bool, update_message_id: bool
) -> bytes:
    """Produce the bytes to transmit for one raw message.

    Args:
        buf: Raw message as read from disk.
        update_date: Refresh the ``Date:`` header.
        update_message_id: Refresh the ``Message-ID:`` header.

    Returns:
        *buf* itself when no update is requested, otherwise a new buffer
        with the rewritten header and the original body.

    Raises:
        MalformedMessageError: If an update is requested but the header
            cannot be separated from the body.
    """
    if not update_date and not update_message_id:
        return buf

    header, body = split_message(buf)
    new_header = replace_header(header, update_date, update_message_id)
    logger.debug(
        "Rewrote header (%d -> %d bytes), body %d bytes",
        len(header),
        len(new_header),
        len(body),
    )
    return combine_message(new_header, body)
