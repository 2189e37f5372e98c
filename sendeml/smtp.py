# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Minimal synchronous SMTP client for raw message delivery.

This module provides a line-oriented SMTP state machine that pushes raw
``.eml`` bytes through one connection::

    greeting -> EHLO -> (MAIL FROM -> RCPT TO* -> DATA -> bytes -> <CRLF>.)
             -> (RSET -> ...)* -> QUIT

Exactly one command is in flight at a time.  Any negative reply or a
connection that closes mid-reply aborts the whole session by raising; the
owner of the socket is responsible for closing it (see
:func:`open_connection`).

Message bytes are written verbatim: no dot-stuffing and no line ending
normalization.
"""

from __future__ import annotations

import logging
import re
import socket
from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, BinaryIO

from sendeml.message import CRLF, MalformedMessageError, replace_message


if TYPE_CHECKING:
    from sendeml.settings import Settings


logger = logging.getLogger(__name__)

#: End-of-data line sent after the raw message bytes.
CRLF_DOT = "\r\n."

_REPLY_RE = re.compile(r"^(?P<code>\d{3})(?P<sep>[ -]|$)(?P<text>.*)$")


class SmtpError(Exception):
    """Base exception for fatal SMTP session errors."""


class ConnectionClosedError(SmtpError):
    """Raised when the server closes the connection or a read times out."""


class NegativeReplyError(SmtpError):
    """Raised when the server answers with a 4xx/5xx (or other) reply.

    Attributes:
        reply: The final line of the failing reply.
    """

    def __init__(self, reply: SmtpReply) -> None:
        super().__init__(reply.line)
        self.reply = reply


@dataclass(frozen=True)
class SmtpReply:
    """One parsed SMTP reply line.

    Attributes:
        code: Three-digit status code.
        is_last: True when this is the final line of the reply.
        text: Text following the code and separator.
        line: The complete line as received (trailing whitespace removed).
    """

    code: str
    is_last: bool
    text: str
    line: str

    @property
    def is_positive(self) -> bool:
        """True for 2xx and 3xx replies."""
        return self.code[0] in "23"

    @classmethod
    def parse(cls, line: str) -> SmtpReply | None:
        """Parse a reply line.

        A line is the last line of a reply when the code is followed by a
        space or nothing at all; a ``-`` marks a continuation.

        Args:
            line: Reply line without its line terminator.

        Returns:
            The parsed reply, or None if the line is not a reply line.
        """
        m = _REPLY_RE.match(line)
        if m is None:
            return None
        return cls(
            code=m.group("code"),
            is_last=m.group("sep") != "-",
            text=m.group("text"),
            line=line,
        )


@dataclass(frozen=True)
class SessionContext:
    """Per-worker logging context.

    Attributes:
        worker_id: Identifier of a parallel worker, or None when running
            a single sequential session.
    """

    worker_id: int | None = None

    @property
    def prefix(self) -> str:
        """Prefix for every log line emitted on behalf of this worker."""
        if self.worker_id is None:
            return ""
        return f"id: {self.worker_id}, "


@dataclass
class SessionResult:
    """Outcome of one SMTP session.

    Attributes:
        label: Human-readable session identity used in reports.
        sent: Files transmitted successfully.
        skipped: Files that did not exist.
        failed: Files that could not be transformed (file, reason).
        error: Fatal error that aborted the session, if any.
    """

    label: str
    sent: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    failed: list[tuple[str, str]] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        """True when the session completed and every file was accepted."""
        return self.error is None and not self.failed


def is_last_reply(line: str) -> bool:
    reply = SmtpReply.parse(line)
    return reply is not None and reply.is_last


def is_positive_reply(line: str) -> bool:
    reply = SmtpReply.parse(line)
    return reply is not None and reply.is_positive


def recv_reply(
    reader: BinaryIO, context: SessionContext | None = None
) -> SmtpReply:
    """Read one complete (possibly multi-line) reply.

    Continuation lines are logged and otherwise ignored.

    Args:
        reader: Binary line-oriented stream from the server.
        context: Logging context of the calling worker.

    Returns:
        The final line of a positive (2xx/3xx) reply.

    Raises:
        ConnectionClosedError: If the stream ends or times out before the
            last line of the reply.
        NegativeReplyError: If the reply is not positive.
    """
    if context is None:
        context = SessionContext()

    while True:
        try:
            raw = reader.readline()
        except TimeoutError as e:
            raise ConnectionClosedError(
                "Timed out waiting for server reply"
            ) from e
        if not raw:
            raise ConnectionClosedError("Connection closed by foreign host")

        line = raw.decode("utf-8", errors="replace").rstrip()
        logger.info("%srecv: %s", context.prefix, line)

        reply = SmtpReply.parse(line)
        if reply is None or not reply.is_last:
            continue
        if reply.is_positive:
            return reply
        raise NegativeReplyError(reply)


def render_command(cmd: str) -> str:
    """Return the loggable form of a command line."""
    return "<CRLF>." if cmd == CRLF_DOT else cmd


class SmtpConnection:
    """Command/reply transport over one server connection.

    Attributes:
        reader: Binary stream replies are read from.
        writer: Binary stream commands and data are written to.
        context: Logging context of the owning worker.
    """

    def __init__(
        self,
        reader: BinaryIO,
        writer: BinaryIO,
        context: SessionContext | None = None,
    ) -> None:
        self.reader = reader
        self.writer = writer
        self.context = context if context is not None else SessionContext()

    def send_line(self, cmd: str) -> None:
        """Write one command line terminated by CRLF."""
        logger.info("%ssend: %s", self.context.prefix, render_command(cmd))
        self.writer.write(cmd.encode("utf-8") + CRLF)
        self.writer.flush()

    def send_raw(self, data: bytes) -> None:
        """Write raw bytes without logging their content."""
        self.writer.write(data)
        self.writer.flush()

    def recv_reply(self) -> SmtpReply:
        return recv_reply(self.reader, self.context)

    def recv_greeting(self) -> SmtpReply:
        """Read the unsolicited greeting sent by the server on connect."""
        return self.recv_reply()

    def send_command(self, cmd: str) -> SmtpReply:
        """Send a command line and wait for its reply."""
        self.send_line(cmd)
        return self.recv_reply()


@contextmanager
def open_connection(
    host: str,
    port: int,
    timeout: float | None = None,
    context: SessionContext | None = None,
) -> Iterator[SmtpConnection]:
    """Open a TCP connection to an SMTP server.

    The socket and its stream wrappers are closed on exit, including
    when the session raises.

    Args:
        host: Server host name or address.
        port: Server port.
        timeout: Socket timeout in seconds for every read and write, or
            None to block indefinitely.
        context: Logging context of the owning worker.

    Yields:
        Connection ready to read the server greeting.
    """
    if context is None:
        context = SessionContext()
    logger.debug("%sconnecting to %s:%d", context.prefix, host, port)
    sock = socket.create_connection((host, port), timeout=timeout)
    try:
        with sock.makefile("rb") as reader, sock.makefile("wb") as writer:
            yield SmtpConnection(reader, writer, context)
    finally:
        sock.close()


class SmtpSession:
    """Drives the SMTP command sequence for a list of EML files.

    Attributes:
        connection: Transport for commands and replies.
        settings: Sender, recipients and header update flags.
    """

    def __init__(self, connection: SmtpConnection, settings: Settings) -> None:
        self.connection = connection
        self.settings = settings

    @property
    def _prefix(self) -> str:
        return self.connection.context.prefix

    def send_hello(self) -> None:
        self.connection.send_command("EHLO localhost")

    def send_from(self) -> None:
        self.connection.send_command(
            f"MAIL FROM: <{self.settings.from_address}>"
        )

    def send_rcpt_to(self) -> None:
        for addr in self.settings.to_addresses:
            self.connection.send_command(f"RCPT TO: <{addr}>")

    def send_data(self) -> None:
        self.connection.send_command("DATA")

    def send_crlf_dot(self) -> None:
        self.connection.send_command(CRLF_DOT)

    def send_rset(self) -> None:
        self.connection.send_command("RSET")

    def send_quit(self) -> None:
        self.connection.send_command("QUIT")

    def load_message(self, file: str) -> bytes:
        """Read an EML file and apply the configured header updates.

        Raises:
            MalformedMessageError: If the header cannot be rewritten.
        """
        buf = Path(file).read_bytes()
        return replace_message(
            buf, self.settings.update_date, self.settings.update_message_id
        )

    def send_mail(self, file: str, message: bytes) -> None:
        """Run one mail transaction for already prepared message bytes."""
        self.send_from()
        self.send_rcpt_to()
        self.send_data()
        logger.info("%ssend: %s", self._prefix, file)
        self.connection.send_raw(message)
        self.send_crlf_dot()

    def send_messages(
        self, eml_files: Sequence[str], label: str = ""
    ) -> SessionResult:
        """Send every file in *eml_files* over this connection.

        Missing files are skipped and files without a header/body boundary
        are reported as failed; neither affects the session.  ``RSET``
        precedes every message after the first one sent, and ``QUIT`` is
        always sent at the end.

        Args:
            eml_files: Paths of the files to send, in order.
            label: Identity of this session for the returned result.

        Returns:
            Per-file outcome of the session.

        Raises:
            SmtpError: On a negative reply or a closed connection.
        """
        result = SessionResult(label=label)

        self.connection.recv_greeting()
        self.send_hello()

        reset = False
        for file in eml_files:
            if not Path(file).is_file():
                logger.warning(
                    "%s%s: EML file does not exist", self._prefix, file
                )
                result.skipped.append(file)
                continue

            try:
                message = self.load_message(file)
            except MalformedMessageError as e:
                logger.error("%s%s: %s", self._prefix, file, e)
                result.failed.append((file, str(e)))
                continue

            if reset:
                logger.info("%s---", self._prefix)
                self.send_rset()

            self.send_mail(file, message)
            result.sent.append(file)
            reset = True

        self.send_quit()
        return result
