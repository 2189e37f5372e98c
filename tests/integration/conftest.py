# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Fixtures for end-to-end tests against an in-process SMTP server."""

import socket
import threading
from collections.abc import Generator
from dataclasses import dataclass, field

import pytest
from aiosmtpd.controller import Controller


def find_free_port() -> int:
    """Find a free TCP port on localhost.

    Creates a socket, binds to port 0 (asking OS for any free port),
    retrieves the assigned port, then closes the socket.
    """
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        s.listen(1)
        return s.getsockname()[1]


@dataclass
class ReceivedMessage:
    """One message accepted by the test server."""

    mail_from: str
    rcpt_tos: list[str]
    content: bytes


@dataclass
class RecordingHandler:
    """aiosmtpd handler that stores every accepted message.

    Attributes:
        messages: Accepted messages in arrival order.
        reject_rcpt: Recipients answered with ``550``.
    """

    messages: list[ReceivedMessage] = field(default_factory=list)
    reject_rcpt: set[str] = field(default_factory=set)
    _lock: threading.Lock = field(default_factory=threading.Lock)

    async def handle_RCPT(self, server, session, envelope, address, options):
        if address in self.reject_rcpt:
            return "550 No such user here"
        envelope.rcpt_tos.append(address)
        return "250 OK"

    async def handle_DATA(self, server, session, envelope):
        with self._lock:
            self.messages.append(
                ReceivedMessage(
                    mail_from=envelope.mail_from,
                    rcpt_tos=list(envelope.rcpt_tos),
                    content=envelope.content,
                )
            )
        return "250 Message accepted for delivery"


@dataclass
class SmtpServer:
    """Running test server."""

    host: str
    port: int
    handler: RecordingHandler


# Enable socket access for all integration tests
# This overrides the --disable-socket from pyproject.toml
def pytest_collection_modifyitems(items):
    """Add enable_socket marker to all integration tests."""
    for item in items:
        # Only apply to tests in this directory
        if "tests/integration" in str(item.fspath):
            item.add_marker(pytest.mark.enable_socket)


@pytest.fixture
def smtp_server() -> Generator[SmtpServer]:
    """Start an aiosmtpd server on a free localhost port."""
    # aiosmtpd's Controller cannot report the port it bound with port=0
    port = find_free_port()
    handler = RecordingHandler()
    controller = Controller(handler, hostname="127.0.0.1", port=port)
    controller.start()
    try:
        yield SmtpServer(host="127.0.0.1", port=port, handler=handler)
    finally:
        controller.stop()
