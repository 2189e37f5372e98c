# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Shared pytest fixtures used across multiple test packages."""

from collections.abc import Callable
from pathlib import Path

import pytest

from sendeml.dotenv_loader import reset_dotenv_state
from sendeml.settings import Settings


SIMPLE_MAIL_LINES = [
    b"From: a001 <a001@ah62.example.jp>",
    b"Subject: test",
    b"To: a002@ah62.example.jp",
    b"Message-ID: <b0e564a5-4f70-761a-e103-70119d1bcb32@ah62.example.jp>",
    b"Date: Sun, 26 Jul 2020 22:01:37 +0900",
    b"User-Agent: Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:78.0)"
    b" Gecko/20100101",
    b" Thunderbird/78.0.1",
    b"MIME-Version: 1.0",
    b"Content-Type: text/plain; charset=utf-8; format=flowed",
    b"Content-Transfer-Encoding: 7bit",
    b"Content-Language: en-US",
    b"",
    b"test",
]


@pytest.fixture
def simple_mail() -> bytes:
    """A small Thunderbird message with CRLF line endings.

    The header contains a folded ``User-Agent`` field and the body is a
    single line without a trailing CRLF.
    """
    return b"\r\n".join(SIMPLE_MAIL_LINES)


@pytest.fixture
def write_eml(tmp_path: Path) -> Callable[[str, bytes], Path]:
    """Factory writing an EML file under ``tmp_path``."""

    def _write(name: str, content: bytes) -> Path:
        path = tmp_path / name
        path.write_bytes(content)
        return path

    return _write


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Factory for Settings with test defaults."""

    def _make(**overrides: object) -> Settings:
        values: dict[str, object] = {
            "smtp_host": "smtp.example.com",
            "smtp_port": 25,
            "from_address": "a001@ah62.example.jp",
            "to_addresses": ("a001@ah62.example.jp", "a002@ah62.example.jp"),
            "eml_files": ("test1.eml",),
            "update_date": False,
            "update_message_id": False,
            "use_parallel": False,
        }
        values.update(overrides)
        return Settings(**values)  # type: ignore[arg-type]

    return _make


@pytest.fixture(autouse=True)
def _reset_dotenv():
    """Let every test load .env files afresh."""
    reset_dotenv_state()
    yield
    reset_dotenv_state()
