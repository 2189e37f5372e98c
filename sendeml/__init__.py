# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Send raw EML files to an SMTP server.

Provides byte-exact delivery of ``.eml`` files for interoperability
testing:
- Header rewriting of ``Date:`` and ``Message-ID:`` (message)
- Minimal synchronous SMTP client (smtp)
- Per settings file session fan-out (runner)
- Settings loading and validation (settings)
"""

from sendeml.message import (
    MalformedMessageError,
    replace_header,
    replace_message,
    split_message,
)
from sendeml.runner import process_settings_file, run_settings
from sendeml.settings import ConfigError, Settings
from sendeml.smtp import (
    ConnectionClosedError,
    NegativeReplyError,
    SessionContext,
    SessionResult,
    SmtpConnection,
    SmtpError,
    SmtpReply,
    SmtpSession,
    open_connection,
)


__version__ = "1.5"

__all__ = [
    "ConfigError",
    "ConnectionClosedError",
    "MalformedMessageError",
    "NegativeReplyError",
    "SessionContext",
    "SessionResult",
    "Settings",
    "SmtpConnection",
    "SmtpError",
    "SmtpReply",
    "SmtpSession",
    "__version__",
    "open_connection",
    "process_settings_file",
    "replace_header",
    "replace_message",
    "run_settings",
    "split_message",
]
