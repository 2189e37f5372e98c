# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Session fan-out for one settings file.

A settings file is sent either over a single connection (files in order,
``RSET`` between messages) or, with ``useParallel`` and more than one EML
file, over one connection per file on a thread pool.  Each worker owns its
socket end to end and returns a :class:`SessionResult`; a failing worker
never affects its siblings.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from contextlib import AbstractContextManager
from pathlib import Path

from sendeml.settings import Settings
from sendeml.smtp import (
    SessionContext,
    SessionResult,
    SmtpConnection,
    SmtpError,
    SmtpSession,
    open_connection,
)


logger = logging.getLogger(__name__)

#: Opens a connection: (host, port, timeout, context) -> context manager.
Connector = Callable[
    [str, int, float | None, SessionContext],
    AbstractContextManager[SmtpConnection],
]


def run_session(
    settings: Settings,
    eml_files: Sequence[str],
    context: SessionContext | None = None,
    connect: Connector = open_connection,
) -> SessionResult:
    """Send *eml_files* over one connection, capturing fatal errors.

    Args:
        settings: Server, envelope and update settings.
        eml_files: Files to send over this connection, in order.
        context: Logging context of this worker (none for a sequential
            run).
        connect: Connection factory (replaced in tests).

    Returns:
        Result of the session.  Every error, including unexpected ones,
        is recorded in ``error`` instead of being raised.
    """
    if context is None:
        context = SessionContext()

    label = f"{settings.smtp_host}:{settings.smtp_port}"
    if context.worker_id is not None:
        label = f"{label} (id: {context.worker_id})"

    try:
        with connect(
            settings.smtp_host, settings.smtp_port, settings.timeout, context
        ) as connection:
            session = SmtpSession(connection, settings)
            return session.send_messages(eml_files, label=label)
    except (SmtpError, OSError) as e:
        logger.error("%s%s: %s", context.prefix, label, e)
        return SessionResult(label=label, error=str(e))
    except Exception as e:
        logger.exception(
            "%s%s: unexpected error: %s: %s",
            context.prefix,
            label,
            type(e).__name__,
            e,
        )
        return SessionResult(label=label, error=f"{type(e).__name__}: {e}")


def run_settings(
    settings: Settings, connect: Connector = open_connection
) -> list[SessionResult]:
    """Send all EML files of one settings file.

    Args:
        settings: Validated settings.
        connect: Connection factory (replaced in tests).

    Returns:
        One result per session, in file order for parallel runs.
    """
    files = settings.eml_files
    if not (settings.use_parallel and len(files) > 1):
        return [run_session(settings, files, connect=connect)]

    logger.debug("Sending %d files in parallel", len(files))
    with ThreadPoolExecutor(
        max_workers=len(files), thread_name_prefix="SendWorker"
    ) as pool:
        futures = [
            pool.submit(
                run_session,
                settings,
                (file,),
                SessionContext(worker_id=worker_id),
                connect,
            )
            for worker_id, file in enumerate(files, start=1)
        ]
        return [future.result() for future in futures]


def process_settings_file(
    path: Path, connect: Connector = open_connection
) -> list[SessionResult]:
    """Load one settings file and run its sessions.

    Args:
        path: Path to a JSON or YAML settings file.
        connect: Connection factory (replaced in tests).

    Returns:
        Session results.

    Raises:
        ConfigError: If the settings file is missing or invalid.
    """
    settings = Settings.from_file(path)
    return run_settings(settings, connect=connect)
