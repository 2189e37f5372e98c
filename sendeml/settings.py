# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Settings files for the sender.

Each command line argument names one settings file.  Files ending in
``.yaml`` or ``.yml`` are parsed as YAML, where ``!env VAR_NAME`` tags
resolve values from environment variables (after loading ``.env`` files,
see :mod:`sendeml.dotenv_loader`).  Every other file is parsed as JSON.

Keys use the camelCase names of the original JSON format::

    smtpHost, smtpPort, fromAddress, toAddresses, emlFiles,
    updateDate, updateMessageId, useParallel, timeout

Validation happens here, before any connection is opened; the SMTP layer
trusts every field of a :class:`Settings` instance.
"""

import json
import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

from sendeml.dotenv_loader import load_dotenv_for


logger = logging.getLogger(__name__)

_BOOL_TRUTHY = frozenset({"true", "1", "yes", "on"})
_BOOL_FALSY = frozenset({"false", "0", "no", "off"})

_REQUIRED_KEYS = (
    "smtpHost",
    "smtpPort",
    "fromAddress",
    "toAddresses",
    "emlFiles",
)

_YAML_SUFFIXES = frozenset({".yaml", ".yml"})


class ConfigError(Exception):
    """Raised when a settings file is missing, unreadable or invalid."""


# ---------------------------------------------------------------------------
# YAML tag placeholders
# ---------------------------------------------------------------------------


class _EnvVar:
    """Placeholder for an unresolved ``!env VAR_NAME`` tag."""

    def __init__(self, var_name: str) -> None:
        self.var_name = var_name


def _env_constructor(loader: yaml.SafeLoader, node: yaml.Node) -> _EnvVar:
    """Handle ``!env VAR_NAME`` in YAML."""
    value = loader.construct_scalar(node)
    return _EnvVar(str(value))


def _make_loader() -> type[yaml.SafeLoader]:
    """Create a YAML loader that understands ``!env``."""

    class EnvLoader(yaml.SafeLoader):
        pass

    EnvLoader.add_constructor("!env", _env_constructor)
    return EnvLoader


# ---------------------------------------------------------------------------
# Value checks
# ---------------------------------------------------------------------------


def _env_value(value: _EnvVar, name: str) -> str:
    raw = os.environ.get(value.var_name)
    if raw is None:
        raise ConfigError(
            f"{name}: environment variable '{value.var_name}' is not set"
        )
    return raw


def _coerce_bool(value: str, name: str) -> bool:
    s = value.lower().strip()
    if s in _BOOL_TRUTHY:
        return True
    if s in _BOOL_FALSY:
        return False
    raise ConfigError(f"{name}: Cannot convert {value!r} to bool")


def _check_str(value: object, name: str) -> str:
    if isinstance(value, _EnvVar):
        return _env_value(value, name)
    if not isinstance(value, str):
        raise ConfigError(f"{name}: Invalid type: {value!r}")
    return value


def _check_int(value: object, name: str) -> int:
    if isinstance(value, _EnvVar):
        raw = _env_value(value, name)
        try:
            return int(raw)
        except ValueError:
            raise ConfigError(f"{name}: Invalid type: {raw!r}") from None
    # bool is a subclass of int
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{name}: Invalid type: {value!r}")
    return value


def _check_bool(raw: dict[str, Any], name: str, *, default: bool) -> bool:
    if name not in raw:
        return default
    value = raw[name]
    if isinstance(value, _EnvVar):
        return _coerce_bool(_env_value(value, name), name)
    if not isinstance(value, bool):
        raise ConfigError(f"{name}: Invalid type: {value!r}")
    return value


def _check_timeout(value: object, name: str) -> float | None:
    if value is None:
        return None
    if isinstance(value, _EnvVar):
        raw = _env_value(value, name)
        try:
            return float(raw)
        except ValueError:
            raise ConfigError(f"{name}: Invalid type: {raw!r}") from None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{name}: Invalid type: {value!r}")
    return float(value)


def _check_str_list(value: object, name: str) -> tuple[str, ...]:
    if not isinstance(value, list):
        raise ConfigError(f"{name}: Invalid type (array): {value!r}")

    items: list[str] = []
    for item in value:
        if isinstance(item, _EnvVar):
            items.append(_env_value(item, name))
        elif isinstance(item, str):
            items.append(item)
        else:
            raise ConfigError(f"{name}: Invalid type (element): {item!r}")
    return tuple(items)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    """Validated contents of one settings file.

    Attributes:
        smtp_host: SMTP server host name or address.
        smtp_port: SMTP server port.
        from_address: Envelope sender for ``MAIL FROM``.
        to_addresses: Envelope recipients for ``RCPT TO``, in order.
        eml_files: Paths of the EML files to send, in order.
        update_date: Refresh the ``Date:`` header before sending.
        update_message_id: Refresh the ``Message-ID:`` header before
            sending.
        use_parallel: Send each EML file over its own connection,
            concurrently.
        timeout: Socket timeout in seconds, or None to block.
    """

    smtp_host: str
    smtp_port: int
    from_address: str
    to_addresses: tuple[str, ...]
    eml_files: tuple[str, ...]
    update_date: bool = True
    update_message_id: bool = True
    use_parallel: bool = False
    timeout: float | None = None

    def __post_init__(self) -> None:
        """Validate field values.

        Raises:
            ConfigError: If a value is out of range or a list is empty.
        """
        if not 0 < self.smtp_port < 65536:
            raise ConfigError(
                f"smtpPort: Must be between 1 and 65535: {self.smtp_port}"
            )
        if not self.to_addresses:
            raise ConfigError("toAddresses: Must not be empty")
        if not self.eml_files:
            raise ConfigError("emlFiles: Must not be empty")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigError(f"timeout: Must be positive: {self.timeout}")

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a JSON or YAML file.

        Args:
            path: Path to the settings file.

        Returns:
            Settings instance.

        Raises:
            ConfigError: If the file is missing, unparsable or invalid.
        """
        if not path.is_file():
            raise ConfigError(f"Settings file does not exist: {path}")

        load_dotenv_for(path)

        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise ConfigError(f"Cannot read settings file: {e}") from e

        if path.suffix.lower() in _YAML_SUFFIXES:
            try:
                raw = yaml.load(text, Loader=_make_loader())
            except yaml.YAMLError as e:
                raise ConfigError(f"Invalid YAML: {e}") from e
        else:
            try:
                raw = json.loads(text)
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid JSON: {e}") from e

        if not isinstance(raw, dict):
            raise ConfigError(f"Settings must be a mapping: {path}")

        settings = cls.from_dict(raw)
        logger.debug(
            "Loaded settings from %s: %s:%d, %d recipients, %d files",
            path,
            settings.smtp_host,
            settings.smtp_port,
            len(settings.to_addresses),
            len(settings.eml_files),
        )
        return settings

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "Settings":
        """Build settings from a parsed (but unresolved) document.

        Raises:
            ConfigError: If a required key is missing or a value has the
                wrong type.
        """
        for key in _REQUIRED_KEYS:
            if key not in raw:
                raise ConfigError(f"{key} key does not exist")

        return cls(
            smtp_host=_check_str(raw["smtpHost"], "smtpHost"),
            smtp_port=_check_int(raw["smtpPort"], "smtpPort"),
            from_address=_check_str(raw["fromAddress"], "fromAddress"),
            to_addresses=_check_str_list(raw["toAddresses"], "toAddresses"),
            eml_files=_check_str_list(raw["emlFiles"], "emlFiles"),
            update_date=_check_bool(raw, "updateDate", default=True),
            update_message_id=_check_bool(
                raw, "updateMessageId", default=True
            ),
            use_parallel=_check_bool(raw, "useParallel", default=False),
            timeout=_check_timeout(raw.get("timeout"), "timeout"),
        )


def make_json_sample() -> str:
    """Return an example settings document."""
    return """\
{
    "smtpHost": "172.16.3.151",
    "smtpPort": 25,
    "fromAddress": "a001@ah62.example.jp",
    "toAddresses": [
        "a001@ah62.example.jp",
        "a002@ah62.example.jp",
        "a003@ah62.example.jp"
    ],
    "emlFiles": [
        "test1.eml",
        "test2.eml",
        "test3.eml"
    ],
    "updateDate": true,
    "updateMessageId": true,
    "useParallel": false
}"""
