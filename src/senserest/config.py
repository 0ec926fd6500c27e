"""Configuration from the environment and credential source resolution.

* **Settings** -- :func:`load_settings` reads the ``SENSEREST_*`` environment
  variables into a :class:`~senserest.models.ClientSettings`, which
  :meth:`~senserest.client.rest_client.RestClient.from_settings` applies.
* **Credential resolution** -- :func:`resolve_credential` reads secrets
  (API keys, client secrets, JWTs) from env vars, files or an interactive
  prompt, so they need not be written into code.

Environment variables:

==============================  ===========================================
``SENSEREST_URL``               Base address (required)
``SENSEREST_TIMEOUT``           Request timeout in seconds; empty for no timeout
``SENSEREST_VERIFY_SSL``        ``true``/``false``, default ``true``
``SENSEREST_PROXY``             Outbound proxy URL
``SENSEREST_USER_AGENT``        Application name prefixed to the user agent
``SENSEREST_API_KEY_SOURCE``    Credential source of a tenant API key; when
                                set, the client connects with that key
==============================  ===========================================
"""

from __future__ import annotations

import getpass
import os
import sys
from pathlib import Path
from typing import Any, Callable, Mapping, Optional

from pydantic import ValidationError

from senserest.exceptions import ConfigError
from senserest.models import ClientSettings

_ENV_FIELDS = {
    "url": "SENSEREST_URL",
    "timeout": "SENSEREST_TIMEOUT",
    "verify_ssl": "SENSEREST_VERIFY_SSL",
    "proxy": "SENSEREST_PROXY",
    "user_agent": "SENSEREST_USER_AGENT",
    "api_key_source": "SENSEREST_API_KEY_SOURCE",
}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> ClientSettings:
    """Build :class:`ClientSettings` from environment variables.

    Args:
        environ: Mapping to read instead of :data:`os.environ`.

    Returns:
        The validated settings.

    Raises:
        ConfigError: If ``SENSEREST_URL`` is missing or a value is invalid.
    """
    env = os.environ if environ is None else environ
    if not env.get(_ENV_FIELDS["url"]):
        raise ConfigError(f"Environment variable '{_ENV_FIELDS['url']}' is not set")

    values: dict[str, Any] = {}
    for field_name, var_name in _ENV_FIELDS.items():
        value = env.get(var_name)
        # Empty values fall back to the defaults.
        if value is not None and value.strip():
            values[field_name] = value.strip()

    try:
        return ClientSettings.model_validate(values)
    except ValidationError as exc:
        problems = "; ".join(
            f"{_ENV_FIELDS.get(str(err['loc'][0]), err['loc'][0])}: {err['msg']}"
            for err in exc.errors()
        )
        raise ConfigError(f"Invalid settings: {problems}") from exc


def _from_env(name: str) -> str:
    try:
        return os.environ[name]
    except KeyError:
        raise ConfigError(f"Credential variable {name!r} is not set") from None


def _from_file(location: str) -> str:
    path = Path(location).expanduser()
    try:
        return path.read_text(encoding="utf-8").strip()
    except FileNotFoundError:
        raise ConfigError(f"Credential file {path} not found") from None
    except OSError as exc:
        raise ConfigError(f"Credential file {path} is not readable: {exc}") from exc


def _from_prompt() -> str:
    if not sys.stdin.isatty():
        raise ConfigError("Cannot prompt for the credential, stdin is not a TTY")
    return getpass.getpass("Credential: ")


_READERS: dict[str, Callable[[str], str]] = {"env": _from_env, "file": _from_file}


def resolve_credential(source: str) -> str:
    """Return the secret named by *source*.

    *source* is ``env:NAME`` (an environment variable), ``file:PATH`` (file
    content without surrounding whitespace, ``~`` expanded) or ``prompt``
    (asked for on the terminal).

    Raises:
        ConfigError: For an unknown format or a secret that cannot be read.
    """
    if source == "prompt":
        return _from_prompt()
    scheme, separator, rest = source.partition(":")
    reader = _READERS.get(scheme) if separator else None
    if reader is None:
        raise ConfigError(
            f"Unknown credential source format {source!r}, use env:NAME, file:PATH or prompt"
        )
    return reader(rest)
