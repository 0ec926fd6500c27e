"""Response helpers shared by the sync and async transports.

* :func:`raise_for_failure` / :func:`raise_for_failure_async` -- map a
  non-success status to :class:`~senserest.exceptions.HttpFailureError`,
  reading the body best-effort for the message.
* :func:`decode_json` -- decode a JSON body, optionally validating it
  against a type through :class:`pydantic.TypeAdapter`.
* :func:`redirect_target` / :func:`strip_credentials` -- where a ``301``
  points, and the headers that may follow it to another origin.
* :func:`describe` -- one-line summary for the observer.
"""

from __future__ import annotations

import json
from typing import Any, Iterable, Optional

import httpx
from pydantic import TypeAdapter

from senserest.exceptions import HttpFailureError

CREDENTIAL_HEADERS = ("Authorization", "X-Qlik-User", "qlik-csrf-token")


def read_body(response: httpx.Response) -> str:
    """Return the response text, or ``""`` if the body cannot be read."""
    try:
        response.read()
        return response.text
    except (httpx.HTTPError, httpx.StreamError):
        return ""


async def read_body_async(response: httpx.Response) -> str:
    try:
        await response.aread()
        return response.text
    except (httpx.HTTPError, httpx.StreamError):
        return ""


def raise_for_failure(response: httpx.Response) -> None:
    """Raise :class:`HttpFailureError` unless the status is 2xx.

    Raises:
        HttpFailureError: Carrying status code, reason phrase and body.
    """
    if response.is_success:
        return
    body = read_body(response)
    response.close()
    raise HttpFailureError(response.status_code, response.reason_phrase, body)


async def raise_for_failure_async(response: httpx.Response) -> None:
    if response.is_success:
        return
    body = await read_body_async(response)
    await response.aclose()
    raise HttpFailureError(response.status_code, response.reason_phrase, body)


def decode_json(text: str, model: Optional[Any] = None) -> Any:
    """Decode *text* as JSON.

    Args:
        text: The response body.  An empty body decodes to ``None``.
        model: Optional type (a pydantic model, ``list[Model]``, ``dict``,
            ...) to validate the document against.

    Raises:
        json.JSONDecodeError: If *text* is not JSON and no model is given.
        pydantic.ValidationError: If the document does not match *model*.
    """
    if model is None:
        return json.loads(text) if text else None
    return TypeAdapter(model).validate_json(text)


def redirect_target(response: httpx.Response) -> Optional[httpx.URL]:
    """Return the absolute URL a redirect points to, or ``None`` without ``Location``."""
    location = response.headers.get("Location")
    if not location:
        return None
    return response.url.join(location)


def same_origin(first: httpx.URL, second: httpx.URL) -> bool:
    # httpx normalizes default ports to None, so ":443" and "" compare equal.
    return (first.scheme, first.host, first.port) == (second.scheme, second.host, second.port)


def strip_credentials(headers: httpx.Headers, custom: Iterable[str] = ()) -> httpx.Headers:
    """Return a copy of *headers* without identity headers and the *custom* ones.

    Used for a redirect that leaves the origin: the follow-up must not carry
    a bearer token, an impersonated user, a CSRF token or any header the
    caller configured for the original host.
    """
    stripped = httpx.Headers(headers)
    for name in (*CREDENTIAL_HEADERS, *custom):
        stripped.pop(name, None)
    return stripped


def describe(response: httpx.Response) -> str:
    line = f"Received {response.status_code} {response.reason_phrase}"
    try:
        return f"{line} ({len(response.content)} bytes)"
    except httpx.ResponseNotRead:
        return f"{line} (streamed)"
