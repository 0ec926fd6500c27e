"""HTTP client module for senserest.

Classes:
    :class:`RestClient` -- the public client: connection modes, data calls
        and derived clients.
    :class:`SyncTransport` -- blocking sender backed by :class:`httpx.Client`.
    :class:`AsyncTransport` -- non-blocking sender backed by
        :class:`httpx.AsyncClient`.

Example::

    from senserest.client import RestClient

    with RestClient("https://tenant.eu.qlikcloud.com") as client:
        client.as_api_key_via_qcs(api_key)
        me = client.get_json("/api/v1/users/me")
"""

from senserest.client.async_client import AsyncTransport
from senserest.client.sync_client import SyncTransport
from senserest.client.rest_client import RestClient

__all__ = ["RestClient", "SyncTransport", "AsyncTransport"]
