"""Tests for request shaping: URLs, xrfkey and client options."""

from __future__ import annotations

import string

import httpx
import pytest

from senserest.client.shaping import (
    LIBRARY_USER_AGENT,
    RequestShaper,
    append_query,
    build_url,
    client_options,
    generate_xrfkey,
)
from senserest.profile import ConnectionProfile


class TestBuildUrl:
    @pytest.mark.parametrize(
        "base, endpoint",
        [
            ("https://sense.example.com", "/qrs/about"),
            ("https://sense.example.com/", "/qrs/about"),
            ("https://sense.example.com/", "qrs/about"),
            ("https://sense.example.com", "qrs/about"),
        ],
    )
    def test_single_slash(self, base: str, endpoint: str) -> None:
        assert build_url(base, endpoint) == "https://sense.example.com/qrs/about"

    def test_virtual_proxy_prefix_kept(self) -> None:
        assert build_url("https://sense.example.com/jwt", "/qrs/about") == (
            "https://sense.example.com/jwt/qrs/about"
        )


class TestAppendQuery:
    def test_new_query(self) -> None:
        assert append_query("https://h/qrs/app", "xrfkey", "abc") == "https://h/qrs/app?xrfkey=abc"

    def test_existing_query(self) -> None:
        assert append_query("https://h/qrs/app?filter=x", "xrfkey", "abc") == (
            "https://h/qrs/app?filter=x&xrfkey=abc"
        )

    def test_value_is_encoded(self) -> None:
        assert append_query("https://h/a", "name", "a b&c") == "https://h/a?name=a%20b%26c"


class TestXrfkey:
    def test_generated_key_shape(self) -> None:
        key = generate_xrfkey()
        assert len(key) == 16
        assert set(key) <= set(string.ascii_letters + string.digits)

    def test_generated_keys_differ(self) -> None:
        assert len({generate_xrfkey() for _ in range(20)}) > 1

    def test_profile_key_wins(self) -> None:
        profile = ConnectionProfile(base_url="https://h")
        shaper = RequestShaper(profile)
        profile.set_xrfkey("0123456789abcdef")
        assert shaper.xrfkey == "0123456789abcdef"
        assert shaper.url("/qrs/about").endswith("xrfkey=0123456789abcdef")

    def test_cloud_profile_has_no_xrfkey(self) -> None:
        profile = ConnectionProfile(base_url="https://tenant", is_cloud=True)
        shaper = RequestShaper(profile)
        assert "xrfkey" not in shaper.url("/api/v1/items")
        assert "X-Qlik-Xrfkey" not in shaper.headers()


class TestHeaders:
    def test_precedence(self) -> None:
        profile = ConnectionProfile(base_url="https://h", headers={"User-Agent": "Windows", "X-A": "profile"})
        headers = RequestShaper(profile).headers({"X-A": "call"})
        assert headers["User-Agent"] == "Windows"
        assert headers["X-A"] == "call"

    def test_default_user_agent(self) -> None:
        headers = RequestShaper(ConnectionProfile(base_url="https://h")).headers()
        assert headers["User-Agent"] == LIBRARY_USER_AGENT

    def test_content_type_for_body(self) -> None:
        profile = ConnectionProfile(base_url="https://h", content_type="text/csv")
        shaper = RequestShaper(profile)
        assert shaper.headers(has_body=True)["Content-Type"] == "text/csv"
        assert shaper.headers(content_type="application/zip", has_body=True)["Content-Type"] == (
            "application/zip"
        )
        assert "Content-Type" not in shaper.headers()


class TestClientOptions:
    def test_defaults(self) -> None:
        profile = ConnectionProfile(base_url="https://h")
        options = client_options(profile)

        assert options["cookies"] is profile.cookies
        assert options["verify"] is True
        assert options["follow_redirects"] is False
        assert options["timeout"] == httpx.Timeout(None)
        assert "proxy" not in options
        assert "auth" not in options

    def test_timeout_proxy_and_credential(self) -> None:
        auth = httpx.BasicAuth("u", "p")
        profile = ConnectionProfile(
            base_url="https://h",
            timeout=5.0,
            proxy="http://proxy.local:3128",
            credential=auth,
            certificate_validation=False,
        )
        options = client_options(profile)

        assert options["timeout"] == httpx.Timeout(5.0)
        assert options["proxy"] == "http://proxy.local:3128"
        assert options["auth"] is auth
        assert options["verify"] is False
