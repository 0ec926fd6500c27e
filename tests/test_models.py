"""Tests for senserest.models."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from senserest.models import ClientSettings, ConnectionType, QcsSessionInfo, User


class TestUser:
    def test_str(self) -> None:
        assert str(User(directory="CORP", id="alice")) == "CORP\\alice"

    def test_unknown_parts(self) -> None:
        assert str(User(id="alice")) == "unknown\\alice"
        assert str(User()) == "unknown\\unknown"

    def test_aliases(self) -> None:
        user = User.model_validate({"userDirectory": "CORP", "userId": "alice"})
        assert user == User(directory="CORP", id="alice")
        assert user.model_dump(by_alias=True) == {"userDirectory": "CORP", "userId": "alice"}

    def test_frozen(self) -> None:
        with pytest.raises(ValidationError):
            User(id="alice").id = "bob"  # type: ignore[misc]


class TestConnectionType:
    def test_ten_modes(self) -> None:
        modes = [t for t in ConnectionType if t is not ConnectionType.UNDEFINED]
        assert len(modes) == 10

    def test_string_values(self) -> None:
        assert ConnectionType("api_key_via_qcs") is ConnectionType.API_KEY_VIA_QCS


class TestSettings:
    def test_session_info_defaults(self) -> None:
        assert QcsSessionInfo() == QcsSessionInfo(eas_sid=None, eas_sid_sig=None, session_token=None)

    def test_url_required(self) -> None:
        with pytest.raises(ValidationError):
            ClientSettings.model_validate({})
