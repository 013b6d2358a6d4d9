"""Dependency injection tests."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from podledger.config import PodLedgerConfig
from podledger.dependencies import get_account_id, get_config, get_ledger
from podledger.exceptions import ForbiddenError


def _make_request(headers: dict[str, str] | None = None, **state_attrs):
    """Create a mock request with app.state attributes."""
    request = MagicMock()
    state = SimpleNamespace(**state_attrs)
    request.app.state = state
    request.headers = headers or {}
    return request


class TestDependencies:
    def test_get_config_from_app_state(self) -> None:
        config = PodLedgerConfig()
        request = _make_request(podledger_config=config)

        assert get_config(request) is config

    def test_get_ledger_from_app_state(self) -> None:
        ledger = object()
        request = _make_request(podledger_ledger=ledger)

        assert get_ledger(request) is ledger

    def test_get_account_id_reads_configured_header(self) -> None:
        config = PodLedgerConfig(account_header="X-Forwarded-User")
        request = _make_request(
            {"X-Forwarded-User": " acct-7 "}, podledger_config=config
        )

        assert get_account_id(request) == "acct-7"

    @pytest.mark.parametrize("headers", [{}, {"X-Account-Id": "   "}])
    def test_missing_account_is_forbidden(self, headers) -> None:
        request = _make_request(headers, podledger_config=PodLedgerConfig())

        with pytest.raises(ForbiddenError) as exc_info:
            get_account_id(request)

        assert exc_info.value.context["header"] == "X-Account-Id"
