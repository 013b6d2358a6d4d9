"""Operator command tests."""

from __future__ import annotations

import pytest

from podledger.cli import build_parser, main


@pytest.fixture()
def database_url(tmp_path) -> str:
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def _provision(database_url: str, account_id: str = "acct-root") -> int:
    return main(
        [
            "--database-url",
            database_url,
            "provision-admin",
            "--account-id",
            account_id,
            "--email",
            f"{account_id}@example.com",
            "--full-name",
            "Root Admin",
        ]
    )


def test_command_is_required() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_init_db_then_provision_admin(database_url, capsys) -> None:
    assert main(["--database-url", database_url, "init-db"]) == 0
    assert _provision(database_url) == 0

    assert "Provisioned admin Root Admin" in capsys.readouterr().out


def test_second_admin_is_refused(database_url, caplog) -> None:
    main(["--database-url", database_url, "init-db"])
    assert _provision(database_url) == 0

    assert _provision(database_url, "acct-other") == 1
    assert "already been provisioned" in caplog.text


def test_init_db_is_idempotent(database_url) -> None:
    assert main(["--database-url", database_url, "init-db"]) == 0
    assert main(["--database-url", database_url, "init-db"]) == 0
