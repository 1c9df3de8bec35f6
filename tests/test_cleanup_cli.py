"""Tests for the manual cleanup command."""
import pytest

from portal_e2e.cleanup_cli import build_parser, main


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for key in ("DATABASE_URL", "TEST_EMAIL_DOMAIN", "TEST_ORG_PREFIX"):
        monkeypatch.delenv(key, raising=False)
    return monkeypatch


def test_parser_defaults():
    args = build_parser().parse_args([])

    assert args.database_url is None
    assert args.dry_run is False


def test_missing_database_url_exits_with_usage_error(capsys):
    assert main([]) == 2


def test_dry_run_only_counts(populated_url, capsys):
    assert main(["--database-url", populated_url, "--dry-run"]) == 0
    out = capsys.readouterr().out

    assert "Would delete 1 test organization rows" in out
    assert "Would delete 2 test user rows" in out
    assert "Total users: 3" in out
    assert "Total organizations: 1" in out


def test_sweep_deletes_tagged_rows_and_reports_final_state(populated_url, capsys):
    assert main(["--database-url", populated_url]) == 0
    out = capsys.readouterr().out

    assert "Deleted 1 test organization rows" in out
    assert "Deleted 2 test user rows" in out
    assert "Total users: 1" in out
    assert "Total organizations: 0" in out


def test_database_url_falls_back_to_environment(populated_url, clean_env, capsys):
    clean_env.setenv("DATABASE_URL", populated_url)

    assert main(["--dry-run"]) == 0
    assert "Would delete 2 test user rows" in capsys.readouterr().out


def test_unreachable_store_exits_nonzero(unreachable_url):
    assert main(["--database-url", unreachable_url]) == 1


def test_failed_sweep_exits_nonzero(sqlite_url, capsys):
    # Connects fine, but the tables do not exist.
    assert main(["--database-url", sqlite_url]) == 1
    assert "FAILED to delete test organization rows" in capsys.readouterr().err
