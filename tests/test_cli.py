"""CLI tests — click's CliRunner, no server needed."""

from click.testing import CliRunner

from tnkr import __version__
from tnkr.cli.main import main


def test_help_lists_commands():
    result = CliRunner().invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "init-db", "create-admin", "health"):
        assert command in result.output


def test_version():
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_create_admin_rejects_short_password():
    result = CliRunner().invoke(
        main,
        ["create-admin", "root@tnkr.app", "--username", "root"],
        input="short\nshort\n",
    )
    assert result.exit_code == 1
    assert "at least 8 characters" in result.output


def test_health_unreachable(monkeypatch):
    monkeypatch.setenv("TNKR_API_URL", "http://127.0.0.1:9")
    result = CliRunner().invoke(main, ["health"])
    assert result.exit_code == 1
    assert "cannot reach" in result.output
