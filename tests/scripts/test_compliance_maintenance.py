"""Argument handling of scripts/compliance_maintenance.py."""

import importlib.util
from pathlib import Path

import pytest

SCRIPT = Path(__file__).resolve().parents[2] / "scripts" / "compliance_maintenance.py"


@pytest.fixture
def maintenance():
    spec = importlib.util.spec_from_file_location("compliance_maintenance", SCRIPT)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


class TestArguments:
    def test_commands(self, maintenance):
        args = maintenance._parse_args(["purge", "--database-url", "sqlite://"])

        assert args.command == "purge"
        assert args.database_url == "sqlite://"
        assert args.create_tables is False

    def test_unknown_command(self, maintenance):
        with pytest.raises(SystemExit):
            maintenance._parse_args(["vacuum"])

    def test_url_from_environment(self, maintenance, monkeypatch):
        monkeypatch.setenv("COMPLIANCE_DATABASE_URL", "sqlite:///env.db")

        assert maintenance._parse_args(["sweep"]).database_url == "sqlite:///env.db"

    def test_missing_url(self, maintenance, monkeypatch, capsys):
        monkeypatch.delenv("COMPLIANCE_DATABASE_URL", raising=False)

        assert maintenance.main(["sweep"]) == 2
        assert "COMPLIANCE_DATABASE_URL" in capsys.readouterr().err
