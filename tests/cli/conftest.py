"""Fixtures for CLI tests: commands run against the in-memory test database."""

import json

import pytest
from typer.testing import CliRunner

from cadence.ops.context import OperationContext

CLI_MODULES = ("db", "holidays", "plans", "rules")


def parse_json_output(text: str):
    """The pretty-printed JSON document in ``text``, ignoring log lines around it."""
    lines = text.splitlines()
    start = lines.index("{")
    end = len(lines) - lines[::-1].index("}")
    return json.loads("\n".join(lines[start:end]))


@pytest.fixture()
def runner() -> CliRunner:
    return CliRunner()


@pytest.fixture()
def pinned_cli(monkeypatch, conn, settings, clock, stored_holidays):
    """Route every command's ``make_context`` to the shared test connection."""

    def make_context(database=None, *, dry_run=False):
        ctx = OperationContext(conn=conn, settings=settings, clock=clock, caller="cli", dry_run=dry_run)
        return ctx, conn

    for module in CLI_MODULES:
        monkeypatch.setattr(f"cadence.cli.{module}.make_context", make_context)
    return conn


@pytest.fixture()
def invoke_json(runner):
    """Invoke ``cadence <args> --json`` and parse the printed document."""
    from cadence.cli.app import app

    def _invoke(*args: str):
        result = runner.invoke(app, [*args, "--json"])
        assert result.exit_code == 0, result.output
        return parse_json_output(result.stdout)

    return _invoke
