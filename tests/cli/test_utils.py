"""
Tests for CLI utilities.
"""

from __future__ import annotations

from dataclasses import dataclass

import pytest
import typer

from cadence.cli.utils import _to_dict, load_rule, make_context, output_result
from cadence.ops.result import OperationResult


@dataclass
class _Sample:
    name: str = "test"
    count: int = 0


class TestToDict:
    def test_dataclass(self):
        assert _to_dict(_Sample(name="x", count=5)) == {"name": "x", "count": 5}

    def test_dict_passthrough(self):
        assert _to_dict({"a": 1}) == {"a": 1}

    def test_other(self):
        assert _to_dict("hello") == {"value": "hello"}


class TestLoadRule:
    def test_inline(self):
        assert load_rule('{"rule_type": "by_day"}', None) == {"rule_type": "by_day"}

    def test_file_wins(self, tmp_path):
        path = tmp_path / "rule.json"
        path.write_text('{"rule_type": "by_week"}', encoding="utf-8")
        assert load_rule('{"rule_type": "by_day"}', path) == {"rule_type": "by_week"}

    @pytest.mark.parametrize("text", [None, "{not json", "[1, 2]"])
    def test_rejected(self, text):
        with pytest.raises(typer.Exit) as exc_info:
            load_rule(text, None)
        assert exc_info.value.exit_code == 2


class TestMakeContext:
    def test_cli_caller(self, tmp_path):
        ctx, conn = make_context(str(tmp_path / "cli.db"), dry_run=True)
        try:
            assert ctx.caller == "cli"
            assert ctx.dry_run
            assert ctx.conn is conn
        finally:
            conn.close()


class TestOutputResult:
    def test_failure_exits_1(self):
        result = OperationResult.fail("NOT_FOUND", "nope")
        with pytest.raises(typer.Exit) as exc_info:
            output_result(result)
        assert exc_info.value.exit_code == 1

    def test_success_prints(self, capsys):
        output_result(OperationResult.ok({"task_id": "report"}), title="Saved")
        out = capsys.readouterr().out
        assert "Saved" in out
        assert "report" in out
