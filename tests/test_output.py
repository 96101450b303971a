"""Tests for CLI output rendering and stream discipline."""

from __future__ import annotations

import json

import pytest

from cachelayer import output as output_module
from cachelayer.output import OutputFormat, OutputManager, format_response, get_output, set_output

RECORD = {"prefix": "/items", "key": "123", "header": {"content-type": ["text/plain"]}}


class TestFormats:
    def test_json_mode(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.JSON).format_response(RECORD)
        captured = capsys.readouterr()
        assert json.loads(captured.out) == RECORD
        assert captured.err == ""

    def test_plain_mode(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.PLAIN).format_response(RECORD)
        lines = capsys.readouterr().out.splitlines()
        assert lines[0] == "prefix\t/items"
        assert lines[2] == 'header\t{"content-type": ["text/plain"]}'

    def test_auto_is_plain_when_piped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(output_module, "_stdout_is_terminal", lambda: False)
        assert OutputManager().format == OutputFormat.PLAIN

    def test_auto_is_rich_on_terminal(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("NO_COLOR", raising=False)
        monkeypatch.delenv("TERM", raising=False)
        monkeypatch.setattr(output_module, "_stdout_is_terminal", lambda: True)
        assert OutputManager().format == OutputFormat.RICH

    def test_rich_mode_lists_fields(self, capsys: pytest.CaptureFixture[str]) -> None:
        OutputManager(format=OutputFormat.RICH, no_color=True).format_response(RECORD)
        out = capsys.readouterr().out
        assert "prefix" in out and "/items" in out


class TestDiagnostics:
    def test_messages_go_to_stderr(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.PLAIN, no_color=True)
        output.info("note")
        output.warning("careful")
        output.error("broken [x]")
        captured = capsys.readouterr()
        assert captured.out == ""
        assert captured.err.splitlines() == ["note", "Warning: careful", "Error: broken [x]"]

    def test_quiet_keeps_warnings_and_errors(self, capsys: pytest.CaptureFixture[str]) -> None:
        output = OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True)
        output.info("note")
        output.success("done")
        output.warning("careful")
        assert capsys.readouterr().err == "Warning: careful\n"

    def test_no_color_env(self, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]) -> None:
        monkeypatch.setenv("NO_COLOR", "")
        OutputManager(format=OutputFormat.PLAIN).success("done")
        assert capsys.readouterr().err == "done\n"


class TestGlobalManager:
    def test_set_output_used_by_helpers(self, capsys: pytest.CaptureFixture[str]) -> None:
        manager = OutputManager(format=OutputFormat.JSON)
        set_output(manager)
        assert get_output() is manager
        format_response({"entries": 2})
        assert json.loads(capsys.readouterr().out) == {"entries": 2}
