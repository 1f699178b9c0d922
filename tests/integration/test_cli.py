"""
Integration tests for the toolgate CLI.

Tests cover:
- parse: directive extraction from a file
- tools / permissions: catalog and access listings
- ask / react: end-to-end runs with the fallback model
- audit: persistence across invocations
- doctor: environment checks with the model disabled
"""

import json

import pytest
from typer.testing import CliRunner

from conftest import tool_call_text
from toolgate import __version__
from toolgate.cli import app

runner = CliRunner()


@pytest.fixture
def config_file(temp_dir):
    """Settings file with the model disabled and a persistent audit database."""
    work = temp_dir / "work"
    work.mkdir()
    (work / "notes.txt").write_text("alpha\nbeta\n", encoding="utf-8")
    path = temp_dir / "toolgate.yaml"
    path.write_text(
        "agent:\n"
        f"  working_directory: {work}\n"
        "security:\n"
        f"  audit_db_path: {temp_dir / 'audit.db'}\n"
        "  user_levels:\n"
        "    guest: read\n"
        "llm:\n"
        "  enabled: false\n"
        "logging:\n"
        "  level: ERROR\n",
        encoding="utf-8",
    )
    return path


class TestVersionAndParse:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_parse_json(self, temp_dir):
        reply = temp_dir / "reply.txt"
        reply.write_text(
            tool_call_text("ReadFileContents", {"filePath": "a.txt"}, prose="Reading now."),
            encoding="utf-8",
        )

        result = runner.invoke(app, ["parse", str(reply), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert [c["tool_name"] for c in data["tool_calls"]] == ["ReadFileContents"]
        assert data["tool_calls"][0]["parameters"] == {"filePath": "a.txt"}
        assert data["text"] == "Reading now."

    def test_parse_table(self, temp_dir):
        reply = temp_dir / "reply.txt"
        reply.write_text(tool_call_text("GetSystemInfo"), encoding="utf-8")

        result = runner.invoke(app, ["parse", str(reply)])

        assert result.exit_code == 0
        assert "GetSystemInfo" in result.output

    def test_parse_without_calls(self, temp_dir):
        reply = temp_dir / "reply.txt"
        reply.write_text("Just prose.", encoding="utf-8")

        result = runner.invoke(app, ["parse", str(reply)])

        assert result.exit_code == 0
        assert "No tool calls found." in result.output

    def test_parse_missing_file(self, temp_dir):
        result = runner.invoke(app, ["parse", str(temp_dir / "missing.txt")])
        assert result.exit_code == 1


class TestInspection:
    """Tests for tools and permissions."""

    def test_tools_json_with_user(self, config_file):
        result = runner.invoke(app, ["tools", "-c", str(config_file), "--user", "guest", "--json"])

        assert result.exit_code == 0
        catalog = {entry["name"]: entry for entry in json.loads(result.output)}
        assert set(catalog) == {
            "ReadFileContents",
            "WriteFileContents",
            "ListDirectory",
            "CheckHostReachability",
            "GetSystemInfo",
        }
        assert catalog["GetSystemInfo"]["allowed"] is True
        assert catalog["WriteFileContents"]["allowed"] is False

    def test_tools_search(self, config_file):
        result = runner.invoke(app, ["tools", "-c", str(config_file), "--search", "host", "--json"])

        assert result.exit_code == 0
        assert [e["name"] for e in json.loads(result.output)] == ["CheckHostReachability"]

    def test_tools_prompt(self, config_file):
        result = runner.invoke(app, ["tools", "-c", str(config_file), "--prompt"])

        assert result.exit_code == 0
        assert "## Available Tools" in result.output

    def test_permissions_from_config(self, config_file):
        result = runner.invoke(app, ["permissions", "guest", "-c", str(config_file), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["invocable_tools"] == ["GetSystemInfo"]

    def test_permissions_with_level(self, config_file):
        result = runner.invoke(
            app, ["permissions", "guest", "administrator", "-c", str(config_file), "--json"]
        )

        assert result.exit_code == 0
        assert len(json.loads(result.output)["invocable_tools"]) == 5

    def test_permissions_unknown_level(self, config_file):
        result = runner.invoke(app, ["permissions", "guest", "root", "-c", str(config_file)])

        assert result.exit_code == 1
        assert "Unknown permission level" in result.output


class TestQueries:
    """End-to-end query commands with the fallback model."""

    def test_ask_reads_file(self, config_file):
        result = runner.invoke(
            app, ["ask", "Please read the file notes.txt", "-c", str(config_file), "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["state"] == "done"
        assert data["is_complete"] is True
        assert data["tool_executions"][0]["data"]["lines"] == ["alpha", "beta"]
        assert data["response_text"].startswith("Based on the tool execution results:")

    def test_react_reads_file(self, config_file):
        result = runner.invoke(
            app, ["react", "Please read the file notes.txt", "-c", str(config_file), "--json"]
        )

        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["iterations"] == 2
        assert data["response_text"].startswith("Final answer:")

    def test_react_denied_for_read_level(self, config_file):
        result = runner.invoke(
            app,
            ["react", "read the file notes.txt", "-c", str(config_file), "-u", "guest", "--json"],
        )

        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["state"] == "failed"
        assert data["tool_executions"][0]["failure_kind"] == "permission_denied"
        assert data["tool_executions"][0]["error_code"] == 1001

    def test_react_zero_iterations(self, config_file):
        result = runner.invoke(
            app, ["react", "anything", "-n", "0", "-c", str(config_file), "--json"]
        )

        assert result.exit_code == 0
        assert json.loads(result.output)["tool_executions"] == []

    def test_ask_rich_output(self, config_file):
        result = runner.invoke(app, ["ask", "Please read the file notes.txt", "-c", str(config_file)])

        assert result.exit_code == 0
        assert "DONE" in result.output
        assert "Answer" in result.output

    def test_audit_persists_between_runs(self, config_file):
        runner.invoke(app, ["ask", "Please read the file notes.txt", "-c", str(config_file)])

        result = runner.invoke(app, ["audit", "-c", str(config_file), "--json"])

        assert result.exit_code == 0
        entries = json.loads(result.output)
        assert [e["tool_name"] for e in entries] == ["ReadFileContents"]
        assert entries[0]["user_id"] == "local"


class TestDoctor:
    def test_doctor_with_model_disabled(self, config_file):
        result = runner.invoke(app, ["doctor", "-c", str(config_file), "--json"])

        data = json.loads(result.output)
        checks = {check["name"]: check for check in data["checks"]}
        assert checks["Ollama"]["ok"] is True
        assert checks["Audit database"]["ok"] is True
        assert checks["Backup directory"]["message"] == "Not configured"
        assert result.exit_code == (0 if data["ok"] else 1)

    def test_invalid_config(self, temp_dir):
        bad = temp_dir / "bad.yaml"
        bad.write_text("agent:\n  max_iterations: many\n", encoding="utf-8")

        result = runner.invoke(app, ["doctor", "-c", str(bad), "--json"])

        assert result.exit_code == 1
        assert json.loads(result.output)["error_type"] == "config_error"
