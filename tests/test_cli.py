"""Tests for the CLI commands."""

from __future__ import annotations

import json
from pathlib import Path

from aioresponses import aioresponses
from click.testing import CliRunner
import pytest
from yarl import URL

from gqlens.main import cli
from tests.conftest import HTTP_URL

SOURCE = """\
import gql from "graphql-tag";

const HERO = gql`
  query Hero($id: ID!) { hero(id: $id) { name } }
`;

const BROKEN = gql`query {`;

const LIKE = gql`mutation Like { like { count } }`;
"""


@pytest.fixture
def source_file(project_dir: Path) -> Path:
    path = project_dir / "heroes.ts"
    path.write_text(SOURCE)
    return path


class TestLensesCommand:
    def test_lists_operations_and_failures(self, source_file: Path) -> None:
        runner = CliRunner()
        result = runner.invoke(cli, ["lenses", str(source_file)])
        assert result.exit_code == 0, result.output
        assert "Execute Query" in result.output
        assert "Execute Mutation" in result.output
        assert "$id: ID!" in result.output
        assert "Syntax Error" in result.output
        assert ":7:" in result.output

    def test_no_operations(self, tmp_path: Path) -> None:
        path = tmp_path / "plain.js"
        path.write_text("export const answer = 42;\n")
        result = CliRunner().invoke(cli, ["lenses", str(path)])
        assert result.exit_code == 0
        assert "No GraphQL operations found" in result.output


class TestExecuteCommand:
    def test_executes_first_operation(self, project_dir: Path, source_file: Path) -> None:
        runner = CliRunner()
        with aioresponses() as mocked:
            mocked.post(HTTP_URL, payload={"data": {"hero": {"name": "Leia"}}})
            result = runner.invoke(
                cli,
                ["execute", str(source_file), "-w", str(project_dir), "-v", "id=1000"],
                env={"TOKEN": "t"},
            )
            [call] = mocked.requests[("POST", URL(HTTP_URL))]

        assert result.exit_code == 0, result.output
        assert "Execute Query" in result.output
        assert "Leia" in result.output
        body = json.loads(call.kwargs["data"])
        assert body["operationName"] == "Hero"
        assert body["variables"] == {"id": 1000}

    def test_executes_operation_at_line(self, project_dir: Path, source_file: Path) -> None:
        with aioresponses() as mocked:
            mocked.post(HTTP_URL, payload={"data": {"like": {"count": 3}}})
            result = CliRunner().invoke(
                cli, ["execute", str(source_file), "-w", str(project_dir), "--line", "9"]
            )
        assert result.exit_code == 0, result.output
        assert "Execute Mutation" in result.output
        assert "count" in result.output

    def test_executes_operation_at_offset(self, project_dir: Path, source_file: Path) -> None:
        offset = SOURCE.index("mutation Like")
        with aioresponses() as mocked:
            mocked.post(HTTP_URL, payload={"data": {"like": {"count": 4}}})
            result = CliRunner().invoke(
                cli, ["execute", str(source_file), "-w", str(project_dir), "--offset", str(offset)]
            )
        assert result.exit_code == 0, result.output
        assert "Execute Mutation" in result.output

    def test_missing_variable_exits_nonzero(self, project_dir: Path, source_file: Path) -> None:
        result = CliRunner().invoke(cli, ["execute", str(source_file), "-w", str(project_dir)])
        assert result.exit_code == 1
        assert "Missing value for required variable(s): $id" in result.output

    def test_http_error_exits_nonzero(self, project_dir: Path, source_file: Path) -> None:
        with aioresponses() as mocked:
            mocked.post(HTTP_URL, status=500, body="boom")
            result = CliRunner().invoke(
                cli, ["execute", str(source_file), "-w", str(project_dir), "--variables", '{"id": "1"}']
            )
        assert result.exit_code == 1
        assert "HTTP 500" in result.output

    def test_no_operation_at_line(self, project_dir: Path, source_file: Path) -> None:
        result = CliRunner().invoke(cli, ["execute", str(source_file), "-w", str(project_dir), "--line", "1"])
        assert result.exit_code != 0
        assert "No executable GraphQL operation at line 1" in result.output

    def test_missing_config(self, tmp_path: Path) -> None:
        path = tmp_path / "a.ts"
        path.write_text(SOURCE)
        result = CliRunner().invoke(cli, ["execute", str(path), "-w", str(tmp_path)])
        assert result.exit_code != 0
        assert ".graphqlconfig" in result.output

    def test_bad_variables(self, project_dir: Path, source_file: Path) -> None:
        result = CliRunner().invoke(
            cli, ["execute", str(source_file), "-w", str(project_dir), "--variables", "[1]"]
        )
        assert result.exit_code == 1
        assert "JSON object" in result.output


class TestConfigCommand:
    def test_check_masks_headers(self, project_dir: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "check", "-w", str(project_dir)], env={"TOKEN": "secret"})
        assert result.exit_code == 0, result.output
        assert HTTP_URL in result.output
        assert "ws://api.test/graphql (derived)" in result.output
        assert "Authorization" in result.output
        assert "secret" not in result.output

    def test_check_without_config(self, tmp_path: Path) -> None:
        result = CliRunner().invoke(cli, ["config", "check", "-w", str(tmp_path)])
        assert result.exit_code == 1
        assert "graphql-config" in result.output


class TestDebugCommand:
    def test_reports_debug_flag(self) -> None:
        runner = CliRunner()
        assert "is in debug mode: False" in runner.invoke(cli, ["debug"]).output
        assert "is in debug mode: True" in runner.invoke(cli, ["--debug", "debug"]).output
