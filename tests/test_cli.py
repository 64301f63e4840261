"""Tests for the command-line interface."""

from typer.testing import CliRunner

from career_pipeline import __version__
from career_pipeline.cli import app

runner = CliRunner()


class TestCli:

    def test_version(self):
        result = runner.invoke(app, ["version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_graph_prints_mermaid(self):
        result = runner.invoke(app, ["graph"])

        assert result.exit_code == 0
        assert "flowchart LR" in result.output
        assert "materials" in result.output

    def test_config_hides_keys(self):
        result = runner.invoke(app, ["config"])

        assert result.exit_code == 0
        assert "Fit Threshold" in result.output
        assert "sk-" not in result.output
