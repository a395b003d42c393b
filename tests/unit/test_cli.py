"""
Integration tests for CLI commands.

Tests the basic functionality of CLI commands and error handling.
"""

import pytest
from typer.testing import CliRunner

from scancore.cli import app
from scancore.core.config import ScanCoreConfig
from scancore.core.models import IndexedFile
from scancore.infrastructure.fakes import InMemoryIndexBackend
from scancore.services import create_services

runner = CliRunner()


@pytest.fixture
def backend(monkeypatch):
    """Route every CLI command to an in-memory backend."""
    fake = InMemoryIndexBackend()

    def fake_create_services(config_path=None):
        return create_services(config=ScanCoreConfig(), backend=fake)

    monkeypatch.setattr("scancore.cli.create_services", fake_create_services)
    return fake


class TestCLIHelp:
    """Test CLI help and usage information."""

    def test_main_help(self):
        """Main help should display available commands."""
        result = runner.invoke(app, ["--help"])

        assert result.exit_code == 0
        assert "window" in result.stdout
        assert "indexed" in result.stdout
        assert "index" in result.stdout
        assert "config" in result.stdout

    def test_index_help(self):
        """Index command help should display options."""
        result = runner.invoke(app, ["index", "--help"])

        assert result.exit_code == 0
        assert "--mode" in result.stdout


class TestWindowCommand:
    def test_relative_window(self):
        result = runner.invoke(app, ["window", "1w"])

        assert result.exit_code == 0
        assert "Time Window" in result.stdout
        assert "Last Week" in result.stdout

    def test_all_time_is_unbounded(self):
        result = runner.invoke(app, ["window", "all"])

        assert result.exit_code == 0
        assert "unbounded" in result.stdout

    def test_exceeds_scanned_range(self):
        result = runner.invoke(app, ["window", "all", "--scanned", "year2025"])

        assert result.exit_code == 0
        assert "rescan needed" in result.stdout

    def test_within_scanned_range(self):
        result = runner.invoke(app, ["window", "1w", "--scanned", "1m"])

        assert result.exit_code == 0
        assert "rescan needed" not in result.stdout

    def test_open_custom_range_notes_missing_start(self):
        result = runner.invoke(app, ["window", "custom", "--to", "2026-01-31"])

        assert result.exit_code == 0
        assert "no start date" in result.stdout


class TestCLIErrorHandling:
    """Test CLI error handling for invalid inputs."""

    def test_unknown_range_fails(self):
        result = runner.invoke(app, ["window", "fortnight"])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_invalid_mode_fails(self, backend):
        result = runner.invoke(app, ["index", "/d/a.pdf", "--mode", "turbo"])

        assert result.exit_code == 1
        assert backend.calls == []

    def test_missing_config_file_fails(self, tmp_path):
        result = runner.invoke(app, ["--config", str(tmp_path / "absent.yaml"), "window", "1w"])

        assert result.exit_code == 1
        assert "not found" in result.stdout


class TestIndexCommands:
    def test_index_multiple_files(self, backend):
        result = runner.invoke(app, ["index", "/d/a.pdf", "/d/b.pdf", "/e/c.pdf"])

        assert result.exit_code == 0
        assert "Indexing Summary" in result.stdout
        assert "submitted" in result.stdout
        assert len(backend.calls_to("register_directory")) == 2
        assert len(backend.calls_to("run_staged_index")) == 1

    def test_index_single_file_deep(self, backend):
        result = runner.invoke(app, ["index", "/d/a.pdf", "--mode", "deep"])

        assert result.exit_code == 0
        (call,) = backend.calls_to("run_index")
        assert call.kwargs["mode"] == "reindex"
        assert call.kwargs["indexing_mode"] == "deep"

    def test_index_failure_exits_non_zero(self, backend):
        backend.failing_methods.add("run_staged_index")

        result = runner.invoke(app, ["index", "/d/a.pdf"])

        assert result.exit_code == 1
        assert "Error" in result.stdout

    def test_indexed_lists_records(self, backend):
        backend.add_record(
            IndexedFile(id="1", path="/d/a.pdf", metadata={"chunk_strategy": "text_fine"})
        )
        backend.add_record(IndexedFile(id="2", path="/d/b.pdf", index_status="error"))

        result = runner.invoke(app, ["indexed"])

        assert result.exit_code == 0
        assert "Indexed Files (2)" in result.stdout
        assert "deep" in result.stdout
        assert "error" in result.stdout

    def test_indexed_empty(self, backend):
        result = runner.invoke(app, ["indexed"])

        assert result.exit_code == 0
        assert "No indexed files" in result.stdout

    def test_indexed_backend_unavailable(self, backend):
        backend.failing_methods.add("list_indexed_files")

        result = runner.invoke(app, ["indexed"])

        assert result.exit_code == 1
        assert "list_indexed_files failed" in result.stdout


def test_config_prints_yaml():
    result = runner.invoke(app, ["config"])

    assert result.exit_code == 0
    assert "flush_interval_ms" in result.stdout
