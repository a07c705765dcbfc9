"""Tests for the command line interface."""

import asyncio
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from swimr.cli.main import app
from swimr.config import loader
from swimr.models.batch import BatchRun, BatchRunItem
from swimr.models.enums import BatchItemStatus
from swimr.orchestration.state import RunStateStore

runner = CliRunner()


@pytest.fixture(autouse=True)
def isolated_cli(monkeypatch):
    """Ignore real config files and undo the logging setup of each command."""
    monkeypatch.setattr(loader, "CONFIG_SEARCH_PATHS", [])
    swimr_logger = logging.getLogger("swimr")
    level, handlers = swimr_logger.level, list(swimr_logger.handlers)
    yield
    swimr_logger.setLevel(level)
    swimr_logger.handlers[:] = handlers


class TestCli:
    """Tests for the swimr command."""

    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "swimr version 0.1.0" in result.output

    def test_help_lists_commands(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("batch", "resume", "retry", "status", "analyse", "reanalyse"):
            assert command in result.output

    def test_status_without_run(self, tmp_path: Path):
        result = runner.invoke(app, ["status", "--state", str(tmp_path / "state.db")])
        assert result.exit_code == 0
        assert "No batch run recorded" in result.output

    def test_status_shows_run(self, tmp_path: Path):
        """Test that the persisted run is rendered as a table."""
        state_path = tmp_path / "state.db"
        run = BatchRun(
            run_id="run-42",
            items=[
                BatchRunItem(
                    id="batch-1",
                    staged_file_id="staged-1",
                    file_name="jane.pdf",
                    status=BatchItemStatus.COMPLETED,
                ),
            ],
            active=False,
        )
        asyncio.run(RunStateStore(state_path).save_run(run))

        result = runner.invoke(app, ["status", "--state", str(state_path)])

        assert result.exit_code == 0
        assert "Batch Run run-42" in result.output
        assert "jane.pdf" in result.output
        assert "1 completed, 0 failed, 1 total" in result.output

    def test_retry_without_run_fails(self, tmp_path: Path):
        result = runner.invoke(
            app,
            ["retry", "--db", str(tmp_path / "swimr.db"), "--state", str(tmp_path / "state.db")],
        )
        assert result.exit_code == 1
        assert "No batch run to retry" in result.output

    def test_missing_file_argument(self, tmp_path: Path):
        result = runner.invoke(app, ["analyse", str(tmp_path / "missing.pdf")])
        assert result.exit_code != 0

    def test_config_file_verbosity_applies(self, tmp_path: Path):
        """Test that the config file sets verbosity when -v is not given."""
        config_path = tmp_path / "swimr.config.json"
        config_path.write_text('{"output": {"verbosity": 0}}')

        result = runner.invoke(
            app,
            ["status", "--config", str(config_path), "--state", str(tmp_path / "state.db")],
        )

        assert result.exit_code == 0
        assert logging.getLogger("swimr").level == logging.WARNING

    def test_verbose_flag_beats_config_file(self, tmp_path: Path):
        config_path = tmp_path / "swimr.config.json"
        config_path.write_text('{"output": {"verbosity": 0}}')

        result = runner.invoke(
            app,
            ["status", "-vv", "--config", str(config_path), "--state", str(tmp_path / "state.db")],
        )

        assert result.exit_code == 0
        assert logging.getLogger("swimr").level == logging.DEBUG
