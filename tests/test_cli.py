"""
Tests for the Supabase Migrator CLI.

The orchestrator is replaced by a stub returning a prepared session, so
these tests cover option handling, summaries and exit codes only.
"""

import importlib
import json

import pytest
import yaml
from click.testing import CliRunner

from supabase_migrator import __version__
from supabase_migrator.cli.main import main
from supabase_migrator.core.exceptions import ProcessError
from supabase_migrator.models.session import MigrationSession, Stage, StageResult, STAGE_ORDER

from conftest import DEST_DB_URL, DEST_URL, SOURCE_DB_URL, SOURCE_URL

# The package re-exports the click group under the module name
cli_module = importlib.import_module("supabase_migrator.cli.main")


def _session(failed_ids=(), abort_at=None):
    session = MigrationSession(id="run-1", stages=[StageResult(stage=stage) for stage in STAGE_ORDER])
    session.start()
    if abort_at is not None:
        error = ProcessError("Command exited with status 1", command="supabase db dump")
        session.get_stage(abort_at).start()
        session.get_stage(abort_at).fail(error)
        session.abort(abort_at, error)
        return session

    for result in session.stages:
        result.start()
        result.complete()
    session.transfer_report = {
        "total": 3,
        "succeeded": 3 - len(failed_ids),
        "failed_count": len(failed_ids),
        "total_bytes": 30,
        "buckets_created": [],
        "start_time": None,
        "end_time": None,
        "failed": [
            {"object_id": object_id, "bucket_id": "docs", "name": f"{object_id}.txt",
             "status": "failed", "phase": "upload", "reason": "Upload failed"}
            for object_id in failed_ids
        ],
    }
    session.complete()
    return session


class StubOrchestrator:
    """Stands in for MigrationOrchestrator and records how it was run."""

    session = None
    instances = []

    def __init__(self, config):
        self.config = config
        self.stages = None
        self.object_ids = None
        StubOrchestrator.instances.append(self)

    def add_progress_callback(self, callback):
        pass

    def set_transfer_progress_callback(self, callback):
        pass

    async def run(self, stages=None, object_ids=None, run_id=None):
        self.stages = list(stages)
        self.object_ids = object_ids
        return StubOrchestrator.session


@pytest.fixture
def stub_orchestrator(monkeypatch):
    StubOrchestrator.session = _session()
    StubOrchestrator.instances = []
    monkeypatch.setattr(cli_module, "MigrationOrchestrator", StubOrchestrator)
    return StubOrchestrator


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "migration.yaml"
    path.write_text(yaml.safe_dump({
        "source": {"url": SOURCE_URL, "service_key": "s", "db_url": SOURCE_DB_URL},
        "destination": {"url": DEST_URL, "service_key": "d", "db_url": DEST_DB_URL},
    }))
    return str(path)


class TestCLI:
    """Test CLI functionality."""

    def setup_method(self):
        """Set up test fixtures."""
        self.runner = CliRunner()

    def test_main_command_without_subcommand(self):
        result = self.runner.invoke(main, [])
        assert result.exit_code == 0
        assert "Supabase Migrator" in result.output
        assert "Use --help to see available commands" in result.output
        assert "supabase-migrator migrate" in result.output

    def test_version_flag(self):
        result = self.runner.invoke(main, ['--version'])
        assert result.exit_code == 0
        assert f"Supabase Migrator version {__version__}" in result.output

    def test_help_lists_commands(self):
        result = self.runner.invoke(main, ['--help'])
        assert result.exit_code == 0
        assert "migrate" in result.output
        assert "storage" in result.output

    def test_invalid_config_exits_with_error(self, tmp_path, stub_orchestrator):
        path = tmp_path / "broken.yaml"
        path.write_text("source: {}\n")

        result = self.runner.invoke(main, ['migrate', '-c', str(path)])

        assert result.exit_code == 1
        assert "Configuration error" in result.output
        assert stub_orchestrator.instances == []


class TestMigrateCommand:
    """Test the migrate command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_successful_migration(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['migrate', '-c', config_file])

        assert result.exit_code == 0, result.output
        assert stub_orchestrator.instances[0].stages == list(Stage)
        assert "Migration completed successfully!" in result.output

    def test_skip_option(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['migrate', '-c', config_file,
                                           '--skip', 'secret_migration', '--skip', 'object_transfer'])

        assert result.exit_code == 0, result.output
        assert stub_orchestrator.instances[0].stages == [
            Stage.BACKUP, Stage.RESTORE, Stage.HISTORY_MIGRATION
        ]

    def test_invalid_skip_value(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['migrate', '-c', config_file, '--skip', 'teleport'])

        assert result.exit_code == 2
        assert stub_orchestrator.instances == []

    def test_aborted_run_exits_1(self, config_file, stub_orchestrator):
        stub_orchestrator.session = _session(abort_at=Stage.RESTORE)

        result = self.runner.invoke(main, ['migrate', '-c', config_file])

        assert result.exit_code == 1
        assert "Migration aborted" in result.output

    def test_object_failures_exit_0_without_strict(self, config_file, stub_orchestrator):
        stub_orchestrator.session = _session(failed_ids=["obj-2"])

        result = self.runner.invoke(main, ['migrate', '-c', config_file])

        assert result.exit_code == 0
        assert "obj-2" in result.output

    def test_object_failures_exit_2_with_strict(self, config_file, stub_orchestrator):
        stub_orchestrator.session = _session(failed_ids=["obj-2"])

        result = self.runner.invoke(main, ['migrate', '-c', config_file, '--strict'])

        assert result.exit_code == 2

    def test_report_file(self, config_file, stub_orchestrator, tmp_path):
        stub_orchestrator.session = _session(failed_ids=["obj-2"])
        report = tmp_path / "report.json"

        result = self.runner.invoke(main, ['migrate', '-c', config_file, '--report', str(report)])

        assert result.exit_code == 0
        data = json.loads(report.read_text())
        assert data["state"] == "completed"
        assert data["object_transfer"]["failed"][0]["object_id"] == "obj-2"


class TestStorageCommand:
    """Test the storage command."""

    def setup_method(self):
        self.runner = CliRunner()

    def test_runs_only_object_transfer(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['storage', '-c', config_file])

        assert result.exit_code == 0, result.output
        orchestrator = stub_orchestrator.instances[0]
        assert orchestrator.stages == [Stage.OBJECT_TRANSFER]
        assert orchestrator.object_ids is None

    def test_concurrency_option(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['storage', '-c', config_file, '--concurrency', '8'])

        assert result.exit_code == 0, result.output
        assert stub_orchestrator.instances[0].config.storage.max_concurrency == 8

    def test_concurrency_out_of_range(self, config_file, stub_orchestrator):
        result = self.runner.invoke(main, ['storage', '-c', config_file, '--concurrency', '0'])

        assert result.exit_code == 2

    def test_retry_failed_objects(self, config_file, stub_orchestrator, tmp_path):
        previous = tmp_path / "previous.json"
        previous.write_text(json.dumps({
            "object_transfer": {"failed": [{"object_id": "obj-2"}, {"object_id": "obj-7"}]}
        }))

        result = self.runner.invoke(main, ['storage', '-c', config_file, '--retry-failed', str(previous)])

        assert result.exit_code == 0, result.output
        assert "Retrying 2 failed objects" in result.output
        assert stub_orchestrator.instances[0].object_ids == ["obj-2", "obj-7"]

    def test_retry_with_nothing_failed(self, config_file, stub_orchestrator, tmp_path):
        previous = tmp_path / "previous.json"
        previous.write_text(json.dumps({"object_transfer": {"failed": []}}))

        result = self.runner.invoke(main, ['storage', '-c', config_file, '--retry-failed', str(previous)])

        assert result.exit_code == 0
        assert "nothing to retry" in result.output
        assert stub_orchestrator.instances == []

    def test_retry_with_unreadable_report(self, config_file, stub_orchestrator, tmp_path):
        previous = tmp_path / "previous.json"
        previous.write_text("not json")

        result = self.runner.invoke(main, ['storage', '-c', config_file, '--retry-failed', str(previous)])

        assert result.exit_code == 1
        assert stub_orchestrator.instances == []

    def test_retry_with_report_that_is_not_an_object(self, config_file, stub_orchestrator, tmp_path):
        previous = tmp_path / "previous.json"
        previous.write_text("[1, 2]")

        result = self.runner.invoke(main, ['storage', '-c', config_file, '--retry-failed', str(previous)])

        assert result.exit_code == 1
        assert result.exception is None or isinstance(result.exception, SystemExit)
        assert stub_orchestrator.instances == []
