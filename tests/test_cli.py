"""Tests for the detail-scrape and detail-scrape-parallel entry points."""

from __future__ import annotations

import logging

import pytest

from detail_scraper import cli, config
from detail_scraper.const import DEFAULT_WORKERS
from detail_scraper.supervisor import ProcessLauncher, SupervisorReport, TaskLauncher


class FakeWorker:
    def __init__(self, worker_id, single_result=True):
        self.worker_id = worker_id
        self.single_result = single_result
        self.ran = False
        self.single = None

    async def run(self):
        self.ran = True

    async def run_single(self, game_id):
        self.single = game_id
        return self.single_result


@pytest.fixture(autouse=True)
def quiet_env(monkeypatch):
    monkeypatch.setattr(config, "WORKER_ID", None)
    monkeypatch.setattr(config, "WORKERS", None)
    monkeypatch.setattr(config, "DEBUG", False)
    monkeypatch.setattr(cli, "configure_logging", lambda debug: None)


@pytest.fixture
def built_workers(monkeypatch, engine):
    workers = []

    def build(worker_id, options, session_factory=None):
        worker = FakeWorker(worker_id)
        workers.append(worker)
        return worker

    monkeypatch.setattr(cli, "build_engine", lambda url: engine)
    monkeypatch.setattr(cli, "build_worker", build)
    return workers


class TestWorkerCount:
    @pytest.mark.parametrize("value", ["0", "21", "abc"])
    def test_out_of_range_count_is_a_usage_error(self, value, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.parse_worker_count(cli._parallel_parser(), value)

        assert exc_info.value.code == 2
        assert "between 1 and 20" in capsys.readouterr().err

    def test_explicit_count(self):
        assert cli.parse_worker_count(cli._parallel_parser(), "20") == 20

    def test_default_and_env_override(self, monkeypatch):
        parser = cli._parallel_parser()
        assert cli.parse_worker_count(parser, None) == DEFAULT_WORKERS

        monkeypatch.setattr(config, "WORKERS", "3")
        assert cli.parse_worker_count(parser, None) == 3

    @pytest.mark.parametrize("value", ["0", "50", "-3", "many"])
    def test_invalid_env_count_falls_back_to_default(self, value, monkeypatch, caplog):
        monkeypatch.setattr(config, "WORKERS", value)

        with caplog.at_level(logging.WARNING):
            count = cli.parse_worker_count(cli._parallel_parser(), None)

        assert count == DEFAULT_WORKERS
        assert "Ignoring invalid WORKERS" in caplog.text


class TestMain:
    def test_non_numeric_game_id_is_a_usage_error(self, capsys):
        with pytest.raises(SystemExit) as exc_info:
            cli.main(["gloomhaven"])

        assert exc_info.value.code == 2
        assert "Game ID must be a valid number" in capsys.readouterr().err

    def test_worker_mode_keeps_other_leases(self, built_workers, coordinator, add_games, fetch_games):
        add_games(1)
        coordinator.claim_batch("worker-1", 1)

        assert cli.main(["worker-3"]) == 0

        assert [w.worker_id for w in built_workers] == ["worker-3"]
        assert built_workers[0].ran
        assert fetch_games()[0].lease_owner == "worker-1"

    def test_worker_id_from_environment(self, monkeypatch, built_workers):
        monkeypatch.setattr(config, "WORKER_ID", "scraper-a")

        assert cli.main([]) == 0

        assert built_workers[0].worker_id == "scraper-a"

    def test_standalone_releases_all_leases_first(self, built_workers, coordinator, add_games, fetch_games):
        add_games(1)
        coordinator.claim_batch("worker-1", 1)

        assert cli.main([]) == 0

        assert fetch_games()[0].lease_owner is None
        assert built_workers[0].worker_id.startswith("worker-")
        assert built_workers[0].ran

    def test_single_game_failure_exits_non_zero(self, monkeypatch, engine):
        worker = FakeWorker("single-42", single_result=False)
        monkeypatch.setattr(cli, "build_engine", lambda url: engine)
        monkeypatch.setattr(cli, "build_worker", lambda *args: worker)

        assert cli.main(["42"]) == 1
        assert worker.single == 42


class TestMainParallel:
    @pytest.fixture
    def supervisors(self, monkeypatch, engine):
        created = []

        class FakeSupervisor:
            report = SupervisorReport(succeeded=["worker-1"])

            def __init__(self, coordinator, launcher):
                self.launcher = launcher
                self.counts = []
                created.append(self)

            async def run(self, worker_count):
                self.counts.append(worker_count)
                return self.report

        monkeypatch.setattr(cli, "build_engine", lambda url: engine)
        monkeypatch.setattr(cli, "Supervisor", FakeSupervisor)
        return created

    def test_processes_by_default(self, supervisors):
        assert cli.main_parallel(["4"]) == 0

        assert supervisors[0].counts == [4]
        assert isinstance(supervisors[0].launcher, ProcessLauncher)

    def test_single_process_uses_tasks(self, supervisors):
        assert cli.main_parallel(["--single-process"]) == 0

        assert supervisors[0].counts == [DEFAULT_WORKERS]
        assert isinstance(supervisors[0].launcher, TaskLauncher)

    def test_failed_worker_exits_non_zero(self, supervisors, monkeypatch):
        monkeypatch.setattr(
            cli.Supervisor, "report", SupervisorReport(failed={"worker-2": "code 1"})
        )

        assert cli.main_parallel(["2"]) == 1
