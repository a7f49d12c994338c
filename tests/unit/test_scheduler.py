"""
Unit tests for scheduled sync passes
"""

import json
from unittest.mock import Mock, patch

import pytest
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from hris_sync.models import SyncReport
from hris_sync.scheduler import FREQUENCIES, SyncScheduler, sync_job


@pytest.fixture
def backend():
    backend = Mock()
    backend.add_job.side_effect = lambda func, trigger, id, kwargs, replace_existing: Mock(
        id=id, trigger=trigger, kwargs=kwargs
    )
    return backend


@pytest.fixture
def scheduler(backend):
    return SyncScheduler(scheduler=backend)


def _fields(trigger: CronTrigger) -> dict[str, str]:
    return {field.name: str(field) for field in trigger.fields}


def job_func():
    pass


class TestFrequencyJobs:

    def test_daily_runs_at_midnight(self, scheduler, backend):
        scheduler.add_frequency_job(job_func, "daily", "sync")

        trigger = backend.add_job.call_args.kwargs["trigger"]
        fields = _fields(trigger)
        assert isinstance(trigger, CronTrigger)
        assert fields["hour"] == "0"
        assert fields["minute"] == "0"
        assert fields["day_of_week"] == "*"

    def test_weekly_runs_sunday(self, scheduler, backend):
        scheduler.add_frequency_job(job_func, "weekly", "sync")

        fields = _fields(backend.add_job.call_args.kwargs["trigger"])
        assert fields["day_of_week"] == "sun"
        assert fields["hour"] == "0"

    def test_monthly_runs_on_the_first(self, scheduler, backend):
        scheduler.add_frequency_job(job_func, "monthly", "sync")

        fields = _fields(backend.add_job.call_args.kwargs["trigger"])
        assert fields["day"] == "1"
        assert fields["hour"] == "0"

    def test_unknown_frequency(self, scheduler, backend):
        with pytest.raises(ValueError, match="Unknown frequency"):
            scheduler.add_frequency_job(job_func, "hourly", "sync")
        backend.add_job.assert_not_called()

    def test_kwargs_passed_to_job(self, scheduler, backend):
        scheduler.add_frequency_job(job_func, "daily", "sync", settings_path="s.json", test_only=False)

        call = backend.add_job.call_args
        assert call.kwargs["kwargs"] == {"settings_path": "s.json", "test_only": False}
        assert call.kwargs["id"] == "sync"
        assert call.kwargs["replace_existing"] is True

    def test_frequencies_known(self):
        assert set(FREQUENCIES) == {"daily", "weekly", "monthly"}


class TestOtherTriggers:

    def test_interval_job(self, scheduler, backend):
        scheduler.add_interval_job(job_func, 3600, "hourly")

        trigger = backend.add_job.call_args.kwargs["trigger"]
        assert isinstance(trigger, IntervalTrigger)
        assert trigger.interval.total_seconds() == 3600

    @pytest.mark.parametrize("seconds", [0, -5])
    def test_interval_must_be_positive(self, scheduler, seconds):
        with pytest.raises(ValueError, match="positive"):
            scheduler.add_interval_job(job_func, seconds, "bad")

    def test_cron_job(self, scheduler, backend):
        scheduler.add_cron_job(job_func, "30 2 * * mon-fri", "weekday")

        fields = _fields(backend.add_job.call_args.kwargs["trigger"])
        assert fields["minute"] == "30"
        assert fields["hour"] == "2"
        assert fields["day_of_week"] == "mon-fri"

    @pytest.mark.parametrize("expression", ["0 2 * *", "0 2 * * * *", ""])
    def test_cron_requires_five_parts(self, scheduler, expression):
        with pytest.raises(ValueError, match="5 parts"):
            scheduler.add_cron_job(job_func, expression, "bad")


class TestJobManagement:

    def test_same_id_replaces_job(self, scheduler):
        scheduler.add_frequency_job(job_func, "daily", "sync")
        scheduler.add_frequency_job(job_func, "weekly", "sync")

        assert len(scheduler.jobs) == 1

    def test_remove_job(self, scheduler, backend):
        scheduler.add_frequency_job(job_func, "daily", "sync")

        scheduler.remove_job("sync")

        backend.remove_job.assert_called_once_with("sync")
        assert scheduler.jobs == []

    def test_start_stops_on_interrupt(self, scheduler, backend):
        backend.start.side_effect = KeyboardInterrupt

        scheduler.start()

        backend.shutdown.assert_called_once()

    def test_list_jobs(self, scheduler, backend):
        job = Mock(id="sync", next_run_time=None, trigger="cron[hour='0']")
        job.name = "sync_job"
        backend.get_jobs.return_value = [job]

        assert scheduler.list_jobs() == [
            {"id": "sync", "name": "sync_job", "next_run_time": None, "trigger": "cron[hour='0']"}
        ]


class TestSyncJob:

    @patch("hris_sync.orchestrator.ReconciliationOrchestrator")
    def test_writes_json_report(self, orchestrator_class, tmp_path):
        orchestrator_class.return_value.run_full_sync.return_value = SyncReport(test=True)
        settings_file = tmp_path / "settings.json"

        path = sync_job(str(settings_file), test_only=True, output_dir=str(tmp_path / "reports"))

        assert path.parent == tmp_path / "reports"
        assert path.name.startswith("hris_sync_test_")
        assert json.loads(path.read_text())["test"] is True
        orchestrator_class.return_value.run_full_sync.assert_called_once_with(test_only=True)

    @patch("hris_sync.orchestrator.ReconciliationOrchestrator")
    def test_apply_report_name(self, orchestrator_class, tmp_path):
        orchestrator_class.return_value.run_full_sync.return_value = SyncReport(test=False)

        path = sync_job("settings.json", test_only=False, output_dir=str(tmp_path))

        assert path.name.startswith("hris_sync_apply_")

    @patch("hris_sync.orchestrator.ReconciliationOrchestrator")
    def test_failure_propagates(self, orchestrator_class, tmp_path):
        orchestrator_class.return_value.run_full_sync.side_effect = RuntimeError("directory down")

        with pytest.raises(RuntimeError, match="directory down"):
            sync_job("settings.json", output_dir=str(tmp_path))

    @patch("hris_sync.config.FileSettingsProvider")
    @patch("hris_sync.orchestrator.ReconciliationOrchestrator")
    def test_vault_flag_reaches_settings_provider(self, orchestrator_class, provider_class, tmp_path):
        orchestrator_class.return_value.run_full_sync.return_value = SyncReport(test=True)

        sync_job("settings.json", output_dir=str(tmp_path), use_vault=True)

        provider_class.assert_called_once_with("settings.json", use_vault=True)
        orchestrator_class.assert_called_once_with(provider_class.return_value)

    @patch("hris_sync.config.FileSettingsProvider")
    @patch("hris_sync.orchestrator.ReconciliationOrchestrator")
    def test_vault_off_by_default(self, orchestrator_class, provider_class, tmp_path):
        orchestrator_class.return_value.run_full_sync.return_value = SyncReport(test=True)

        sync_job("settings.json", output_dir=str(tmp_path))

        provider_class.assert_called_once_with("settings.json", use_vault=False)
