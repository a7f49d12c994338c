"""
Unit tests for sync pass metrics
"""

import importlib

import pytest
from prometheus_client import REGISTRY

from hris_sync import metrics
from hris_sync.config import StaticSettingsProvider
from hris_sync.errors import ExtractionError
from hris_sync.orchestrator import ReconciliationOrchestrator


def _value(name, **labels):
    return REGISTRY.get_sample_value(name, labels) or 0.0


def test_reimport_reuses_registered_collectors():
    before = metrics.SYNC_PASSES

    reloaded = importlib.reload(metrics)

    assert reloaded.SYNC_PASSES is before


def test_completed_pass_counted(orchestrator, fake_directory, fake_extractor, record_factory, entry_factory):
    fake_extractor.records = [record_factory(position_title="Senior Engineer")]
    fake_directory.add(entry_factory(employee_id="MTI123456", title="Engineer"))
    passes = _value("hris_sync_passes_total", mode="test", outcome="completed")
    synced = _value("hris_sync_records_total", outcome="synced")
    by_id = _value("hris_sync_matches_total", method="exact-key")

    orchestrator.run_full_sync(test_only=True)

    assert _value("hris_sync_passes_total", mode="test", outcome="completed") == passes + 1
    assert _value("hris_sync_records_total", outcome="synced") == synced + 1
    assert _value("hris_sync_matches_total", method="exact-key") == by_id + 1


def test_aborted_pass_counted(sync_settings, fake_extractor, fake_directory):
    fake_directory.list_error = RuntimeError("directory unreachable")
    orchestrator = ReconciliationOrchestrator(
        StaticSettingsProvider(sync_settings),
        extractor_factory=lambda s: fake_extractor,
        directory_factory=lambda s: fake_directory,
    )
    aborted = _value("hris_sync_passes_total", mode="full", outcome="aborted")

    with pytest.raises(ExtractionError):
        orchestrator.run_full_sync(test_only=False)

    assert _value("hris_sync_passes_total", mode="full", outcome="aborted") == aborted + 1


def test_unmatched_counted(orchestrator, fake_extractor, record_factory):
    fake_extractor.records = [record_factory(employee_id="MTI999999", full_name="Nobody Known")]
    unmatched = _value("hris_sync_records_total", outcome="unmatched")

    orchestrator.run_full_sync(test_only=True)

    assert _value("hris_sync_records_total", outcome="unmatched") == unmatched + 1
