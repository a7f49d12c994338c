"""
One reconciliation pass, end to end.

A pass reloads settings, reads both populations concurrently, matches
them as a batch, then diffs and (in apply mode) writes each matched record
on a bounded worker pool. Anything that fails before the first write
aborts the pass; anything that fails for one record is logged, recorded in
SyncReport.errors and skipped.
"""

import time
import uuid
from concurrent.futures import FIRST_EXCEPTION, ThreadPoolExecutor, as_completed, wait
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Callable, Iterable

from opentelemetry import trace

from sync_utils.logging import ContextLogger
from sync_utils.tracing import add_span_attributes, trace_operation

from .config import DirectorySettings, HrisDatabaseSettings, SettingsProvider, SyncSettings
from .diff import DiffEngine, ManagerPathResolver
from .directory import LdapDirectoryAdapter, department_container_path
from .directory.adapter import split_path
from .errors import ExtractionError, ExtractionTimeoutError, PassAbortedError
from .matching import IdentityMatcher
from .metrics import SYNC_MATCHES, SYNC_PASS_DURATION, SYNC_PASSES, SYNC_RECORDS
from .models import (
    DEPARTMENT,
    EMPLOYEE_ID,
    GENDER,
    DirectoryEntry,
    MatchedPair,
    MatchMethod,
    RecordFailure,
    SourceRecord,
    SyncAction,
    SyncReport,
    SyncResult,
)
from .report import write_comparison_csv

MODE_TEST = "test"
MODE_FULL = "full"
MODE_SELECTED = "selected"


class ReconciliationOrchestrator:
    """
    Runs sync passes against the HR database and the directory.

    Args:
        settings_provider: Called once at the start of every pass
        extractor_factory: Builds the HR extractor from HrisDatabaseSettings
        directory_factory: Builds the directory adapter from DirectorySettings
    """

    def __init__(
        self,
        settings_provider: SettingsProvider,
        extractor_factory: Callable[[HrisDatabaseSettings], Any] | None = None,
        directory_factory: Callable[[DirectorySettings], Any] | None = None,
    ):
        from .source import HrisExtractor

        self.settings_provider = settings_provider
        self.extractor_factory = extractor_factory or HrisExtractor
        self.directory_factory = directory_factory or LdapDirectoryAdapter

    # Entry points

    def run_full_sync(self, test_only: bool = True) -> SyncReport:
        """
        Reconcile the whole staff population.

        With ``test_only`` (the default) diffs are computed and reported but
        nothing is written.

        Raises:
            PassAbortedError: Extraction or directory search failed
            ConfigurationError: Settings could not be loaded
        """
        return self._run(MODE_TEST if test_only else MODE_FULL, scope=None)

    def run_selected_sync(self, employee_ids: Iterable[str]) -> SyncReport:
        """
        Reconcile and apply only the given employees.

        Ids not present in the HR population are skipped without error.
        """
        scope = {eid.strip() for eid in employee_ids if eid and eid.strip()}
        return self._run(MODE_SELECTED, scope=scope)

    def export_comparison_report(self, path: str | Path) -> Path:
        """Write the HR vs directory attribute join for manual audit."""
        settings = self.settings_provider()
        log = ContextLogger(__name__, pass_id=uuid.uuid4().hex[:8], mode="export")
        with trace_operation("sync_export_comparison", kind=trace.SpanKind.INTERNAL):
            records, entries = self._extract(settings, log)
            output = write_comparison_csv(records, entries, path)
        log.info(f"Comparison report written to {output} ({len(records)} HR records)")
        return output

    def query_directory_users(self) -> list[DirectoryEntry]:
        """Read-only listing of every directory user under the base path."""
        settings = self.settings_provider()
        return self.directory_factory(settings.directory).list_users()

    # Pass

    def _run(self, mode: str, scope: set[str] | None) -> SyncReport:
        settings = self.settings_provider()
        test_only = mode == MODE_TEST
        log = ContextLogger(__name__, pass_id=uuid.uuid4().hex[:8], mode=mode)

        started_at = datetime.now(UTC)
        start = time.monotonic()
        log.info(f"Starting {mode} sync pass")

        try:
            with trace_operation("sync_pass", kind=trace.SpanKind.INTERNAL, mode=mode):
                with SYNC_PASS_DURATION.labels(mode=mode).time():
                    report = self._reconcile(settings, mode, scope, log)
        except PassAbortedError as e:
            SYNC_PASSES.labels(mode=mode, outcome="aborted").inc()
            log.error(f"Sync pass aborted: {e}", error_type=type(e).__name__)
            raise

        SYNC_PASSES.labels(mode=mode, outcome="completed").inc()
        report.started_at = started_at
        report.duration_seconds = round(time.monotonic() - start, 3)
        log.info(
            f"Sync pass finished: {len(report.results)} results, "
            f"{len(report.errors)} errors, {len(report.unmatched)} unmatched "
            f"in {report.duration_seconds}s"
        )
        return report

    def _extract(
        self, settings: SyncSettings, log: ContextLogger
    ) -> tuple[list[SourceRecord], list[DirectoryEntry]]:
        """Read both populations in parallel; both must finish before matching."""
        extractor = self.extractor_factory(settings.hris)
        directory = self.directory_factory(settings.directory)

        executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="extract")
        try:
            source_future = executor.submit(extractor.fetch_employees)
            directory_future = executor.submit(directory.list_users)
            futures = [source_future, directory_future]

            done, pending = wait(futures, timeout=settings.extraction_timeout, return_when=FIRST_EXCEPTION)

            for future in futures:
                if future in done and future.exception() is not None:
                    error = future.exception()
                    if isinstance(error, PassAbortedError):
                        raise error
                    raise ExtractionError(f"Extraction failed: {error}") from error

            if pending:
                raise ExtractionTimeoutError(
                    f"Extraction did not finish within {settings.extraction_timeout}s"
                )

            records, entries = source_future.result(), directory_future.result()
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        log.info(f"Extracted {len(records)} HR records and {len(entries)} directory entries")
        return records, entries

    def _reconcile(
        self,
        settings: SyncSettings,
        mode: str,
        scope: set[str] | None,
        log: ContextLogger,
    ) -> SyncReport:
        records, entries = self._extract(settings, log)

        # Match the whole population so entries owned by employees outside
        # the scope are claimed before fuzzy matching
        pairs = IdentityMatcher(settings.matching).match(records, entries)

        if scope is not None:
            pairs = [p for p in pairs if p.source.employee_id in scope]
            log.info(f"Selected {len(pairs)} of {len(scope)} requested employees")

        report = SyncReport(test=mode == MODE_TEST)
        matched = []
        for pair in pairs:
            SYNC_MATCHES.labels(method=pair.method.value).inc()
            if pair.is_matched:
                matched.append(pair)
            else:
                report.unmatched.append(pair.source.employee_id or "")
                SYNC_RECORDS.labels(outcome="unmatched").inc()

        add_span_attributes(
            source_count=len(records),
            directory_count=len(entries),
            matched_count=len(matched),
        )

        directory = self.directory_factory(settings.directory)
        resolver = ManagerPathResolver(directory.resolve_path_by_employee_id)
        engine = DiffEngine(resolver, case_sensitive=settings.case_sensitive_compare)
        processor = RecordProcessor(directory, engine, mode, settings.directory.base_path, log, resolver)

        with ThreadPoolExecutor(max_workers=settings.max_workers, thread_name_prefix="sync") as executor:
            futures = {executor.submit(processor.process, pair): pair for pair in matched}
            for future in as_completed(futures):
                results, failure = future.result()
                if failure is not None:
                    report.errors.append(failure)
                    SYNC_RECORDS.labels(outcome="failed").inc()
                elif results:
                    report.results.extend(results)
                    SYNC_RECORDS.labels(outcome="synced").inc()
                else:
                    SYNC_RECORDS.labels(outcome="unchanged").inc()

        report.results.sort(key=lambda r: (r.employee_id or "", r.action.value))
        report.errors.sort(key=lambda f: f.employee_id or "")
        report.unmatched.sort()
        return report


class RecordProcessor:
    """
    Diff and write one matched pair.

    ``process`` never raises: a failure comes back as a RecordFailure so a
    single bad record cannot stop the pool.
    """

    def __init__(
        self,
        directory: Any,
        engine: DiffEngine,
        mode: str,
        base_path: str,
        log: ContextLogger,
        resolver: ManagerPathResolver | None = None,
    ):
        self.directory = directory
        self.engine = engine
        self.resolver = resolver
        self.mode = mode
        self.base_path = base_path
        self.log = log

    @property
    def test_only(self) -> bool:
        return self.mode == MODE_TEST

    def _action(self, repair: bool) -> SyncAction:
        if self.test_only:
            return SyncAction.TEST
        if repair:
            return SyncAction.ID_REASSIGNED
        return SyncAction.ATTRIBUTE_UPDATE if self.mode == MODE_SELECTED else SyncAction.UPDATED

    def process(self, pair: MatchedPair) -> tuple[list[SyncResult], RecordFailure | None]:
        record = pair.source
        log = self.log.bind(employee_id=record.employee_id)
        applied: list[str] = []
        try:
            return self._process(pair, log, applied), None
        except Exception as e:
            note = f" (already applied: {', '.join(applied)})" if applied else ""
            log.error(
                f"Failed to sync {record.employee_id} at {pair.entry.unique_path}: {e}{note}",
                exc_info=True,
            )
            return [], RecordFailure(
                employee_id=record.employee_id,
                error=f"{e}{note}",
                type=type(e).__name__,
            )

    def _process(self, pair: MatchedPair, log: ContextLogger, applied: list[str]) -> list[SyncResult]:
        record, entry = pair.source, pair.entry
        path = entry.unique_path
        display_name = entry.display_name or entry.common_name or record.full_name or ""
        results = []

        if pair.method is MatchMethod.FUZZY_NAME:
            repair = self.engine.identity_repair_diff(record, entry)
            if repair:
                if not self.test_only:
                    self.directory.apply_attribute_changes(path, repair)
                    applied.append("identity repair")
                results.append(
                    SyncResult(
                        employee_id=record.employee_id,
                        display_name=display_name,
                        unique_path=path,
                        current={
                            EMPLOYEE_ID: entry.employee_id or "",
                            GENDER: entry.gender or "",
                        },
                        diffs=repair,
                        action=self._action(repair=True),
                        match_method=pair.method,
                    )
                )
                log.info(f"Identity repair for {path}: {repair}")

        diff = self.engine.compute_diff(record, entry)
        if diff:
            if not self.test_only:
                self.directory.apply_attribute_changes(path, diff)
                applied.append("attributes")
                if DEPARTMENT in diff:
                    new_parent = department_container_path(diff[DEPARTMENT], self.base_path)
                    self.directory.relocate_entry(path, new_parent)
                    applied.append("relocation")
                    if self.resolver is not None and record.employee_id:
                        # Reports processed later in the pass must reference the new path
                        rdn, _ = split_path(path)
                        self.resolver.moved(record.employee_id, path, f"{rdn},{new_parent}")
            results.append(
                SyncResult(
                    employee_id=record.employee_id,
                    display_name=display_name,
                    unique_path=path,
                    current=entry.snapshot(),
                    diffs=diff,
                    action=self._action(repair=False),
                    match_method=pair.method,
                )
            )
            log.info(f"Attribute diff for {path}: {diff}")

        return results
