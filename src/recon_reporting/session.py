"""
Report session and export orchestration.

A ReportSession owns the last successfully produced ReconciliationResult
together with the current filter, section and header choices. Exports run as
ExportTask objects: generators that pause between the analyze, format,
layout and finalize phases to report progress and to honour cancellation.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Iterator, Optional
import logging
import time

from .analytics.aggregation import DashboardView, build_dashboard
from .analytics.filters import (
    FilterCriteria,
    FilteredResult,
    Page,
    StatusFilter,
    apply_filters,
    paginate,
    select_status,
)
from .config import ReportingConfig
from .ingestion import SourceDocument
from .matching.service import MatchingRequest, MatchingService, ProcessingMode
from .models.schema import parse_result
from .models.transaction import ReconciliationResult
from .reports import (
    ExportArtifact,
    ExportFormat,
    ReportHeader,
    ReportRenderer,
    SectionSelection,
    get_renderer,
)
from .utils.exceptions import (
    ExportCancelledError,
    ExportInProgressError,
    NothingSelectedError,
    ReconciliationError,
    ReportGenerationError,
)

logger = logging.getLogger(__name__)


class ExportPhase(Enum):
    ANALYZE = "analyze"
    FORMAT = "format"
    LAYOUT = "layout"
    FINALIZE = "finalize"
    DONE = "done"


class TaskState(Enum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


PHASE_MILESTONES = {
    ExportPhase.ANALYZE: (5, "Analyzing reconciliation data..."),
    ExportPhase.FORMAT: (25, "Formatting statement tables..."),
    ExportPhase.LAYOUT: (50, "Generating report pages..."),
    ExportPhase.FINALIZE: (75, "Finalizing {format} output..."),
    ExportPhase.DONE: (100, "Export complete"),
}


@dataclass(frozen=True)
class ExportProgress:
    """Progress milestone emitted at a phase boundary."""

    phase: ExportPhase
    percent: int
    message: str


ProgressCallback = Callable[[ExportProgress], None]


class ExportTask:
    """
    One export, run phase by phase.

    Iterate over steps() to observe progress; call cancel() (or close the
    generator) to abandon it. Cancellation takes effect at the next phase
    boundary and no artifact is produced.
    """

    def __init__(
        self,
        session: "ReportSession",
        renderer: ReportRenderer,
        result: ReconciliationResult,
        criteria: FilterCriteria,
        selection: SectionSelection,
        header: ReportHeader,
        on_progress: Optional[ProgressCallback] = None,
        step_delay: float = 0.0,
    ):
        self._session = session
        self.renderer = renderer
        self.result = result
        self.criteria = criteria
        self.selection = selection
        self.header = header
        self.on_progress = on_progress
        self.step_delay = step_delay

        self.state = TaskState.PENDING
        self.artifact: Optional[ExportArtifact] = None
        self.error: Optional[ReconciliationError] = None
        self._cancel_requested = False

    @property
    def export_format(self) -> ExportFormat:
        return self.renderer.format

    @property
    def is_finished(self) -> bool:
        return self.state in (TaskState.COMPLETED, TaskState.CANCELLED, TaskState.FAILED)

    def cancel(self) -> None:
        """Ask the task to stop at the next phase boundary."""
        if self.is_finished:
            return
        logger.info(f"Cancellation requested for {self.export_format.value} export")
        self._cancel_requested = True
        if self.state is TaskState.PENDING:
            # Never started, so there is no boundary left to observe the request
            self._abandon()
            self._session._release(self)

    def run(self) -> ExportArtifact:
        """Run every phase and return the artifact."""
        for _ in self.steps():
            pass
        if self.artifact is None:
            raise ReportGenerationError("Export finished without an artifact")
        return self.artifact

    def steps(self) -> Iterator[ExportProgress]:
        """
        Execute the export, yielding progress between phases.

        Raises:
            ExportCancelledError: If cancelled before completion
            NothingSelectedError: If no section is selected
            ReportGenerationError: If rendering fails
        """
        if self.state is not TaskState.PENDING:
            raise ReconciliationError(f"Export task already {self.state.value}")
        self.state = TaskState.RUNNING
        renderer = self.renderer
        logger.info(f"Starting {self.export_format.value} export for {self.header.company_name}")

        try:
            yield from self._boundary(ExportPhase.ANALYZE)
            filtered = apply_filters(self.result, self.criteria)
            content = renderer.analyze(filtered, self.selection, self.header)

            yield from self._boundary(ExportPhase.FORMAT)
            tables = renderer.format_sections(content)

            yield from self._boundary(ExportPhase.LAYOUT)
            laid_out = renderer.layout(content, tables)

            yield from self._boundary(ExportPhase.FINALIZE)
            data = renderer.finalize(content, laid_out)

            self.artifact = ExportArtifact(
                filename=renderer.filename(self.header),
                content=data,
                media_type=renderer.media_type,
            )
            self.state = TaskState.COMPLETED
            self._session._release(self)
            logger.info(f"Export ready: {self.artifact.filename} ({len(data)} bytes)")
            yield self._progress(ExportPhase.DONE)

        except GeneratorExit:
            # Consumer closed the view mid-export
            if self.state is TaskState.RUNNING:
                self._abandon()
            raise
        except ExportCancelledError as e:
            self._abandon()
            self.error = e
            raise
        except ReconciliationError as e:
            self._fail(e)
            raise
        except Exception as e:
            error = ReportGenerationError(
                f"Failed to generate {self.export_format.value} report: {e}"
            )
            self._fail(error)
            raise error from e
        finally:
            self._session._release(self)

    def _boundary(self, phase: ExportPhase) -> Iterator[ExportProgress]:
        self._check_cancelled()
        yield self._progress(phase)
        self._check_cancelled()
        if self.step_delay:
            time.sleep(self.step_delay)

    def _progress(self, phase: ExportPhase) -> ExportProgress:
        percent, message = PHASE_MILESTONES[phase]
        event = ExportProgress(
            phase, percent, message.format(format=self.export_format.value.upper())
        )
        logger.debug(f"Export phase {phase.value}: {event.percent}%")
        if self.on_progress:
            self.on_progress(event)
        return event

    def _check_cancelled(self) -> None:
        if self._cancel_requested:
            raise ExportCancelledError("Export cancelled before completion")

    def _abandon(self) -> None:
        self.state = TaskState.CANCELLED
        self.artifact = None
        logger.info(f"{self.export_format.value} export abandoned; nothing was produced")

    def _fail(self, error: ReconciliationError) -> None:
        self.state = TaskState.FAILED
        self.artifact = None
        self.error = error
        logger.error(f"{self.export_format.value} export failed: {error}")


class ReportSession:
    """
    Holds the current reconciliation result and the user's report choices.

    The result is replaced only by a successful load; failed loads, failed
    matcher calls and failed exports leave the previous result in place.
    """

    def __init__(self, config: ReportingConfig, result: Optional[ReconciliationResult] = None):
        self.config = config
        self._result = result
        self.criteria = FilterCriteria()
        self.selection = SectionSelection.from_config(config.export.sections)
        self.company_name = config.report.company_name
        self.as_at_date = config.report.as_at_date
        self._active_task: Optional[ExportTask] = None

    @property
    def result(self) -> Optional[ReconciliationResult]:
        return self._result

    @property
    def has_result(self) -> bool:
        return self._result is not None

    @property
    def export_in_progress(self) -> bool:
        return self._active_task is not None

    def _require_result(self) -> ReconciliationResult:
        if self._result is None:
            raise ReconciliationError("No reconciliation result loaded")
        return self._result

    def load_result(self, result: ReconciliationResult) -> None:
        self._result = result
        logger.info(f"Session result replaced ({result.total_items} records)")

    def load_payload(self, payload: Any) -> ReconciliationResult:
        """Validate a raw payload and make it the current result."""
        result = parse_result(payload)
        self.load_result(result)
        return result

    def reconcile(
        self,
        service: MatchingService,
        bank: SourceDocument,
        ledger: SourceDocument,
        mode: ProcessingMode = ProcessingMode.FAST,
    ) -> ReconciliationResult:
        """
        Ask the matching service for a new result.

        Raises:
            MatchingServiceError: On service failure; the old result stays
        """
        request = MatchingRequest(
            bank_document=bank.to_payload(),
            ledger_document=ledger.to_payload(),
            mode=mode,
        )
        result = service.run(request)
        self.load_result(result)
        return result

    def reset(self) -> None:
        """Discard the result and restore default report choices."""
        self._result = None
        self.criteria = FilterCriteria()
        self.selection = SectionSelection.from_config(self.config.export.sections)
        logger.info("Session reset")

    def set_filters(self, criteria: FilterCriteria) -> None:
        self.criteria = criteria

    def set_sections(self, selection: SectionSelection) -> None:
        self.selection = selection

    def set_header(self, company_name: Optional[str] = None, as_at_date: Optional[str] = None) -> None:
        if company_name is not None:
            self.company_name = company_name
        if as_at_date is not None:
            self.as_at_date = as_at_date

    def header(self, generated_at: Optional[datetime] = None) -> ReportHeader:
        base = ReportHeader.from_config(self.config, generated_at)
        return replace(base, company_name=self.company_name, as_at_date=self.as_at_date)

    def dashboard(self) -> DashboardView:
        return build_dashboard(self._require_result(), self.config.dashboard.top_n)

    def filtered(self, status: StatusFilter = StatusFilter.ALL) -> FilteredResult:
        return select_status(apply_filters(self._require_result(), self.criteria), status)

    def table_page(
        self, status: StatusFilter, page: int = 1, page_size: int = 25
    ) -> Page:
        """One page of the combined table view, matches first."""
        view = self.filtered(status)
        rows = list(view.matches) + list(view.unmatched_bank) + list(view.unmatched_ledger)
        return paginate(rows, page, page_size)

    def start_export(
        self,
        export_format: ExportFormat,
        on_progress: Optional[ProgressCallback] = None,
        step_delay: float = 0.0,
        generated_at: Optional[datetime] = None,
    ) -> ExportTask:
        """
        Create the session's export task.

        Raises:
            NothingSelectedError: If every section is deselected
            ExportInProgressError: If another export has not finished
        """
        result = self._require_result()
        if not self.selection.any_selected:
            raise NothingSelectedError()
        if self._active_task is not None:
            raise ExportInProgressError(
                f"A {self._active_task.export_format.value} export is already in progress"
            )

        task = ExportTask(
            session=self,
            renderer=get_renderer(export_format, self.config),
            result=result,
            criteria=self.criteria,
            selection=self.selection,
            header=self.header(generated_at),
            on_progress=on_progress,
            step_delay=step_delay,
        )
        self._active_task = task
        return task

    def export(
        self,
        export_format: ExportFormat,
        output_dir: Optional[Path] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ExportArtifact:
        """Run an export to completion and optionally save it."""
        artifact = self.start_export(export_format, on_progress=on_progress).run()
        if output_dir is not None:
            artifact.save(output_dir)
        return artifact

    def _release(self, task: ExportTask) -> None:
        if self._active_task is task:
            self._active_task = None
