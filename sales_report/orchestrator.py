import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Callable, Deque, Dict, List, Mapping, Optional, Protocol, Union

from .assembler import assemble, order_views
from .config import ReportConfig
from .context import FilterState, ReportContext, new_run_id
from .errors import RunInProgressError
from .exporter import ExportArtifact, export
from .formatter import PageSetup, format_document
from .views import AggregationView

logger = logging.getLogger(__name__)

# Finished runs kept for observation; older records are dropped.
HISTORY_LIMIT = 100


class RunState(StrEnum):
    IDLE = "idle"
    ASSEMBLING = "assembling"
    FORMATTING = "formatting"
    EXPORTING = "exporting"
    DONE = "done"
    FAILED = "failed"


class FilterSource(Protocol):
    def snapshot(self) -> FilterState: ...


ViewSource = Union[Callable[[], Mapping[str, AggregationView]], Mapping[str, AggregationView]]


@dataclass
class RunRecord:
    run_id: str
    states: List[RunState] = field(default_factory=list)
    context: Optional[ReportContext] = None
    artifact: Optional[ExportArtifact] = None
    error: Optional[str] = None
    started_at: str = field(default_factory=lambda: datetime.now().isoformat(timespec="seconds"))
    finished_at: Optional[str] = None

    @property
    def status(self) -> RunState:
        return self.states[-1] if self.states else RunState.IDLE


class ReportOrchestrator:
    """
    Runs assemble -> format -> export for one explicit "generate" trigger.
    Only one run may be active; a second trigger is rejected rather than
    interleaved. Failures end the run in ``failed`` and are re-raised to the
    caller, who decides whether to trigger again.
    """

    def __init__(
        self,
        config: ReportConfig,
        filter_source: FilterSource,
        view_source: ViewSource,
        page: PageSetup = PageSetup(),
        clock: Callable[[], date] = date.today,
        history_limit: int = HISTORY_LIMIT,
    ):
        self.config = config
        self.filter_source = filter_source
        self.view_source = view_source
        self.page = page
        self.clock = clock
        self.history: Deque[RunRecord] = deque(maxlen=history_limit)
        self._state = RunState.IDLE
        self._run_lock = threading.Lock()
        self._state_lock = threading.Lock()

    @property
    def state(self) -> RunState:
        with self._state_lock:
            return self._state

    @property
    def last_run(self) -> Optional[RunRecord]:
        with self._state_lock:
            return self.history[-1] if self.history else None

    def _transition(self, record: RunRecord, state: RunState) -> None:
        with self._state_lock:
            self._state = state
            record.states.append(state)
        logger.debug("Run %s -> %s", record.run_id, state)

    def _current_views(self) -> Mapping[str, AggregationView]:
        if callable(self.view_source):
            return self.view_source()
        return self.view_source

    def generate(self, as_of: Optional[date] = None) -> RunRecord:
        """Handle one user-initiated "generate report" action."""
        if not self._run_lock.acquire(blocking=False):
            logger.warning("Generate requested while a run is %s; rejected", self.state)
            raise RunInProgressError(f"A report run is already {self.state}.")
        record = RunRecord(run_id=new_run_id())
        try:
            return self._run(record, as_of or self.clock())
        finally:
            with self._state_lock:
                self.history.append(record)
                self._state = RunState.IDLE
            self._run_lock.release()

    def _run(self, record: RunRecord, as_of: date) -> RunRecord:
        logger.info("Report run %s started for %s", record.run_id, as_of.isoformat())
        try:
            self._transition(record, RunState.ASSEMBLING)
            # The only read of the live filters for this run.
            filters = self.filter_source.snapshot()
            record.context = ReportContext(
                filters=filters,
                view_order=tuple(self.config.view_order),
                as_of=as_of,
                run_id=record.run_id,
                title=self.config.report_title,
            )
            views = order_views(self._current_views(), self.config.view_order)
            document = assemble(views, filters)

            self._transition(record, RunState.FORMATTING)
            formatted = format_document(document, self.page)

            self._transition(record, RunState.EXPORTING)
            record.artifact = export(
                formatted,
                self.config.name_template,
                as_of,
                self.config.destination,
                context=record.context,
                write_manifest=self.config.write_manifest,
            )
            self._transition(record, RunState.DONE)
            logger.info("Report run %s done: %s", record.run_id, record.artifact.path)
            return record
        except Exception as exc:
            record.error = f"{type(exc).__name__}: {exc}"
            self._transition(record, RunState.FAILED)
            logger.error("Report run %s failed: %s", record.run_id, record.error)
            raise
        finally:
            record.finished_at = datetime.now().isoformat(timespec="seconds")

    def summary(self) -> Dict[str, int]:
        with self._state_lock:
            counts: Dict[str, int] = {}
            for record in self.history:
                counts[record.status.value] = counts.get(record.status.value, 0) + 1
            return counts
