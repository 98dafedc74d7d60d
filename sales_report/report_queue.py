import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Optional

from .errors import RunInProgressError
from .orchestrator import ReportOrchestrator, RunRecord

# Finished jobs kept for lookup; the oldest are evicted past this count.
MAX_FINISHED_JOBS = 50
FINISHED_STATUSES = ("completed", "failed")


@dataclass
class ReportJob:
    id: str
    as_of: Optional[date] = None
    status: str = "submitted"
    record: Optional[RunRecord] = None
    result_path: Optional[str] = None
    error: Optional[str] = None
    future: Optional[Future] = field(default=None, repr=False)


class ReportQueue:
    """
    Queues generate triggers so the dashboard does not block while a PDF is
    written. A single worker runs them one after another, so two runs never
    interleave.
    """

    def __init__(self, orchestrator: ReportOrchestrator, max_finished: int = MAX_FINISHED_JOBS):
        self.orchestrator = orchestrator
        self.executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="report")
        self.jobs: Dict[str, ReportJob] = {}
        self.max_finished = max_finished
        self.lock = threading.Lock()

    def submit(self, as_of: Optional[date] = None) -> str:
        job_id = uuid.uuid4().hex[:12]
        job = ReportJob(id=job_id, as_of=as_of, status="queued")
        with self.lock:
            self._evict_finished()
            self.jobs[job_id] = job
        job.future = self.executor.submit(self._run_job, job_id)
        return job_id

    def _evict_finished(self) -> None:
        # Callers hold self.lock. Queued and running jobs are never evicted.
        finished = [job_id for job_id, job in self.jobs.items() if job.status in FINISHED_STATUSES]
        for job_id in finished[: max(0, len(finished) - self.max_finished)]:
            del self.jobs[job_id]

    def _run_job(self, job_id: str) -> None:
        with self.lock:
            job = self.jobs[job_id]
            job.status = "running"
        try:
            record = self.orchestrator.generate(as_of=job.as_of)
            with self.lock:
                job.status = "completed"
                job.record = record
                job.result_path = str(record.artifact.path)
        except Exception as exc:
            # The orchestrator already logged the cause; keep it on the job.
            with self.lock:
                job.status = "failed"
                if not isinstance(exc, RunInProgressError):
                    job.record = self.orchestrator.last_run
                job.error = f"{type(exc).__name__}: {exc}"

    def get(self, job_id: str) -> Optional[ReportJob]:
        with self.lock:
            return self.jobs.get(job_id)

    def wait(self, job_id: str, timeout: Optional[float] = None) -> Optional[ReportJob]:
        job = self.get(job_id)
        if job is not None and job.future is not None:
            job.future.result(timeout=timeout)
        return self.get(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self.executor.shutdown(wait=wait)
