"""Bounded-parallelism fan-out of probe and classification work."""

import queue
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional

from ..constants import LATENCY_TIMEOUT, SOURCE_UNKNOWN, UNKNOWN_LOCATION, UNKNOWN_PROVIDER
from ..models import ClassificationRecord, ProbeResult, ResultRecord, RunState
from ..utils import get_current_timestamp

# (completed, total, last_endpoint, last_record)
ProgressCallback = Callable[[int, int, str, ResultRecord], None]

# How often a blocked submitter re-checks for cancellation
SUBMIT_POLL_SECONDS = 0.1
REPORTER_JOIN_SECONDS = 5


class ProbeScheduler:
    """Runs probe + resolve + append for every endpoint on a fixed worker pool.

    A BoundedSemaphore sized to the concurrency is taken before each submit
    and released when the unit finishes, so no more than `concurrency` units
    are ever queued or running. Progress is handed to a separate reporter
    thread through a queue so a slow callback never holds up a worker.

    Cancellation is sticky: once cancel() is called, this and every later
    run() submits nothing more. Use a fresh scheduler after a cancel.
    """

    def __init__(self, engine, resolver, store, run_state: Optional[RunState] = None):
        """Initialize probe scheduler.

        Args:
            engine: ProbeEngine (anything with probe(endpoint) -> ProbeResult)
            resolver: ClassificationResolver (resolve(endpoint) -> ClassificationRecord)
            store: ResultStore receiving one append per finished endpoint
            run_state: Shared run counters (a private one is created when None)
        """
        self.engine = engine
        self.resolver = resolver
        self.store = store
        self.run_state = run_state
        self._cancel_event = threading.Event()
        self._active_lock = threading.Lock()
        self.active = 0
        self.max_active = 0

    def cancel(self) -> None:
        """Stop submitting work; queued units that have not started are skipped."""
        self._cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def _process(self, endpoint: str) -> ResultRecord:
        # Probe and classification fail independently; every endpoint still produces a record
        try:
            probe_result = self.engine.probe(endpoint)
        except Exception as e:
            print(f"[WARN] Unexpected error while probing {endpoint}: {e}", flush=True)
            probe_result = ProbeResult(endpoint, LATENCY_TIMEOUT, get_current_timestamp())

        try:
            classification = self.resolver.resolve(endpoint)
        except Exception as e:
            print(f"[WARN] Unexpected error while classifying {endpoint}: {e}", flush=True)
            classification = ClassificationRecord(
                endpoint=endpoint,
                provider=UNKNOWN_PROVIDER,
                location=UNKNOWN_LOCATION,
                source=SOURCE_UNKNOWN,
                resolved_at=time.time(),
            )

        return ResultRecord.join(probe_result, classification)

    def _report_progress(self, progress_queue: "queue.Queue", on_progress: Optional[ProgressCallback]) -> None:
        while True:
            item = progress_queue.get()
            if item is None:
                return
            if on_progress is None:
                continue
            try:
                on_progress(*item)
            except Exception as e:
                print(f"[WARN] Progress callback failed: {e}", flush=True)

    def run(self, endpoints: List[str], concurrency: int,
            on_progress: Optional[ProgressCallback] = None) -> List[ResultRecord]:
        """Process every endpoint with at most `concurrency` units in flight.

        Args:
            endpoints: Validated endpoints
            concurrency: Worker pool width
            on_progress: Called with (completed, total, endpoint, record) off the worker threads

        Returns:
            One ResultRecord per processed endpoint, in completion order.
            Fewer than len(endpoints) only when the run was cancelled.
        """
        with self._active_lock:
            self.active = 0
            self.max_active = 0

        total = len(endpoints)
        state = self.run_state if self.run_state is not None else RunState(total, concurrency)
        state.total = total
        state.concurrency = concurrency

        results: List[ResultRecord] = []
        results_lock = threading.Lock()
        slots = threading.BoundedSemaphore(concurrency)
        progress_queue: "queue.Queue" = queue.Queue()

        reporter = threading.Thread(target=self._report_progress, args=(progress_queue, on_progress))
        reporter.daemon = True
        reporter.start()

        def unit(endpoint: str) -> None:
            try:
                if self.cancelled:
                    return
                with self._active_lock:
                    self.active += 1
                    self.max_active = max(self.max_active, self.active)
                try:
                    record = self._process(endpoint)
                finally:
                    with self._active_lock:
                        self.active -= 1

                try:
                    self.store.append(record)
                except OSError as e:
                    print(f"[ERROR] Failed to append result for {endpoint}: {e}", flush=True)

                with results_lock:
                    results.append(record)
                completed = state.record_completion()
                progress_queue.put((completed, total, endpoint, record))
            finally:
                slots.release()

        with ThreadPoolExecutor(max_workers=concurrency) as executor:
            for endpoint in endpoints:
                acquired = False
                while not self.cancelled:
                    if slots.acquire(timeout=SUBMIT_POLL_SECONDS):
                        acquired = True
                        break
                if not acquired:
                    break
                if self.cancelled:
                    slots.release()
                    break
                executor.submit(unit, endpoint)

        progress_queue.put(None)
        # Daemon thread: a stuck callback cannot keep the run open
        reporter.join(timeout=REPORTER_JOIN_SECONDS)

        if self.cancelled:
            print(f"[WARN] Run cancelled after {len(results)}/{total} endpoints", flush=True)
        return results
