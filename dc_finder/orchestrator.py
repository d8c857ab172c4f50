"""Main orchestration logic for the datacenter finder."""

import os
import signal
import threading
import time
from typing import Any, Dict, List, Optional

from .classification import ClassificationResolver
from .config import Config
from .constants import (
    DETAILED_HEADER_EVERY, DETAILED_LOG_NAME, EXIT_CANCELLED, EXIT_OK, LATEST_REPORT_NAME,
    LOCK_FILE_NAME, PROGRESS_FILE_NAME, RESULTS_FILE_NAME, RUN_HISTORY_NAME,
)
from .endpoints import EndpointSource, filter_endpoints, load_endpoints
from .exceptions import EndpointSourceError
from .logging import JSONLLogger, ResultStore, TextLogger
from .logging.text_logger import format_header, format_progress_line
from .models import AggregateReport, ResultRecord, RunState
from .probing import ProbeEngine, ProbeScheduler
from .reporting import format_report, generate
from .supervisor.instance_lock import InstanceLock
from .utils import atomic_write_json, ensure_directory_exists, get_current_timestamp


def write_progress(path: str, state: str, completed: int = 0, total: int = 0,
                   last_endpoint: str = "", started_at: Optional[float] = None,
                   message: str = "") -> None:
    """Rewrite the progress channel file atomically."""
    data: Dict[str, Any] = {
        "state": state,
        "pid": os.getpid(),
        "completed": completed,
        "total": total,
        "last_endpoint": last_endpoint,
        "started_at": started_at,
        "updated_at": time.time(),
        "message": message,
    }
    try:
        atomic_write_json(path, data)
    except OSError as e:
        print(f"[WARN] Failed to write progress file {path}: {e}", flush=True)


class Pipeline:
    """Runs one endpoint analysis: discover, probe and classify, store, report."""

    def __init__(self, config: Config, resolver: Optional[ClassificationResolver] = None,
                 engine: Optional[ProbeEngine] = None,
                 endpoint_source: Optional[EndpointSource] = None):
        """Initialize pipeline with all required components.

        Args:
            config: Configuration object
            resolver: Classification resolver (built from config when None)
            engine: Probe engine (built from config when None)
            endpoint_source: Discovery command wrapper (built from config when None)
        """
        self.config = config
        ensure_directory_exists(config.report_dir)
        ensure_directory_exists(config.work_dir)

        self.results_path = os.path.join(config.work_dir, RESULTS_FILE_NAME)
        self.progress_path = os.path.join(config.work_dir, PROGRESS_FILE_NAME)
        self.report_path = os.path.join(config.report_dir, LATEST_REPORT_NAME)

        self.lock = InstanceLock(os.path.join(config.work_dir, LOCK_FILE_NAME))
        self.store = ResultStore(self.results_path)
        self.text_logger = TextLogger(os.path.join(config.report_dir, DETAILED_LOG_NAME))
        self.jsonl_logger = JSONLLogger(os.path.join(config.report_dir, RUN_HISTORY_NAME))

        self._resolver = resolver
        self.engine = engine or ProbeEngine(config.probe_ports, config.timeout_seconds, config.retries)
        self.endpoint_source = endpoint_source
        self.run_state: Optional[RunState] = None
        self.scheduler: Optional[ProbeScheduler] = None
        self._cancel_requested = threading.Event()
        self.report: Optional[AggregateReport] = None

    def cancel(self) -> None:
        """Request cancellation; in-flight endpoints finish within their timeouts."""
        self._cancel_requested.set()
        if self.scheduler is not None:
            self.scheduler.cancel()

    def _handle_signal(self, signum, frame) -> None:
        print(f"\n[WARN] Received signal {signum}, cancelling run...", flush=True)
        self.cancel()

    def _install_signal_handlers(self) -> Dict[int, Any]:
        if threading.current_thread() is not threading.main_thread():
            return {}
        previous = {}
        for signum in (signal.SIGTERM, signal.SIGINT):
            previous[signum] = signal.signal(signum, self._handle_signal)
        return previous

    def _on_progress(self, completed: int, total: int, endpoint: str, record: ResultRecord) -> None:
        if (completed - 1) % DETAILED_HEADER_EVERY == 0:
            print(format_header(), flush=True)
            print("=" * 100, flush=True)
        print(format_progress_line(record, completed, total), flush=True)
        self.text_logger.log_result(record, completed, total)
        write_progress(self.progress_path, "running", completed, total, endpoint,
                       self.run_state.started_at if self.run_state else None)

    def run(self, endpoints: Optional[List[str]] = None, endpoint_file: Optional[str] = None,
            handle_signals: bool = True) -> int:
        """Run the pipeline end to end.

        Args:
            endpoints: Explicit endpoints (skips discovery; still filtered)
            endpoint_file: Saved endpoint list used before the discovery command
            handle_signals: Install SIGTERM/SIGINT handlers that cancel the run

        Returns:
            EXIT_OK when every endpoint was processed, EXIT_CANCELLED otherwise

        Raises:
            InstanceAlreadyRunning: If another run holds the lock
            EndpointSourceError: If no endpoints could be obtained
            RulesFileError: If the classification rules file is invalid
        """
        self.lock.acquire()
        previous_handlers = self._install_signal_handlers() if handle_signals else {}
        resolver = self._resolver
        started_at = time.time()
        try:
            write_progress(self.progress_path, "starting", started_at=started_at,
                           message="Loading endpoints")
            if endpoints is not None:
                endpoints = filter_endpoints(endpoints)
                if not endpoints:
                    raise EndpointSourceError("No valid public IPv4 endpoints given")
            else:
                endpoints = load_endpoints(self.config, endpoint_file, self.endpoint_source)

            if resolver is None:
                resolver = ClassificationResolver.from_config(self.config)

            self.run_state = RunState(total=len(endpoints), concurrency=self.config.concurrency,
                                      started_at=started_at)
            self.scheduler = ProbeScheduler(self.engine, resolver, self.store, self.run_state)
            if self._cancel_requested.is_set():
                self.scheduler.cancel()

            self.store.reset()
            self.text_logger.log_run_start(get_current_timestamp(), len(endpoints), self.config.concurrency)
            write_progress(self.progress_path, "running", 0, len(endpoints), "", started_at)
            print(f"[INFO] Analyzing {len(endpoints)} endpoints with concurrency {self.config.concurrency}",
                  flush=True)

            results = self.scheduler.run(endpoints, self.config.concurrency, self._on_progress)
            cancelled = self.scheduler.cancelled
            status = "cancelled" if cancelled else "completed"

            self.report = self._write_report()
            duration = time.time() - started_at
            self.text_logger.log_run_end(get_current_timestamp(), len(results), len(endpoints), status)
            self.jsonl_logger.log_run(get_current_timestamp(), status, duration,
                                      self.config.concurrency, len(endpoints), self.report)
            write_progress(self.progress_path, status, len(results), len(endpoints),
                           "", started_at, message=f"Report saved to {self.report_path}")

            if cancelled:
                print(f"[WARN] Run cancelled: {len(results)}/{len(endpoints)} endpoints processed", flush=True)
                return EXIT_CANCELLED
            print(f"[OK] Analysis complete: {len(results)} endpoints in {duration:.1f}s", flush=True)
            return EXIT_OK

        except Exception as e:
            write_progress(self.progress_path, "failed", started_at=started_at, message=str(e))
            raise
        finally:
            if resolver is not None and resolver is not self._resolver:
                resolver.close()
            if self.run_state is not None:
                self.run_state.reset()
            self.lock.release()
            for signum, handler in previous_handlers.items():
                signal.signal(signum, handler)

    def _write_report(self) -> AggregateReport:
        """Generate the report from the result store and save it."""
        records = self.store.read_all()
        report = generate(records, self.config.recommendation_count, self.config.nearest_count)
        text = format_report(report)
        with open(self.report_path, "w") as f:
            f.write(text)
        print("\n" + text, flush=True)
        print(f"[OK] Report saved to {self.report_path}", flush=True)
        return report
