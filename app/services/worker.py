"""Fixed-size background worker pool that drains the analysis_jobs queue."""
import logging
import os
import socket
import threading

from app.services import pipeline

logger = logging.getLogger(__name__)


class AnalysisWorkerPool:
    def __init__(self, size: int, poll_seconds: float = 2.0):
        self.size = max(0, size)
        self.poll_seconds = poll_seconds
        self._threads: list[threading.Thread] = []
        self._stop = threading.Event()
        self._wake = threading.Event()
        self._prefix = f"{socket.gethostname()}:{os.getpid()}"

    @property
    def running(self) -> bool:
        return any(t.is_alive() for t in self._threads)

    def start(self) -> None:
        if self._threads:
            return
        self._stop.clear()
        for i in range(self.size):
            worker_id = f"{self._prefix}:{i}"
            t = threading.Thread(target=self._run, args=(worker_id,), name=f"analysis-worker-{i}", daemon=True)
            t.start()
            self._threads.append(t)
        logger.info("Analysis worker pool started: %s workers", self.size)

    def notify(self) -> None:
        """Wakes idle workers after a new job was committed."""
        self._wake.set()

    def stop(self, timeout: float = 10.0) -> None:
        self._stop.set()
        self._wake.set()
        for t in self._threads:
            t.join(timeout=timeout)
        self._threads = []
        logger.info("Analysis worker pool stopped")

    def _run(self, worker_id: str) -> None:
        while not self._stop.is_set():
            try:
                worked = pipeline.process_next_job(worker_id)
            except Exception as e:
                # Queue/database trouble: keep the worker alive and retry after the poll interval
                logger.exception("Worker %s loop error: %s", worker_id, e)
                worked = False
            if not worked:
                self._wake.wait(self.poll_seconds)
                self._wake.clear()
